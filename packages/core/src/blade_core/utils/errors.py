from typing import Any


def get_error_message(error: Any) -> str:
    """Safely gets an error message from an exception."""
    if isinstance(error, Exception):
        return str(error) or error.__class__.__name__
    try:
        return str(error)
    except Exception:
        return "Failed to get error details"


class DuplicateToolError(Exception):
    """Raised when a tool name is registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' is already registered.")


class InvalidPermissionRuleError(ValueError):
    """Raised when a permission rule string cannot be parsed."""

    def __init__(self, rule: str, reason: str = ""):
        self.rule = rule
        self.reason = reason or "malformed rule"
        super().__init__(f"Invalid permission rule '{rule}': {self.reason}")


class PermissionConfigError(Exception):
    """Raised when a permission configuration file cannot be loaded or saved."""


class OperationCancelledError(Exception):
    """Raised by cancellable operations once their cancel signal is set."""

    def __init__(self, message: str = "Operation cancelled."):
        super().__init__(message)
