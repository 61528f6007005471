from enum import Enum


class PermissionMode(str, Enum):
    """Session-wide override of how policy decisions become confirmations."""

    DEFAULT = "default"  # read-only tools run, everything else follows policy
    AUTO_EDIT = "autoEdit"  # edit tools are auto-approved
    PLAN = "plan"  # mutating tools require plan approval
    YOLO = "yolo"  # everything runs, deny rules included


class ToolKind(str, Enum):
    """Capability category of a tool."""

    READ_ONLY = "readonly"
    WRITE = "write"
    EDIT = "edit"
    EXECUTE = "execute"

    @property
    def is_mutating(self) -> bool:
        return self is not ToolKind.READ_ONLY


class PipelineStatus(str, Enum):
    """States of a single pass through the execution pipeline."""

    VALIDATING = "validating"
    POLICY_CHECK = "policy_check"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    APPROVED = "approved"
    EXECUTING = "executing"
    BLOCKED = "blocked"
    REJECTED = "rejected"
    COMPLETED = "completed"
    FAILED = "failed"
