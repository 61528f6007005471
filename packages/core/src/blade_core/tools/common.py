"""
Common data models for the tool system: confirmation requests and
responses, and the normalized tool result returned by the pipeline.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ConfirmationType(str, Enum):
    EDIT = "edit"
    EXECUTE = "execute"
    ENTER_PLAN_MODE = "enterPlanMode"
    EXIT_PLAN_MODE = "exitPlanMode"
    GENERIC = "generic"


class ConfirmationScope(str, Enum):
    ONCE = "once"
    # Remember the approval in memory until the pipeline is discarded.
    SESSION = "session"
    # Remember the approval as an allow rule in the project configuration.
    ALWAYS = "always"


# --- Confirmation Details ---
# Produced either by the policy engine (ASK decision) or by a tool's
# own confirmation predicate.


class ConfirmationDetails(BaseModel):
    """What the operator is asked to approve."""

    type: ConfirmationType = ConfirmationType.GENERIC
    title: str
    message: str = ""
    tool_name: str | None = None
    affected_paths: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)


class EditConfirmationDetails(ConfirmationDetails):
    """Confirmation details for 'edit' or 'write' type tools."""

    type: ConfirmationType = ConfirmationType.EDIT
    file_name: str
    file_diff: str


class ExecuteConfirmationDetails(ConfirmationDetails):
    """Confirmation details for 'execute command' type tools."""

    type: ConfirmationType = ConfirmationType.EXECUTE
    command: str
    root_command: str | None = None


class PlanConfirmationDetails(ConfirmationDetails):
    """Confirmation details for entering or leaving plan mode."""

    type: ConfirmationType = ConfirmationType.EXIT_PLAN_MODE
    plan: str | None = None


class ConfirmationResponse(BaseModel):
    """The operator's answer to a confirmation request."""

    approved: bool
    reason: str | None = None
    scope: ConfirmationScope = ConfirmationScope.ONCE


# --- Tool Result ---


class ToolErrorKind(str, Enum):
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    DENY_BLOCKED = "deny_blocked"
    CONFIRMATION_REJECTED = "confirmation_rejected"
    CANCELLED = "cancelled"
    EXECUTION_ERROR = "execution_error"


class ToolError(BaseModel):
    kind: ToolErrorKind
    message: str
    details: Any | None = None


class ToolResult(BaseModel):
    """Defines the structure for the result of a tool execution."""

    success: bool = True
    llm_content: Any = ""  # text or structured payload for the model
    display_content: str = ""  # human-facing rendering
    error: ToolError | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(
        cls, llm_content: Any, display_content: str | None = None, **metadata
    ) -> "ToolResult":
        if display_content is None:
            display_content = (
                llm_content if isinstance(llm_content, str) else ""
            )
        return cls(
            success=True,
            llm_content=llm_content,
            display_content=display_content,
            metadata=metadata,
        )

    @classmethod
    def failure(
        cls,
        kind: ToolErrorKind,
        message: str,
        llm_content: Any | None = None,
        display_content: str | None = None,
        details: Any | None = None,
    ) -> "ToolResult":
        return cls(
            success=False,
            llm_content=llm_content if llm_content is not None else message,
            display_content=display_content or f"Error: {message}",
            error=ToolError(kind=kind, message=message, details=details),
        )
