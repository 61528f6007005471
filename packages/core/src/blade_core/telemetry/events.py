"""
Pydantic models for telemetry events.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolCallDecision(str, Enum):
    ACCEPT = "accept"  # the operator approved a confirmation
    REJECT = "reject"  # the operator declined, or the call was blocked
    AUTO = "auto"  # ran without asking


class TelemetryEventBase(BaseModel):
    event_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class ToolCallEvent(TelemetryEventBase):
    event_name: Literal["tool_call"] = "tool_call"
    execution_id: str
    function_name: str
    function_args: dict[str, Any]
    duration_ms: int
    success: bool
    permission_mode: str
    decision: ToolCallDecision | None = None
    matched_rule: str | None = None
    error: str | None = None
    error_type: str | None = None


class PermissionRuleAddedEvent(TelemetryEventBase):
    event_name: Literal["permission_rule_added"] = "permission_rule_added"
    list_name: str
    rule: str


TelemetryEvent = ToolCallEvent | PermissionRuleAddedEvent
