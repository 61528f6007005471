"""
This file serves as the public API for the telemetry module.
"""

from .events import (
    PermissionRuleAddedEvent,
    TelemetryEvent,
    ToolCallDecision,
    ToolCallEvent,
)
from .logger import log_permission_rule_added, log_tool_call

__all__ = [
    # Loggers
    "log_permission_rule_added",
    "log_tool_call",
    # Events
    "PermissionRuleAddedEvent",
    "TelemetryEvent",
    "ToolCallDecision",
    "ToolCallEvent",
]
