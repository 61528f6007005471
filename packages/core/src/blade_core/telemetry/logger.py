import logging

from blade_core.telemetry.events import (
    PermissionRuleAddedEvent,
    TelemetryEvent,
    ToolCallEvent,
)
from blade_core.telemetry.metrics import record_tool_call_metrics

# A standard Python logger for structured, observable logs
observable_logger = logging.getLogger("blade_observable")


def _log_to_observable(event: TelemetryEvent):
    """Logs events to a standard logger for observability."""
    observable_logger.info(
        event.event_name, extra={"data": event.model_dump_json()}
    )


def log_tool_call(event: ToolCallEvent):
    """Logs a tool call event."""
    _log_to_observable(event)
    record_tool_call_metrics(
        function_name=event.function_name,
        duration_ms=event.duration_ms,
        success=event.success,
        decision=event.decision.value if event.decision else None,
    )


def log_permission_rule_added(event: PermissionRuleAddedEvent):
    """Logs a rule remembered from an 'always' approval."""
    _log_to_observable(event)
