"""
Tool call metrics recorded through OpenTelemetry.

Without a configured meter provider the instruments are no-ops.
"""

from opentelemetry import metrics

from blade_core.telemetry.constants import (
    METRIC_TOOL_CALL_COUNT,
    METRIC_TOOL_CALL_LATENCY,
    SERVICE_NAME,
)


class MetricsManager:
    """A singleton holding the metric instruments."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            meter = metrics.get_meter(SERVICE_NAME)
            instance.tool_call_counter = meter.create_counter(
                METRIC_TOOL_CALL_COUNT,
                description="Counts tool calls, tagged by function name and success.",
                unit="1",
            )
            instance.tool_call_latency_histogram = meter.create_histogram(
                METRIC_TOOL_CALL_LATENCY,
                description="Latency of tool calls in milliseconds.",
                unit="ms",
            )
            cls._instance = instance
        return cls._instance


def record_tool_call_metrics(
    function_name: str,
    duration_ms: int,
    success: bool,
    decision: str | None = None,
):
    manager = MetricsManager()
    attributes = {"function_name": function_name, "success": success}
    if decision:
        attributes["decision"] = decision
    manager.tool_call_counter.add(1, attributes)
    manager.tool_call_latency_histogram.record(
        duration_ms, {"function_name": function_name}
    )
