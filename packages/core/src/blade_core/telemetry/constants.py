SERVICE_NAME = "blade-core"

# Metric Names
METRIC_TOOL_CALL_COUNT = "blade.tool.call.count"
METRIC_TOOL_CALL_LATENCY = "blade.tool.call.latency"
