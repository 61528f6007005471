from .cancellation import CancelSignal
from .confirmation import (
    CallbackResponder,
    ChannelResponder,
    ConfirmationRequest,
    ConfirmationResponder,
    TimeoutResponder,
)
from .context import ExecutionContext
from .events import EventEmitter, PipelineEvent, PipelineEventType
from .pipeline import ExecutionPipeline, ExecutionRecord, ToolCallRequest
from .types import PermissionMode, PipelineStatus, ToolKind

__all__ = [
    # Cancellation
    "CancelSignal",
    # Confirmation
    "CallbackResponder",
    "ChannelResponder",
    "ConfirmationRequest",
    "ConfirmationResponder",
    "TimeoutResponder",
    # Execution
    "ExecutionContext",
    "ExecutionPipeline",
    "ExecutionRecord",
    "ToolCallRequest",
    # Events
    "EventEmitter",
    "PipelineEvent",
    "PipelineEventType",
    # Types
    "PermissionMode",
    "PipelineStatus",
    "ToolKind",
]
