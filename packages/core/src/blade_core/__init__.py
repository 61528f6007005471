"""
blade-core: the permission and execution runtime that sits between a
language model's proposed tool calls and the user's workspace.
"""

from blade_core.config.config import (
    Settings,
    create_execution_context,
    create_pipeline,
    create_tool_registry,
)
from blade_core.config.permissions import PermissionConfig, PermissionStore
from blade_core.core import (
    CallbackResponder,
    CancelSignal,
    ChannelResponder,
    ExecutionContext,
    ExecutionPipeline,
    PermissionMode,
    TimeoutResponder,
    ToolKind,
)
from blade_core.permission.policy import PolicyDecision, PolicyEngine
from blade_core.tools import BaseTool, ToolDescriptor, ToolRegistry, ToolResult

__all__ = [
    "BaseTool",
    "CallbackResponder",
    "CancelSignal",
    "ChannelResponder",
    "ExecutionContext",
    "ExecutionPipeline",
    "PermissionConfig",
    "PermissionMode",
    "PermissionStore",
    "PolicyDecision",
    "PolicyEngine",
    "Settings",
    "TimeoutResponder",
    "ToolDescriptor",
    "ToolKind",
    "ToolRegistry",
    "ToolResult",
    "create_execution_context",
    "create_pipeline",
    "create_tool_registry",
]
