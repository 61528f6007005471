"""
The tools sub-package provides the framework for defining, registering, and executing tools.

This package exposes the core components for tool development and management:

- `BaseTool`: The abstract base class for class-based tools.
- `ToolDescriptor`: A tool assembled from plain callables.
- `ToolResult`: The standardized return type for all tool executions.
- `ToolRegistry`: The central manager that holds and provides access to all available tools.
"""

from .base.registry import ToolRegistry
from .base.tool_base import BaseTool, Tool, ToolDescriptor
from .common import ToolResult

__all__ = [
    "BaseTool",
    "Tool",
    "ToolDescriptor",
    "ToolRegistry",
    "ToolResult",
]
