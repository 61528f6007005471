"""
A central repository for the tools the pipeline can run.
"""

import logging
import threading
from collections.abc import Iterable
from typing import Any

from blade_core.core.types import PermissionMode, ToolKind
from blade_core.utils.errors import DuplicateToolError

from .tool_base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Maps unique tool names to tool implementations."""

    def __init__(self, tools: Iterable[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        self._lock = threading.Lock()
        if tools:
            self.register_all(tools)

    def register(self, tool: Tool) -> None:
        with self._lock:
            if tool.name in self._tools:
                raise DuplicateToolError(tool.name)
            self._tools[tool.name] = tool
        logger.debug(f"Registered tool '{tool.name}' ({tool.kind.value}).")

    def register_all(self, tools: Iterable[Tool]) -> None:
        """
        Registers every tool that does not collide with an existing name.

        Raises DuplicateToolError naming every collision once all others
        have been registered.
        """
        duplicates = []
        for tool in tools:
            try:
                self.register(tool)
            except DuplicateToolError:
                duplicates.append(tool.name)
        if duplicates:
            raise DuplicateToolError(", ".join(duplicates))

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_all(self) -> list[Tool]:
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        return sorted(self._tools)

    def get_read_only_tools(self) -> list[Tool]:
        return [
            tool for tool in self._tools.values() if tool.kind == ToolKind.READ_ONLY
        ]

    def get_function_declarations(
        self, mode: PermissionMode | str | None = None
    ) -> list[dict[str, Any]]:
        """
        Function declarations to advertise to the model.

        In plan mode only read-only tools and the tool that leaves plan
        mode are offered.
        """
        tools = self._tools.values()
        if mode is not None and PermissionMode(mode) == PermissionMode.PLAN:
            tools = [
                tool
                for tool in tools
                if tool.kind == ToolKind.READ_ONLY
                or getattr(tool, "exits_plan_mode", False)
            ]
        return [tool.schema for tool in tools]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
