import asyncio
from pathlib import Path

import pytest

from blade_core.config.permissions import PermissionConfig
from blade_core.core.context import ExecutionContext
from blade_core.core.pipeline import ExecutionPipeline
from blade_core.core.types import PermissionMode, ToolKind
from blade_core.tools.base.registry import ToolRegistry
from blade_core.tools.base.tool_base import ToolDescriptor
from blade_core.tools.common import (
    ConfirmationDetails,
    ConfirmationResponse,
    ConfirmationScope,
    ToolResult,
)

PATH_SCHEMA = {
    "type": "object",
    "properties": {"file_path": {"type": "string"}},
    "required": ["file_path"],
    "additionalProperties": False,
}


class ScriptedResponder:
    """Answers confirmations from a fixed script and records every request."""

    def __init__(self, *answers: bool | ConfirmationResponse):
        self.answers = list(answers)
        self.requests: list[ConfirmationDetails] = []

    async def request_confirmation(
        self, details: ConfirmationDetails
    ) -> ConfirmationResponse:
        self.requests.append(details)
        answer = self.answers.pop(0) if self.answers else False
        if isinstance(answer, ConfirmationResponse):
            return answer
        return ConfirmationResponse(approved=answer)

    @property
    def calls(self) -> int:
        return len(self.requests)


class HangingResponder:
    """Never answers; used to exercise cancellation while suspended."""

    def __init__(self):
        self.asked = asyncio.Event()
        self.cancelled = False

    async def request_confirmation(self, details):
        self.asked.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


def approve_always() -> ConfirmationResponse:
    return ConfirmationResponse(approved=True, scope=ConfirmationScope.ALWAYS)


def make_tool(
    name: str,
    kind: ToolKind = ToolKind.READ_ONLY,
    executor=None,
    requires_confirmation=False,
    **kwargs,
) -> ToolDescriptor:
    calls: list = []

    async def default_executor(params, context):
        calls.append(params)
        return ToolResult.ok(f"{name} ran")

    tool = ToolDescriptor(
        name=name,
        kind=kind,
        executor=executor or default_executor,
        parameter_schema=kwargs.pop("parameter_schema", PATH_SCHEMA),
        requires_confirmation=requires_confirmation,
        affected_paths=kwargs.pop(
            "affected_paths", lambda params: [params["file_path"]]
        ),
        **kwargs,
    )
    tool.calls = calls
    return tool


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(
        [
            make_tool("Read", ToolKind.READ_ONLY),
            make_tool("Write", ToolKind.WRITE),
            make_tool(
                "Edit",
                ToolKind.EDIT,
                requires_confirmation=lambda params: ConfirmationDetails(
                    title=f"Edit {params['file_path']}?"
                ),
            ),
            make_tool("Bash", ToolKind.EXECUTE),
        ]
    )


@pytest.fixture
def make_pipeline(registry):
    def factory(
        allow=(), ask=(), deny=(), **kwargs
    ) -> ExecutionPipeline:
        config = PermissionConfig(allow=list(allow), ask=list(ask), deny=list(deny))
        return ExecutionPipeline(registry, config, **kwargs)

    return factory


def make_context(
    responder=None, mode: PermissionMode = PermissionMode.DEFAULT, **kwargs
) -> ExecutionContext:
    return ExecutionContext(
        confirmation_responder=responder, permission_mode=mode, **kwargs
    )
