import logging
import uuid
from collections.abc import Callable
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from blade_core.config.permissions import PermissionStore
from blade_core.core.cancellation import CancelSignal
from blade_core.core.confirmation import ConfirmationResponder, TimeoutResponder
from blade_core.core.context import ExecutionContext
from blade_core.core.pipeline import ExecutionPipeline
from blade_core.core.types import PermissionMode
from blade_core.permission.sensitive import SensitiveFileDetector
from blade_core.tools.base.registry import ToolRegistry
from blade_core.utils.paths import BLADE_DIR

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BLADE_", case_sensitive=False)

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    target_dir: Path = Field(default_factory=Path.cwd)
    config_dir: Path = Field(default_factory=lambda: Path.home() / BLADE_DIR)
    permission_mode: PermissionMode = PermissionMode.DEFAULT
    debug_mode: bool = False

    # Tool configurations
    core_tools: list[str] | None = None
    exclude_tools: list[str] | None = None

    # Pipeline configurations
    sensitive_file_protection: bool = True
    confirmation_timeout: float | None = None
    max_history_size: int = 1000


def create_tool_registry(config: Settings) -> ToolRegistry:
    """Creates and populates the tool registry with the built-in tools."""
    from blade_core.tools.file.edit_file import EditFileTool
    from blade_core.tools.file.read_file import ReadFileTool
    from blade_core.tools.file.write_file import WriteFileTool
    from blade_core.tools.memory.memory_tool import MemoryTool
    from blade_core.tools.plan.exit_plan_mode import ExitPlanModeTool
    from blade_core.tools.shell.shell_tool import ShellTool

    tools = [
        ReadFileTool(config),
        WriteFileTool(config),
        EditFileTool(config),
        ShellTool(config),
        MemoryTool(config),
        ExitPlanModeTool(),
    ]
    if config.core_tools is not None:
        tools = [tool for tool in tools if tool.name in config.core_tools]
    if config.exclude_tools:
        tools = [tool for tool in tools if tool.name not in config.exclude_tools]

    registry = ToolRegistry()
    registry.register_all(tools)
    return registry


def create_permission_store(config: Settings) -> PermissionStore:
    return PermissionStore(config.target_dir, config.config_dir)


async def create_pipeline(
    config: Settings,
    registry: ToolRegistry | None = None,
    store: PermissionStore | None = None,
) -> ExecutionPipeline:
    """Loads the permission files and wires up a pipeline."""
    store = store or create_permission_store(config)
    permissions = await store.load()
    return ExecutionPipeline(
        registry=registry or create_tool_registry(config),
        policy=permissions,
        permission_store=store,
        sensitive_detector=(
            SensitiveFileDetector() if config.sensitive_file_protection else None
        ),
        max_history_size=config.max_history_size,
    )


def create_execution_context(
    config: Settings,
    responder: ConfirmationResponder | None = None,
    signal: CancelSignal | None = None,
    mode: PermissionMode | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> ExecutionContext:
    """Builds the per-call context; applies the configured confirmation timeout."""
    if responder is not None and config.confirmation_timeout:
        responder = TimeoutResponder(responder, config.confirmation_timeout)
    return ExecutionContext(
        signal=signal or CancelSignal(),
        confirmation_responder=responder,
        permission_mode=mode or config.permission_mode,
        session_id=config.session_id,
        workspace_root=config.target_dir,
        on_progress=on_progress,
    )
