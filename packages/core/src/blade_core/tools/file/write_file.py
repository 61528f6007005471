from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles.os
from pydantic import BaseModel, Field

from blade_core.core.cancellation import CancelSignal
from blade_core.core.context import ExecutionContext
from blade_core.core.types import ToolKind
from blade_core.tools.base.tool_base import BaseTool
from blade_core.tools.common import EditConfirmationDetails, ToolResult
from blade_core.utils.paths import make_relative, shorten_path

from .common import (
    extension_rule,
    read_text_if_exists,
    validate_workspace_path,
    write_text,
)
from .diff_options import unified_diff

if TYPE_CHECKING:
    from blade_core.config.config import Settings


class WriteFileToolParams(BaseModel):
    file_path: str = Field(..., description="The absolute path to the file to write.")
    content: str = Field(..., description="The content to write to the file.")


class WriteFileTool(BaseTool[WriteFileToolParams]):
    """A tool for writing content to files."""

    NAME = "write_file"

    def __init__(self, config: "Settings"):
        super().__init__(
            name=self.NAME,
            display_name="WriteFile",
            description="Writes content to a specified file in the local filesystem.",
            kind=ToolKind.WRITE,
            params_model=WriteFileToolParams,
        )
        self.config = config
        self.root_directory = Path(config.target_dir).resolve()

    def validate_tool_params(self, params: WriteFileToolParams) -> str | None:
        error = validate_workspace_path(params.file_path, self.root_directory)
        if error:
            return error
        if Path(params.file_path).is_dir():
            return f"Path is a directory, not a file: {params.file_path}"
        return None

    def get_description(self, params: WriteFileToolParams) -> str:
        relative_path = make_relative(Path(params.file_path), self.root_directory)
        return f"Writing to {shorten_path(relative_path)}"

    def get_affected_paths(self, params: WriteFileToolParams) -> list[str]:
        return [params.file_path]

    def abstract_rule(self, params: WriteFileToolParams) -> str | None:
        return extension_rule(self.name, params.file_path)

    async def get_confirmation_details(
        self, params: WriteFileToolParams, signal: CancelSignal | None = None
    ) -> EditConfirmationDetails:
        file_path = Path(params.file_path)
        original_content, _ = await read_text_if_exists(file_path)
        relative_path = make_relative(file_path, self.root_directory)
        return EditConfirmationDetails(
            title=f"Confirm write to: {shorten_path(relative_path)}",
            message=self.get_description(params),
            file_name=file_path.name,
            file_diff=unified_diff(original_content, params.content, relative_path),
            affected_paths=[params.file_path],
        )

    async def execute(
        self, params: WriteFileToolParams, context: ExecutionContext
    ) -> ToolResult:
        file_path = Path(params.file_path)
        original_content, existed = await read_text_if_exists(file_path)
        context.signal.raise_if_cancelled()

        await write_text(file_path, params.content)

        diff = unified_diff(
            original_content, params.content, file_path.name, label="Written"
        )
        action = "Overwrote" if existed else "Created"
        return ToolResult.ok(
            f"Successfully wrote to {params.file_path}",
            display_content=diff or f"{action} {file_path.name}",
            file_name=file_path.name,
            created=not existed,
            bytes_written=(await aiofiles.os.stat(file_path)).st_size,
        )
