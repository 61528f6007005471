import base64
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles
import aiofiles.os
from pydantic import BaseModel, Field

from blade_core.core.context import ExecutionContext
from blade_core.core.types import ToolKind
from blade_core.tools.base.tool_base import BaseTool
from blade_core.tools.common import ToolErrorKind, ToolResult
from blade_core.utils.paths import make_relative, shorten_path

from .common import extension_rule, validate_workspace_path

if TYPE_CHECKING:
    from blade_core.config.config import Settings

MAX_LINES = 2000


class ReadFileToolParams(BaseModel):
    file_path: str = Field(..., description="The absolute path to the file to read.")
    offset: int | None = Field(
        None,
        description="Optional: For text files, the 0-based line number to start reading from.",
    )
    limit: int | None = Field(
        None,
        description="Optional: For text files, maximum number of lines to read.",
    )


def _process_text_content(
    content: str, offset: int | None, limit: int | None
) -> tuple[str, str]:
    """Processes text content, applying offset and limit."""
    lines = content.splitlines()
    total_lines = len(lines)

    if offset is not None or limit is not None:
        start = offset or 0
        end = start + (limit or MAX_LINES)
        content_slice = "\n".join(lines[start:end])
        display = f"Read lines {start + 1}-{min(end, total_lines)} of {total_lines} from"
        return content_slice, display

    if total_lines > MAX_LINES:
        content = "\n".join(lines[:MAX_LINES]) + "\n... (file truncated)"

    return content, f"Read {total_lines} lines from"


async def _process_binary_content(file_path: Path) -> tuple[dict, str]:
    """Processes binary content (images, etc.) into inline data."""
    mime_type, _ = mimetypes.guess_type(file_path)
    if not mime_type:
        mime_type = "application/octet-stream"

    async with aiofiles.open(file_path, "rb") as f:
        encoded_content = base64.b64encode(await f.read()).decode("utf-8")

    llm_content = {"inline_data": {"mime_type": mime_type, "data": encoded_content}}
    return llm_content, f"Read binary content ({mime_type}) from"


class ReadFileTool(BaseTool[ReadFileToolParams]):
    """A tool for reading files from the workspace."""

    NAME = "read_file"

    def __init__(self, config: "Settings"):
        super().__init__(
            name=self.NAME,
            display_name="ReadFile",
            description="Reads and returns the content of a specified file. Handles both text and binary files.",
            kind=ToolKind.READ_ONLY,
            params_model=ReadFileToolParams,
        )
        self.config = config
        self.root_directory = Path(config.target_dir).resolve()

    def validate_tool_params(self, params: ReadFileToolParams) -> str | None:
        error = validate_workspace_path(params.file_path, self.root_directory)
        if error:
            return error
        if params.offset is not None and params.offset < 0:
            return "Offset must be a non-negative number"
        if params.limit is not None and params.limit <= 0:
            return "Limit must be a positive number"
        return None

    def get_description(self, params: ReadFileToolParams) -> str:
        return shorten_path(make_relative(Path(params.file_path), self.root_directory))

    def get_affected_paths(self, params: ReadFileToolParams) -> list[str]:
        return [params.file_path]

    def abstract_rule(self, params: ReadFileToolParams) -> str | None:
        return extension_rule(self.name, params.file_path)

    async def execute(
        self, params: ReadFileToolParams, context: ExecutionContext
    ) -> ToolResult:
        file_path = Path(params.file_path)
        if not await aiofiles.os.path.exists(file_path):
            return ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR, f"File not found: {params.file_path}"
            )
        if await aiofiles.os.path.isdir(file_path):
            return ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR,
                f"Path is a directory: {params.file_path}",
            )

        llm_content: Any
        try:
            async with aiofiles.open(file_path, encoding="utf-8") as f:
                content = await f.read()
            llm_content, display_message = _process_text_content(
                content, params.offset, params.limit
            )
        except UnicodeDecodeError:
            llm_content, display_message = await _process_binary_content(file_path)

        return ToolResult.ok(
            llm_content,
            display_content=f"{display_message} '{self.get_description(params)}'",
        )
