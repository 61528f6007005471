from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from blade_core.core.cancellation import CancelSignal
from blade_core.core.context import ExecutionContext
from blade_core.core.types import ToolKind
from blade_core.tools.base.tool_base import BaseTool
from blade_core.tools.common import EditConfirmationDetails, ToolErrorKind, ToolResult
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


class EditFileToolParams(BaseModel):
    file_path: str = Field(..., description="The absolute path to the file to modify.")
    old_string: str = Field(..., description="The exact text to replace.")
    new_string: str = Field(..., description="The text to replace it with.")
    replace_all: bool = Field(
        False, description="Replace every occurrence instead of exactly one."
    )


def apply_edit(content: str, params: EditFileToolParams) -> tuple[str, str | None]:
    """Returns the edited content, or an error when the edit is ambiguous."""
    occurrences = content.count(params.old_string)
    if occurrences == 0:
        return content, "old_string was not found in the file."
    if occurrences > 1 and not params.replace_all:
        return content, (
            f"old_string occurs {occurrences} times; provide more context "
            "or set replace_all."
        )
    count = -1 if params.replace_all else 1
    return content.replace(params.old_string, params.new_string, count), None


class EditFileTool(BaseTool[EditFileToolParams]):
    """Replaces text inside an existing file."""

    NAME = "edit_file"

    def __init__(self, config: "Settings"):
        super().__init__(
            name=self.NAME,
            display_name="Edit",
            description="Replaces text within a file. old_string must match exactly, including whitespace.",
            kind=ToolKind.EDIT,
            params_model=EditFileToolParams,
        )
        self.config = config
        self.root_directory = Path(config.target_dir).resolve()

    def validate_tool_params(self, params: EditFileToolParams) -> str | None:
        error = validate_workspace_path(params.file_path, self.root_directory)
        if error:
            return error
        if not params.old_string:
            return "old_string must not be empty."
        if params.old_string == params.new_string:
            return "old_string and new_string are identical; nothing to change."
        return None

    def get_description(self, params: EditFileToolParams) -> str:
        relative_path = make_relative(Path(params.file_path), self.root_directory)
        return f"Editing {shorten_path(relative_path)}"

    def get_affected_paths(self, params: EditFileToolParams) -> list[str]:
        return [params.file_path]

    def abstract_rule(self, params: EditFileToolParams) -> str | None:
        return extension_rule(self.name, params.file_path)

    async def get_confirmation_details(
        self, params: EditFileToolParams, signal: CancelSignal | None = None
    ) -> EditConfirmationDetails | None:
        file_path = Path(params.file_path)
        content, exists = await read_text_if_exists(file_path)
        if not exists:
            return None
        updated, error = apply_edit(content, params)
        if error:
            # Nothing to show; the edit fails when executed.
            return None
        relative_path = make_relative(file_path, self.root_directory)
        return EditConfirmationDetails(
            title=f"Confirm edit: {shorten_path(relative_path)}",
            message=self.get_description(params),
            file_name=file_path.name,
            file_diff=unified_diff(content, updated, relative_path),
            affected_paths=[params.file_path],
        )

    async def execute(
        self, params: EditFileToolParams, context: ExecutionContext
    ) -> ToolResult:
        file_path = Path(params.file_path)
        content, exists = await read_text_if_exists(file_path)
        if not exists:
            return ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR, f"File not found: {params.file_path}"
            )

        updated, error = apply_edit(content, params)
        if error:
            return ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR,
                f"Failed to edit {params.file_path}: {error}",
            )

        context.signal.raise_if_cancelled()
        await write_text(file_path, updated)

        replacements = content.count(params.old_string) if params.replace_all else 1
        return ToolResult.ok(
            f"Successfully modified {params.file_path} ({replacements} replacement(s)).",
            display_content=unified_diff(
                content, updated, file_path.name, label="Edited"
            ),
            file_name=file_path.name,
            replacements=replacements,
        )
