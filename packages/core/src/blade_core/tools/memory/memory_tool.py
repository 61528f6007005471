from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os
from pydantic import BaseModel, Field

from blade_core.core.context import ExecutionContext
from blade_core.core.types import ToolKind
from blade_core.tools.base.tool_base import BaseTool
from blade_core.tools.common import ToolResult

if TYPE_CHECKING:
    from blade_core.config.config import Settings

DEFAULT_CONTEXT_FILENAME = "BLADE.md"
MEMORY_SECTION_HEADER = "## Blade Added Memories"


class SaveMemoryParams(BaseModel):
    fact: str = Field(..., description="The specific fact to remember.")


def ensure_newline_separation(content: str) -> str:
    """Ensures there are exactly two newlines before appending new content."""
    if not content:
        return ""
    if content.endswith("\n\n"):
        return ""
    if content.endswith("\n"):
        return "\n"
    return "\n\n"


def add_memory_entry(content: str, text: str) -> str:
    """Returns `content` with the fact appended under the memory section."""
    processed_text = text.strip().lstrip("-").strip()
    new_memory_item = f"- {processed_text}"

    header_index = content.find(MEMORY_SECTION_HEADER)
    if header_index == -1:
        separator = ensure_newline_separation(content)
        return f"{content}{separator}{MEMORY_SECTION_HEADER}\n{new_memory_item}\n"

    start_of_section = header_index + len(MEMORY_SECTION_HEADER)
    end_of_section = content.find("\n## ", start_of_section)
    if end_of_section == -1:
        end_of_section = len(content)

    section_content = content[start_of_section:end_of_section].strip()
    new_section_content = f"{section_content}\n{new_memory_item}".strip()

    before_section = content[:start_of_section].rstrip()
    after_section = content[end_of_section:].lstrip()
    if after_section:
        after_section = f"\n{after_section}"

    return f"{before_section}\n{new_section_content}\n{after_section}".rstrip() + "\n"


async def perform_add_memory_entry(text: str, memory_file_path: Path):
    """Adds a new memory entry to the specified memory file."""
    await aiofiles.os.makedirs(memory_file_path.parent, exist_ok=True)

    content = ""
    if await aiofiles.os.path.exists(memory_file_path):
        async with aiofiles.open(memory_file_path, encoding="utf-8") as f:
            content = await f.read()

    async with aiofiles.open(memory_file_path, "w", encoding="utf-8") as f:
        await f.write(add_memory_entry(content, text))


class MemoryTool(BaseTool[SaveMemoryParams]):
    """A tool for saving information to long-term memory."""

    NAME = "save_memory"

    def __init__(self, config: "Settings"):
        super().__init__(
            name=self.NAME,
            display_name="Save Memory",
            description="Saves a specific piece of information to long-term memory.",
            kind=ToolKind.WRITE,
            params_model=SaveMemoryParams,
        )
        self.memory_file_path = Path(config.config_dir) / DEFAULT_CONTEXT_FILENAME

    def validate_tool_params(self, params: SaveMemoryParams) -> str | None:
        if not params.fact.strip():
            return "'fact' must be a non-empty string."
        return None

    def get_description(self, params: SaveMemoryParams) -> str:
        return f"Remember: {params.fact.strip()}"

    def get_affected_paths(self, params: SaveMemoryParams) -> list[str]:
        return [str(self.memory_file_path)]

    async def execute(
        self, params: SaveMemoryParams, context: ExecutionContext
    ) -> ToolResult:
        await perform_add_memory_entry(params.fact, self.memory_file_path)
        success_message = f'Okay, I\'ve remembered that: "{params.fact.strip()}"'
        return ToolResult.ok(
            {"success": True, "message": success_message},
            display_content=success_message,
        )
