"""
Helpers shared by the file tools.
"""

from pathlib import Path

import aiofiles
import aiofiles.os

from blade_core.utils.paths import is_within_root


def validate_workspace_path(file_path: str, root_directory: Path) -> str | None:
    p = Path(file_path)
    if not p.is_absolute():
        return f"File path must be absolute: {file_path}"
    if not is_within_root(p, root_directory):
        return f"File path must be within the root directory ({root_directory}): {file_path}"
    return None


def extension_rule(tool_name: str, file_path: str) -> str:
    """`tool(file_path:**/*.ext)`, or the bare tool name for files without one."""
    suffix = Path(file_path).suffix
    if not suffix:
        return tool_name
    return f"{tool_name}(file_path:**/*{suffix})"


async def read_text_if_exists(file_path: Path) -> tuple[str, bool]:
    if not await aiofiles.os.path.isfile(file_path):
        return "", False
    async with aiofiles.open(file_path, encoding="utf-8") as f:
        return await f.read(), True


async def write_text(file_path: Path, content: str) -> None:
    await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
    async with aiofiles.open(file_path, "w", encoding="utf-8") as f:
        await f.write(content)
