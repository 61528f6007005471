from pathlib import Path

BLADE_DIR = ".blade"


def shorten_path(file_path: str, max_len: int = 35) -> str:
    """Shortens a path string if it exceeds maxLen, prioritizing start and end."""
    if len(file_path) <= max_len:
        return file_path

    p = Path(file_path)
    parts = [part for part in p.parts if part != p.anchor and part != "\\"]

    if len(parts) <= 2:
        return f"...{file_path[-(max_len - 3) :]}"

    first_dir = parts[0]
    filename = parts[-1]
    ellipsis = "..."
    separator = "/"

    end_parts = [filename]
    current_len = len(first_dir) + len(ellipsis) + len(filename) + 2

    for i in range(len(parts) - 2, 0, -1):
        part = parts[i]
        if current_len + len(part) + 1 > max_len:
            break
        end_parts.insert(0, part)
        current_len += len(part) + 1

    return f"{first_dir}{separator}{ellipsis}{separator}{separator.join(end_parts)}"


def make_relative(target_path: Path, root_directory: Path) -> str:
    """Calculates the relative path, returning '.' for the same path."""
    try:
        relative_path = target_path.relative_to(root_directory)
        return str(relative_path) or "."
    except ValueError:
        # This can happen if target_path is not within root_directory
        return str(target_path)


def is_within_root(path_to_check: Path, root_directory: Path) -> bool:
    """Checks if a path is within a given root directory."""
    try:
        path_to_check.resolve().relative_to(root_directory.resolve())
        return True
    except ValueError:
        return False


def to_posix(path: str) -> str:
    """Normalizes separators and strips a leading './' for glob matching."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def get_project_config_dir(project_root: str | Path) -> Path:
    """Returns the per-project configuration directory."""
    return Path(project_root) / BLADE_DIR
