import difflib

DEFAULT_DIFF_CONTEXT_LINES = 3


def unified_diff(
    original: str, updated: str, file_name: str, label: str = "Proposed"
) -> str:
    return "".join(
        difflib.unified_diff(
            original.splitlines(keepends=True),
            updated.splitlines(keepends=True),
            fromfile=f"Original: {file_name}",
            tofile=f"{label}: {file_name}",
            n=DEFAULT_DIFF_CONTEXT_LINES,
        )
    )
