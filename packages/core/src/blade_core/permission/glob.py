"""
Path-glob matching used by permission rules.

Supported syntax:

- `**` matches zero or more whole path segments (`**/.env`, `src/**`)
- `*` matches any run of characters inside a single segment
- `?` matches exactly one character other than `/`
- `{a,b,...}` is alternation; alternatives may contain globs and nest
- `[abc]` / `[!abc]` character classes
- `\\x` matches `x` literally

Matching is case-sensitive, anchored at both ends and treats dot-files
like any other name.
"""

import re
from collections.abc import Iterable
from functools import lru_cache

from blade_core.utils.paths import to_posix

_MAGIC_CHARS = frozenset("*?[{")


def has_glob_magic(pattern: str) -> bool:
    """Returns True if the pattern contains any glob metacharacter."""
    return any(char in _MAGIC_CHARS for char in pattern)


def _find_closing_brace(pattern: str, start: int) -> int:
    depth = 0
    i = start
    while i < len(pattern):
        char = pattern[i]
        if char == "\\":
            i += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _split_alternatives(body: str) -> list[str]:
    """Splits the body of a brace group on top-level commas."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\" and i + 1 < len(body):
            current.append(body[i : i + 2])
            i += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            i += 1
            continue
        current.append(char)
        i += 1
    parts.append("".join(current))
    return parts


def _find_class_end(pattern: str, start: int) -> int:
    j = start + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 1
    return j if j < len(pattern) else -1


def _is_trailing_globstar(pattern: str, start: int) -> bool:
    rest = pattern[start:]
    return len(rest) >= 2 and set(rest) == {"*"}


def translate(pattern: str) -> str:
    """Translates a glob pattern into an (unanchored) regular expression."""
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]

        if char == "/":
            # "dir/**" also matches "dir" itself
            if _is_trailing_globstar(pattern, i + 1):
                out.append("(?:/.*)?")
                break
            out.append("/")
            i += 1

        elif char == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            at_segment_start = i == 0 or pattern[i - 1] == "/"
            if j - i >= 2 and at_segment_start:
                if j == n:
                    out.append(".*")
                elif pattern[j] == "/":
                    out.append("(?:.*/)?")
                    j += 1
                else:
                    out.append("[^/]*")
            else:
                out.append("[^/]*")
            i = j

        elif char == "?":
            out.append("[^/]")
            i += 1

        elif char == "{":
            close = _find_closing_brace(pattern, i)
            alternatives = (
                _split_alternatives(pattern[i + 1 : close])
                if close != -1
                else []
            )
            if len(alternatives) < 2:
                out.append(re.escape(char))
                i += 1
                continue
            out.append(
                "(?:" + "|".join(translate(alt) for alt in alternatives) + ")"
            )
            i = close + 1

        elif char == "[":
            end = _find_class_end(pattern, i)
            if end == -1:
                out.append(re.escape(char))
                i += 1
                continue
            body = pattern[i + 1 : end].replace("\\", "\\\\")
            if body and body[0] in "!^":
                body = "^/" + body[1:]
            out.append(f"[{body}]")
            i = end + 1

        elif char == "\\":
            if i + 1 < n:
                out.append(re.escape(pattern[i + 1]))
                i += 2
            else:
                out.append(re.escape(char))
                i += 1

        else:
            out.append(re.escape(char))
            i += 1

    return "".join(out)


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compiles and caches the regular expression for a glob pattern."""
    return re.compile(translate(pattern), re.DOTALL)


def glob_match(value: str, pattern: str) -> bool:
    """Returns True if the whole value matches the glob pattern."""
    return compile_glob(pattern).fullmatch(to_posix(value)) is not None


def match_any(values: Iterable[str], pattern: str) -> bool:
    """Returns True if at least one of the values matches the pattern."""
    regex = compile_glob(pattern)
    return any(regex.fullmatch(to_posix(value)) for value in values)
