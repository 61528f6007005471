"""
Permission rule parsing and structural matching.

A rule is written as `ToolName`, `ToolName(glob)` or
`ToolName(paramKey:glob)`:

    Read                        every Read call
    Read(file_path:**/.env)     Read calls whose file_path matches the glob
    Bash(command:git *)         Bash calls whose command matches the glob
    Write(src/**)               Write calls touching a path under src/
    *                           every call of every tool
"""

import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from blade_core.utils.errors import InvalidPermissionRuleError
from blade_core.utils.paths import is_within_root, make_relative

from .glob import glob_match, has_glob_magic, match_any

_RULE_RE = re.compile(r"^\s*([A-Za-z0-9_.\-*?]+)\s*(?:\((.*)\))?\s*$", re.DOTALL)
_PARAM_KEY_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*:(.*)$", re.DOTALL)
_MATCH_ANYTHING = ("*", "**")


class PermissionRule(BaseModel):
    """An immutable, parsed permission rule."""

    model_config = ConfigDict(frozen=True)

    raw: str
    tool_name: str
    param_key: str | None = None
    glob_pattern: str | None = None

    @classmethod
    def parse(cls, rule: str) -> "PermissionRule":
        if not isinstance(rule, str) or not rule.strip():
            raise InvalidPermissionRuleError(str(rule), "rule is empty")

        match = _RULE_RE.match(rule)
        if not match:
            raise InvalidPermissionRuleError(
                rule, "expected 'Tool' or 'Tool(paramKey:pattern)'"
            )

        tool_name, body = match.group(1), match.group(2)
        if body is None:
            return cls(raw=rule.strip(), tool_name=tool_name)

        body = body.strip()
        if not body:
            raise InvalidPermissionRuleError(rule, "empty parameter filter")

        param_key = None
        key_match = _PARAM_KEY_RE.match(body)
        if key_match:
            param_key = key_match.group(1)
            body = key_match.group(2).strip()
            if not body:
                raise InvalidPermissionRuleError(
                    rule, f"missing pattern for '{param_key}'"
                )

        return cls(
            raw=rule.strip(),
            tool_name=tool_name,
            param_key=param_key,
            glob_pattern=body,
        )

    @property
    def has_param_filter(self) -> bool:
        return self.glob_pattern is not None

    def matches_tool(self, tool_name: str) -> bool:
        if self.tool_name in _MATCH_ANYTHING:
            return True
        if has_glob_magic(self.tool_name):
            return glob_match(tool_name, self.tool_name)
        return self.tool_name == tool_name

    def matches(
        self,
        tool_name: str,
        params: Mapping[str, Any] | None = None,
        affected_paths: Iterable[str] = (),
        workspace_root: Path | None = None,
    ) -> bool:
        """Structural match of a proposed tool call against this rule."""
        if not self.matches_tool(tool_name):
            return False
        if not self.has_param_filter:
            return True
        if self.glob_pattern in _MATCH_ANYTHING:
            return True

        params = params or {}
        paths = _expand_paths(affected_paths, workspace_root)

        if self.param_key is not None:
            if self.param_key in params:
                candidates = _string_values(params[self.param_key])
                if workspace_root is not None:
                    candidates = _expand_paths(candidates, workspace_root)
            else:
                candidates = paths
        else:
            candidates = paths + [
                value
                for value in params.values()
                if isinstance(value, str)
            ]

        return match_any(candidates, self.glob_pattern)

    def __str__(self) -> str:
        return self.raw


def _string_values(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _expand_paths(
    paths: Iterable[str], workspace_root: Path | None
) -> list[str]:
    """Adds the workspace-relative form of every path inside the workspace."""
    expanded: list[str] = []
    for path in paths:
        expanded.append(path)
        if workspace_root is None:
            continue
        p = Path(path)
        if p.is_absolute() and is_within_root(p, workspace_root):
            relative = make_relative(p.resolve(), workspace_root.resolve())
            if relative not in expanded:
                expanded.append(relative)
    return expanded


def parse_rules(rules: Iterable[str]) -> tuple[PermissionRule, ...]:
    return tuple(PermissionRule.parse(rule) for rule in rules)
