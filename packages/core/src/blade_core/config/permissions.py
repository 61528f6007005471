"""
Permission configuration snapshots and their on-disk storage.

The configuration is persisted as JSON objects with `allow`, `ask` and
`deny` string arrays. Two files are merged: the user-wide file under the
config directory and the project file under `<project>/.blade/`. New
rules are always appended to the project file.
"""

import asyncio
import json
import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from blade_core.permission.rules import PermissionRule
from blade_core.utils.errors import (
    InvalidPermissionRuleError,
    PermissionConfigError,
)
from blade_core.utils.paths import get_project_config_dir

logger = logging.getLogger(__name__)

PERMISSIONS_FILENAME = "permissions.json"


class RuleList(str, Enum):
    DENY = "deny"
    ALLOW = "allow"
    ASK = "ask"


def _dedupe(rules: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for rule in rules:
        seen.setdefault(rule.strip(), None)
    return tuple(seen)


class PermissionConfig(BaseModel):
    """An immutable snapshot of the deny, allow and ask rule lists."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    deny: tuple[str, ...] = ()
    allow: tuple[str, ...] = ()
    ask: tuple[str, ...] = ()

    @field_validator("deny", "allow", "ask", mode="before")
    @classmethod
    def _normalize(cls, value):
        if value is None:
            return ()
        if isinstance(value, str) or not all(isinstance(r, str) for r in value):
            raise ValueError("expected a list of rule strings")
        return _dedupe(value)

    @field_validator("deny", "allow", "ask")
    @classmethod
    def _check_rules(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for rule in value:
            PermissionRule.parse(rule)
        return value

    def rules(self, list_name: RuleList | str) -> tuple[str, ...]:
        return getattr(self, RuleList(list_name).value)

    def with_rule(
        self, rule: str, list_name: RuleList | str = RuleList.ALLOW
    ) -> "PermissionConfig":
        """Returns a new snapshot with the rule appended to the given list."""
        name = RuleList(list_name).value
        updated = self.model_dump()
        updated[name] = [*updated[name], rule]
        return PermissionConfig(**updated)

    def merged(self, other: "PermissionConfig") -> "PermissionConfig":
        return PermissionConfig(
            deny=[*self.deny, *other.deny],
            allow=[*self.allow, *other.allow],
            ask=[*self.ask, *other.ask],
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "allow": list(self.allow),
                "ask": list(self.ask),
                "deny": list(self.deny),
            },
            indent=2,
        )


class PermissionStore:
    """Loads, merges and appends to the permission configuration files."""

    def __init__(self, project_root: Path, config_dir: Path | None = None):
        self.project_path = (
            get_project_config_dir(project_root) / PERMISSIONS_FILENAME
        )
        self.user_path = (
            config_dir / PERMISSIONS_FILENAME if config_dir else None
        )
        self._lock = asyncio.Lock()

    async def _read(self, path: Path) -> PermissionConfig:
        if not await aiofiles.os.path.exists(path):
            return PermissionConfig()
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw = await f.read()
            data = json.loads(raw) if raw.strip() else {}
            if not isinstance(data, dict):
                raise PermissionConfigError(
                    f"{path}: expected a JSON object with allow/ask/deny lists"
                )
            return PermissionConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise PermissionConfigError(f"{path}: {e}") from e
        except OSError as e:
            raise PermissionConfigError(f"Failed to read {path}: {e}") from e

    async def _write(self, path: Path, config: PermissionConfig):
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(config.to_json() + "\n")
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            raise PermissionConfigError(f"Failed to write {path}: {e}") from e

    async def load(self) -> PermissionConfig:
        """Returns the merged user and project configuration."""
        config = PermissionConfig()
        if self.user_path is not None:
            config = config.merged(await self._read(self.user_path))
        config = config.merged(await self._read(self.project_path))
        logger.debug(
            "Loaded permissions: %d deny, %d allow, %d ask",
            len(config.deny),
            len(config.allow),
            len(config.ask),
        )
        return config

    async def append_rule(
        self, rule: str, list_name: RuleList | str = RuleList.ALLOW
    ) -> PermissionConfig:
        """
        Appends a rule to the project file and returns the new merged snapshot.

        Identical entries already present in the list are collapsed into one.
        """
        try:
            PermissionRule.parse(rule)
        except InvalidPermissionRuleError as e:
            raise PermissionConfigError(str(e)) from e

        async with self._lock:
            project = await self._read(self.project_path)
            updated = project.with_rule(rule, list_name)
            await self._write(self.project_path, updated)
            if updated != project:
                logger.info(
                    "Added %s rule '%s' to %s",
                    RuleList(list_name).value,
                    rule,
                    self.project_path,
                )
            return await self.load()
