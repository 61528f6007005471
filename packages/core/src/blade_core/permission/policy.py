"""
The permission policy engine.

Decisions are resolved in a fixed order: deny rules first, then allow
rules, then ask rules, and finally a default of ASK. Within a list the
first structural match wins. The engine holds an immutable snapshot of
the configuration; a configuration change produces a new engine.
"""

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from blade_core.config.permissions import PermissionConfig, RuleList

from .rules import PermissionRule, parse_rules

logger = logging.getLogger(__name__)


class PolicyDecision(str, Enum):
    ALLOW = "allow"
    ASK = "ask"
    DENY = "deny"


class PolicyCheckResult(BaseModel):
    """The decision for one proposed tool call and the rule behind it."""

    model_config = ConfigDict(frozen=True)

    decision: PolicyDecision
    matched_rule: str | None = None
    reason: str = ""


_ORDER: tuple[tuple[RuleList, PolicyDecision], ...] = (
    (RuleList.DENY, PolicyDecision.DENY),
    (RuleList.ALLOW, PolicyDecision.ALLOW),
    (RuleList.ASK, PolicyDecision.ASK),
)


class PolicyEngine:
    """Evaluates proposed tool calls against deny, allow and ask rules."""

    def __init__(self, config: PermissionConfig | None = None):
        self._config = config or PermissionConfig()
        self._rules: dict[RuleList, tuple[PermissionRule, ...]] = {
            list_name: parse_rules(self._config.rules(list_name))
            for list_name, _ in _ORDER
        }

    @property
    def config(self) -> PermissionConfig:
        return self._config

    def rules(self, list_name: RuleList | str) -> tuple[PermissionRule, ...]:
        return self._rules[RuleList(list_name)]

    def check(
        self,
        tool_name: str,
        params: Mapping[str, Any] | None = None,
        affected_paths: Iterable[str] = (),
        workspace_root: Path | None = None,
    ) -> PolicyCheckResult:
        """Returns the policy decision for a proposed tool call."""
        paths = list(affected_paths)
        for list_name, decision in _ORDER:
            for rule in self._rules[list_name]:
                if rule.matches(tool_name, params, paths, workspace_root):
                    logger.debug(
                        "Tool '%s' matched %s rule '%s'",
                        tool_name,
                        list_name.value,
                        rule.raw,
                    )
                    return PolicyCheckResult(
                        decision=decision,
                        matched_rule=rule.raw,
                        reason=f"Matched {list_name.value} rule: {rule.raw}",
                    )

        return PolicyCheckResult(
            decision=PolicyDecision.ASK,
            reason="No permission rule matched; confirmation required by default.",
        )

    def with_config(self, config: PermissionConfig) -> "PolicyEngine":
        return PolicyEngine(config)
