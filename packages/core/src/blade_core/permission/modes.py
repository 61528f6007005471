"""
Permission-mode overrides.

Turns a raw policy decision into the effective decision the pipeline
acts on:

- YOLO: every call proceeds, deny rules and confirmations included.
- DENY outside YOLO is final.
- PLAN: mutating tools are forced to ASK as a plan violation, except
  the plan-exit action.
- ReadOnly tools never need confirmation.
- AUTO_EDIT: Edit tools never need confirmation.
- Otherwise the raw decision stands.
"""

from pydantic import BaseModel, ConfigDict

from blade_core.core.types import PermissionMode, ToolKind

from .policy import PolicyCheckResult, PolicyDecision


class EffectiveDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision: PolicyDecision
    matched_rule: str | None = None
    reason: str = ""
    # Skip every confirmation source, the tool's own predicate included.
    confirmation_exempt: bool = False
    plan_violation: bool = False
    override: str | None = None


def resolve_effective_decision(
    check: PolicyCheckResult,
    kind: ToolKind,
    mode: PermissionMode,
    exits_plan_mode: bool = False,
) -> EffectiveDecision:
    mode = PermissionMode(mode)
    kind = ToolKind(kind)
    base = {"matched_rule": check.matched_rule, "reason": check.reason}

    if mode is PermissionMode.YOLO:
        return EffectiveDecision(
            decision=PolicyDecision.ALLOW,
            confirmation_exempt=True,
            override="mode:yolo" if check.decision != PolicyDecision.ALLOW else None,
            **base,
        )

    if check.decision is PolicyDecision.DENY:
        return EffectiveDecision(decision=PolicyDecision.DENY, **base)

    if mode is PermissionMode.PLAN and kind.is_mutating and not exits_plan_mode:
        return EffectiveDecision(
            decision=PolicyDecision.ASK,
            plan_violation=True,
            override="mode:plan",
            matched_rule=check.matched_rule,
            reason="Plan mode: changes to the workspace need approval.",
        )

    if kind is ToolKind.READ_ONLY:
        return EffectiveDecision(
            decision=PolicyDecision.ALLOW,
            confirmation_exempt=True,
            override=(
                f"mode:{mode.value}:readonly"
                if check.decision != PolicyDecision.ALLOW
                else None
            ),
            **base,
        )

    if mode is PermissionMode.AUTO_EDIT and kind is ToolKind.EDIT:
        return EffectiveDecision(
            decision=PolicyDecision.ALLOW,
            confirmation_exempt=True,
            override=(
                "mode:autoEdit:edit"
                if check.decision != PolicyDecision.ALLOW
                else None
            ),
            **base,
        )

    return EffectiveDecision(decision=check.decision, **base)
