import pytest

from blade_core.core.types import PermissionMode, ToolKind
from blade_core.permission.modes import resolve_effective_decision
from blade_core.permission.policy import PolicyCheckResult, PolicyDecision

ALLOW = PolicyCheckResult(decision=PolicyDecision.ALLOW, matched_rule="Tool")
ASK = PolicyCheckResult(decision=PolicyDecision.ASK)
DENY = PolicyCheckResult(decision=PolicyDecision.DENY, matched_rule="Tool")

MUTATING = [ToolKind.WRITE, ToolKind.EDIT, ToolKind.EXECUTE]


class TestYoloMode:
    @pytest.mark.parametrize("check", [ALLOW, ASK, DENY])
    @pytest.mark.parametrize("kind", list(ToolKind))
    def test_everything_proceeds_without_confirmation(self, check, kind):
        effective = resolve_effective_decision(check, kind, PermissionMode.YOLO)
        assert effective.decision == PolicyDecision.ALLOW
        assert effective.confirmation_exempt

    def test_override_recorded_for_bypassed_deny(self):
        effective = resolve_effective_decision(DENY, ToolKind.EXECUTE, "yolo")
        assert effective.override == "mode:yolo"
        assert effective.matched_rule == "Tool"


class TestDenyIsFinal:
    @pytest.mark.parametrize(
        "mode", [PermissionMode.DEFAULT, PermissionMode.AUTO_EDIT, PermissionMode.PLAN]
    )
    @pytest.mark.parametrize("kind", list(ToolKind))
    def test_deny_survives_every_mode_but_yolo(self, mode, kind):
        effective = resolve_effective_decision(DENY, kind, mode)
        assert effective.decision == PolicyDecision.DENY


class TestPlanMode:
    @pytest.mark.parametrize("kind", MUTATING)
    @pytest.mark.parametrize("check", [ALLOW, ASK])
    def test_mutating_tools_forced_to_ask(self, kind, check):
        effective = resolve_effective_decision(check, kind, PermissionMode.PLAN)
        assert effective.decision == PolicyDecision.ASK
        assert effective.plan_violation

    def test_plan_exit_action_is_not_a_violation(self):
        effective = resolve_effective_decision(
            ASK, ToolKind.EXECUTE, PermissionMode.PLAN, exits_plan_mode=True
        )
        assert not effective.plan_violation
        assert effective.decision == PolicyDecision.ASK

    def test_read_only_tools_run(self):
        effective = resolve_effective_decision(ASK, ToolKind.READ_ONLY, PermissionMode.PLAN)
        assert effective.decision == PolicyDecision.ALLOW
        assert effective.confirmation_exempt


class TestAutoEditMode:
    def test_edit_tools_are_exempt(self):
        effective = resolve_effective_decision(ASK, ToolKind.EDIT, PermissionMode.AUTO_EDIT)
        assert effective.decision == PolicyDecision.ALLOW
        assert effective.confirmation_exempt
        assert effective.override == "mode:autoEdit:edit"

    @pytest.mark.parametrize("kind", [ToolKind.WRITE, ToolKind.EXECUTE])
    def test_other_kinds_keep_the_raw_decision(self, kind):
        effective = resolve_effective_decision(ASK, kind, PermissionMode.AUTO_EDIT)
        assert effective.decision == PolicyDecision.ASK
        assert not effective.confirmation_exempt


class TestDefaultMode:
    def test_read_only_skips_confirmation_on_ask(self):
        effective = resolve_effective_decision(ASK, ToolKind.READ_ONLY, PermissionMode.DEFAULT)
        assert effective.decision == PolicyDecision.ALLOW
        assert effective.confirmation_exempt

    @pytest.mark.parametrize("kind", MUTATING)
    @pytest.mark.parametrize("check", [ALLOW, ASK])
    def test_mutating_tools_honour_raw_decision(self, kind, check):
        effective = resolve_effective_decision(check, kind, PermissionMode.DEFAULT)
        assert effective.decision == check.decision
        assert not effective.confirmation_exempt
        assert effective.override is None
