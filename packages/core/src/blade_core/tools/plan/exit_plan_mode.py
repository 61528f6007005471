from pydantic import BaseModel, Field

from blade_core.core.cancellation import CancelSignal
from blade_core.core.context import ExecutionContext
from blade_core.core.types import PermissionMode, ToolKind
from blade_core.tools.base.tool_base import BaseTool
from blade_core.tools.common import (
    ConfirmationType,
    PlanConfirmationDetails,
    ToolResult,
)


class ExitPlanModeParams(BaseModel):
    plan: str = Field(
        ..., description="The implementation plan to present for approval (markdown)."
    )


class ExitPlanModeTool(BaseTool[ExitPlanModeParams]):
    """
    Presents the finished plan and asks to leave plan mode.

    The only mutating action allowed to run in plan mode; approval is
    always requested and switching the session mode is left to the caller
    (see the `target_mode` metadata).
    """

    NAME = "exit_plan_mode"
    exits_plan_mode = True

    def __init__(self):
        super().__init__(
            name=self.NAME,
            display_name="Exit Plan Mode",
            description="Call when the plan is complete and ready for the user to approve.",
            kind=ToolKind.EXECUTE,
            params_model=ExitPlanModeParams,
        )

    def validate_tool_params(self, params: ExitPlanModeParams) -> str | None:
        if not params.plan.strip():
            return "The plan must not be empty."
        return None

    def get_description(self, params: ExitPlanModeParams) -> str:
        return "Present plan for approval"

    def abstract_rule(self, params: ExitPlanModeParams) -> str | None:
        # Every plan needs its own approval.
        return ""

    async def requires_confirmation(
        self, params: ExitPlanModeParams, signal: CancelSignal | None = None
    ) -> PlanConfirmationDetails:
        return PlanConfirmationDetails(
            type=ConfirmationType.EXIT_PLAN_MODE,
            title="Ready to code?",
            message="Approve the plan to leave plan mode and start making changes.",
            plan=params.plan,
        )

    async def execute(
        self, params: ExitPlanModeParams, context: ExecutionContext
    ) -> ToolResult:
        return ToolResult.ok(
            "The user approved the plan. Plan mode is over; proceed with the implementation.",
            display_content="Plan approved.",
            target_mode=PermissionMode.DEFAULT.value,
        )
