"""
LangGraph state for one pass through the execution pipeline.
"""

from typing import Any, TypedDict

from blade_core.core.context import ExecutionContext
from blade_core.core.types import PipelineStatus
from blade_core.permission.modes import EffectiveDecision
from blade_core.permission.policy import PolicyCheckResult, PolicyEngine
from blade_core.tools.common import ConfirmationDetails, ConfirmationResponse, ToolResult


class PipelineState(TypedDict, total=False):
    # Request
    execution_id: str
    tool_name: str
    raw_params: Any
    context: ExecutionContext
    # Policy snapshot taken when the call started
    policy_engine: PolicyEngine

    # Progress
    status: PipelineStatus
    tool: Any  # Tool protocol; resolved from the registry
    params: Any  # validated parameters
    affected_paths: list[str]
    policy_check: PolicyCheckResult | None
    effective: EffectiveDecision | None
    confirmation_details: ConfirmationDetails | None
    confirmation_source: str | None  # "plan", "tool" or "policy"
    confirmation_response: ConfirmationResponse | None
    # Set by the node that ends the call
    result: ToolResult | None
