"""
The graph that carries one tool call from validation to its result.

    validating -> policy_check -> [awaiting_confirmation] -> executing

Any node may end the call by setting `result`; the conditional edges
route straight to END once it is present.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph
from pydantic import BaseModel

from blade_core.core.events import EventEmitter, PipelineEventType
from blade_core.core.states import PipelineState
from blade_core.core.types import PermissionMode, PipelineStatus
from blade_core.permission.modes import EffectiveDecision, resolve_effective_decision
from blade_core.permission.policy import PolicyDecision
from blade_core.permission.sensitive import (
    SensitiveFileDetector,
    SensitivityLevel,
    find_dangerous_paths,
)
from blade_core.tools.base.registry import ToolRegistry
from blade_core.tools.common import (
    ConfirmationDetails,
    ConfirmationResponse,
    ConfirmationScope,
    ConfirmationType,
    PlanConfirmationDetails,
    ToolErrorKind,
    ToolResult,
)
from blade_core.utils.errors import OperationCancelledError, get_error_message

logger = logging.getLogger(__name__)

RememberApproval = Callable[[Any, Any], Awaitable[None]]


class GraphNodeContext:
    """Collaborators shared by every node; nothing here is per-call."""

    def __init__(
        self,
        registry: ToolRegistry,
        emitter: EventEmitter,
        sensitive_detector: SensitiveFileDetector | None = None,
        remember_approval: RememberApproval | None = None,
        session_approvals: set[str] | None = None,
    ):
        self.registry = registry
        self.emitter = emitter
        self.sensitive_detector = sensitive_detector
        self.remember_approval = remember_approval
        self.session_approvals = session_approvals


def params_as_mapping(params: Any) -> Mapping[str, Any]:
    if isinstance(params, BaseModel):
        return params.model_dump()
    if isinstance(params, Mapping):
        return params
    return {}


def approval_signature(tool_name: str, params: Any) -> str:
    return json.dumps(
        {"tool": tool_name, "params": params_as_mapping(params)},
        sort_keys=True,
        default=str,
    )


async def _enter(
    state: PipelineState, ctx: GraphNodeContext, status: PipelineStatus
) -> None:
    await ctx.emitter.emit(
        PipelineEventType.STATE_CHANGED,
        state["execution_id"],
        state["tool_name"],
        status=status.value,
    )


async def _finish(
    state: PipelineState,
    ctx: GraphNodeContext,
    status: PipelineStatus,
    result: ToolResult,
) -> dict[str, Any]:
    await _enter(state, ctx, status)
    return {"status": status, "result": result}


def _cancelled_result(tool_name: str) -> ToolResult:
    message = f"Tool call '{tool_name}' was cancelled."
    return ToolResult.failure(
        ToolErrorKind.CANCELLED,
        message,
        llm_content=f"{message} The operation was interrupted before it finished.",
        display_content="Cancelled.",
    )


async def _cancelled(state: PipelineState, ctx: GraphNodeContext):
    return await _finish(
        state, ctx, PipelineStatus.FAILED, _cancelled_result(state["tool_name"])
    )


async def validating_node(
    state: PipelineState, ctx: GraphNodeContext
) -> dict[str, Any]:
    """Resolves the tool and validates the raw parameters."""
    await _enter(state, ctx, PipelineStatus.VALIDATING)
    if state["context"].signal.is_set():
        return await _cancelled(state, ctx)

    tool_name = state["tool_name"]
    tool = ctx.registry.get(tool_name)
    if tool is None:
        message = f"Tool '{tool_name}' not found in registry."
        return await _finish(
            state,
            ctx,
            PipelineStatus.FAILED,
            ToolResult.failure(
                ToolErrorKind.NOT_FOUND,
                message,
                llm_content=f"{message} Available tools: "
                f"{', '.join(ctx.registry.list_names()) or 'none'}.",
            ),
        )

    params, error = tool.validator.validate(state["raw_params"])
    if error is None:
        error = tool.validate_tool_params(params)
    if error is not None:
        message = f"Invalid parameters for '{tool_name}': {error}"
        return await _finish(
            state,
            ctx,
            PipelineStatus.FAILED,
            ToolResult.failure(ToolErrorKind.VALIDATION_ERROR, message),
        )

    try:
        affected_paths = list(tool.get_affected_paths(params))
    except Exception as e:
        message = f"Invalid parameters for '{tool_name}': {get_error_message(e)}"
        return await _finish(
            state,
            ctx,
            PipelineStatus.FAILED,
            ToolResult.failure(ToolErrorKind.VALIDATION_ERROR, message),
        )

    return {"tool": tool, "params": params, "affected_paths": affected_paths}


def _apply_sensitive_guard(
    effective: EffectiveDecision,
    raw_decision: PolicyDecision,
    affected_paths: list[str],
    detector: SensitiveFileDetector,
) -> tuple[EffectiveDecision, list[str]]:
    hits = detector.filter_sensitive(affected_paths, SensitivityLevel.MEDIUM)
    if not hits:
        return effective, []

    risks = [f"{hit.path}: {hit.reason} ({hit.level.value})" for hit in hits]
    high = [hit for hit in hits if hit.level is SensitivityLevel.HIGH]
    if high and raw_decision is not PolicyDecision.ALLOW:
        return (
            effective.model_copy(
                update={
                    "decision": PolicyDecision.DENY,
                    "override": "sensitive:high",
                    "reason": f"Access to sensitive file '{high[0].path}' "
                    f"({high[0].reason}) requires an explicit allow rule.",
                }
            ),
            risks,
        )

    # Sensitive paths are always shown to the operator, allow rule or not.
    return (
        effective.model_copy(
            update={
                "decision": PolicyDecision.ASK,
                "confirmation_exempt": False,
                "override": f"sensitive:{hits[0].level.value}",
            }
        ),
        risks,
    )


def _policy_confirmation(
    tool: Any,
    effective: EffectiveDecision,
    affected_paths: list[str],
    risks: list[str],
    params: Any,
) -> ConfirmationDetails:
    lines = [tool.get_description(params)]
    if effective.matched_rule:
        lines.append(f"Matched rule: {effective.matched_rule}")
    else:
        lines.append(effective.reason)
    return ConfirmationDetails(
        type=ConfirmationType.GENERIC,
        title=f"Permission required: {tool.name}",
        message="\n".join(line for line in lines if line),
        tool_name=tool.name,
        affected_paths=affected_paths,
        risks=risks,
    )


async def policy_check_node(
    state: PipelineState, ctx: GraphNodeContext
) -> dict[str, Any]:
    """Computes the effective decision and any confirmation to request."""
    await _enter(state, ctx, PipelineStatus.POLICY_CHECK)
    context = state["context"]
    if context.signal.is_set():
        return await _cancelled(state, ctx)

    tool = state["tool"]
    params = state["params"]
    affected_paths = state["affected_paths"]
    mode = PermissionMode(context.permission_mode)

    check = state["policy_engine"].check(
        tool.name, params_as_mapping(params), affected_paths, context.workspace_root
    )
    effective = resolve_effective_decision(
        check, tool.kind, mode, tool.exits_plan_mode
    )

    if (
        effective.decision is PolicyDecision.ASK
        and not effective.plan_violation
        and ctx.session_approvals
        and approval_signature(tool.name, params) in ctx.session_approvals
    ):
        effective = effective.model_copy(
            update={
                "decision": PolicyDecision.ALLOW,
                "override": "remembered:session",
                "reason": "Approved earlier in this session.",
            }
        )

    if mode is not PermissionMode.YOLO and effective.decision is not PolicyDecision.DENY:
        dangerous = find_dangerous_paths(affected_paths, context.workspace_root)
        if dangerous:
            effective = effective.model_copy(
                update={
                    "decision": PolicyDecision.DENY,
                    "override": "dangerous_path",
                    "reason": "Access to dangerous system paths is not allowed: "
                    f"{', '.join(dangerous)}",
                }
            )

    risks: list[str] = []
    if (
        ctx.sensitive_detector is not None
        and mode is not PermissionMode.YOLO
        and effective.decision is not PolicyDecision.DENY
        and not effective.plan_violation
    ):
        effective, risks = _apply_sensitive_guard(
            effective, check.decision, affected_paths, ctx.sensitive_detector
        )

    update: dict[str, Any] = {"policy_check": check, "effective": effective}

    if effective.decision is PolicyDecision.DENY:
        if effective.matched_rule and effective.override is None:
            message = (
                f"Tool '{tool.name}' was blocked by permission rule "
                f"'{effective.matched_rule}'."
            )
        else:
            message = f"Tool '{tool.name}' was blocked. {effective.reason}"
        logger.info(message)
        update.update(
            await _finish(
                state,
                ctx,
                PipelineStatus.BLOCKED,
                ToolResult.failure(
                    ToolErrorKind.DENY_BLOCKED,
                    message,
                    llm_content=f"Permission denied: {message} Do not retry "
                    "this call; choose a different approach or ask the user.",
                    details={"matched_rule": effective.matched_rule},
                ),
            )
        )
        return update

    details: ConfirmationDetails | None = None
    source: str | None = None
    if effective.plan_violation:
        details = PlanConfirmationDetails(
            type=ConfirmationType.ENTER_PLAN_MODE,
            title=f"Plan mode: allow {tool.name} to make changes?",
            message=f"{effective.reason}\n{tool.get_description(params)}",
            tool_name=tool.name,
            affected_paths=affected_paths,
        )
        source = "plan"
    elif not effective.confirmation_exempt:
        try:
            predicate = await tool.requires_confirmation(params, context.signal)
            if isinstance(predicate, ConfirmationDetails):
                details, source = predicate, "tool"
            elif effective.decision is PolicyDecision.ASK:
                details = await tool.get_confirmation_details(
                    params, context.signal
                )
                source = "policy"
        except Exception as e:
            logger.exception(f"Confirmation check for '{tool.name}' failed")
            update.update(
                await _finish(
                    state,
                    ctx,
                    PipelineStatus.FAILED,
                    ToolResult.failure(
                        ToolErrorKind.EXECUTION_ERROR,
                        f"Error preparing '{tool.name}': {get_error_message(e)}",
                    ),
                )
            )
            return update

        if details is not None:
            details = details.model_copy(
                update={
                    "tool_name": details.tool_name or tool.name,
                    "affected_paths": details.affected_paths or affected_paths,
                    "risks": [*details.risks, *risks],
                }
            )
            if source == "policy" and tool.name not in details.title:
                details = details.model_copy(
                    update={"title": f"{tool.name}: {details.title}"}
                )
        elif source == "policy":
            details = _policy_confirmation(
                tool, effective, affected_paths, risks, params
            )

    if details is not None:
        logger.debug(f"'{tool.name}' needs confirmation ({source}).")
        update.update(
            {
                "status": PipelineStatus.AWAITING_CONFIRMATION,
                "confirmation_details": details,
                "confirmation_source": source,
            }
        )
    else:
        update["status"] = PipelineStatus.APPROVED
    return update


async def _wait_for_response(
    state: PipelineState, details: ConfirmationDetails
) -> ConfirmationResponse | None:
    """Returns None when the call is cancelled before an answer arrives."""
    context = state["context"]
    responder = context.confirmation_responder
    request = asyncio.ensure_future(responder.request_confirmation(details))
    cancelled = asyncio.ensure_future(context.signal.wait())
    try:
        done, _ = await asyncio.wait(
            {request, cancelled}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        pending = [task for task in (request, cancelled) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if request in done:
        return request.result()
    return None


async def awaiting_confirmation_node(
    state: PipelineState, ctx: GraphNodeContext
) -> dict[str, Any]:
    """Suspends this call until the operator answers or it is cancelled."""
    await _enter(state, ctx, PipelineStatus.AWAITING_CONFIRMATION)
    context = state["context"]
    if context.signal.is_set():
        return await _cancelled(state, ctx)

    tool = state["tool"]
    details = state["confirmation_details"]

    if context.confirmation_responder is None:
        message = (
            f"'{tool.name}' requires confirmation but no confirmation "
            "responder is available."
        )
        return await _finish(
            state,
            ctx,
            PipelineStatus.REJECTED,
            ToolResult.failure(
                ToolErrorKind.CONFIRMATION_REJECTED,
                message,
                llm_content=f"{message} The action was not performed.",
            ),
        )

    await ctx.emitter.emit(
        PipelineEventType.CONFIRMATION_REQUESTED,
        state["execution_id"],
        tool.name,
        details=details.model_dump(mode="json"),
    )

    try:
        response = await _wait_for_response(state, details)
    except Exception as e:
        logger.exception(f"Confirmation responder failed for '{tool.name}'")
        response = ConfirmationResponse(
            approved=False,
            reason=f"Confirmation failed: {get_error_message(e)}",
        )

    if response is None:
        return await _cancelled(state, ctx)

    if not response.approved:
        reason = response.reason or "The user declined this action."
        return {
            "confirmation_response": response,
            **await _finish(
                state,
                ctx,
                PipelineStatus.REJECTED,
                ToolResult.failure(
                    ToolErrorKind.CONFIRMATION_REJECTED,
                    f"User rejected '{tool.name}': {reason}",
                    llm_content=f"The user rejected the '{tool.name}' call "
                    f"and it was not performed. Reason: {reason}",
                    display_content=f"Rejected: {reason}",
                ),
            ),
        }

    if (
        response.scope is ConfirmationScope.SESSION
        and ctx.session_approvals is not None
        and state.get("confirmation_source") != "plan"
    ):
        ctx.session_approvals.add(approval_signature(tool.name, state["params"]))
    elif response.scope is ConfirmationScope.ALWAYS and ctx.remember_approval:
        await ctx.remember_approval(tool, state["params"])

    await _enter(state, ctx, PipelineStatus.APPROVED)
    return {
        "confirmation_response": response,
        "status": PipelineStatus.APPROVED,
    }


def normalize_result(raw: Any) -> ToolResult:
    """Coerces whatever an executor returned into a complete ToolResult."""
    if isinstance(raw, ToolResult):
        result = raw
    elif isinstance(raw, str):
        result = ToolResult.ok(raw)
    elif isinstance(raw, Mapping) and (
        "llm_content" in raw or "display_content" in raw or "success" in raw
    ):
        result = ToolResult.model_validate(dict(raw))
    elif raw is None:
        result = ToolResult.ok("Tool execution succeeded.")
    else:
        result = ToolResult.ok(raw, display_content=str(raw))

    updates: dict[str, Any] = {}
    if result.llm_content in (None, ""):
        updates["llm_content"] = result.display_content or (
            result.error.message
            if result.error
            else "Tool execution succeeded."
        )
    if not result.display_content:
        content = updates.get("llm_content", result.llm_content)
        updates["display_content"] = (
            content if isinstance(content, str) else str(content)
        )
    return result.model_copy(update=updates) if updates else result


async def executing_node(
    state: PipelineState, ctx: GraphNodeContext
) -> dict[str, Any]:
    """Runs the executor and converts any fault into a failed result."""
    context = state["context"]
    if context.signal.is_set():
        return await _cancelled(state, ctx)

    await _enter(state, ctx, PipelineStatus.EXECUTING)
    tool = state["tool"]
    try:
        raw = await tool.execute(state["params"], context)
    except OperationCancelledError:
        return await _cancelled(state, ctx)
    except asyncio.CancelledError:
        if context.signal.is_set():
            return await _cancelled(state, ctx)
        raise
    except Exception as e:
        logger.exception(f"Tool '{tool.name}' raised during execution")
        message = f"Error executing tool '{tool.name}': {get_error_message(e)}"
        return await _finish(
            state,
            ctx,
            PipelineStatus.FAILED,
            ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR,
                message,
                details={"exception": e.__class__.__name__},
            ),
        )

    try:
        result = normalize_result(raw)
    except ValueError as e:
        message = (
            f"Tool '{tool.name}' returned an unusable result: "
            f"{get_error_message(e)}"
        )
        logger.error(message)
        return await _finish(
            state,
            ctx,
            PipelineStatus.FAILED,
            ToolResult.failure(ToolErrorKind.EXECUTION_ERROR, message),
        )

    status = PipelineStatus.COMPLETED if result.success else PipelineStatus.FAILED
    return await _finish(state, ctx, status, result)


def _route(next_node: str) -> Callable[[PipelineState], str]:
    def route(state: PipelineState) -> str:
        if state.get("result") is not None:
            return "end"
        return next_node

    return route


def _route_after_policy(state: PipelineState) -> str:
    if state.get("result") is not None:
        return "end"
    if state.get("status") == PipelineStatus.AWAITING_CONFIRMATION:
        return "awaiting_confirmation"
    return "executing"


def build_execution_graph(ctx: GraphNodeContext) -> CompiledStateGraph:
    """
    Creates the tool execution graph. Compile once, invoke per call.
    """
    graph = StateGraph(PipelineState)

    async def validating(state: PipelineState) -> dict[str, Any]:
        return await validating_node(state, ctx)

    async def policy_check(state: PipelineState) -> dict[str, Any]:
        return await policy_check_node(state, ctx)

    async def awaiting_confirmation(state: PipelineState) -> dict[str, Any]:
        return await awaiting_confirmation_node(state, ctx)

    async def executing(state: PipelineState) -> dict[str, Any]:
        return await executing_node(state, ctx)

    # Add nodes
    graph.add_node("validating", validating)
    graph.add_node("policy_check", policy_check)
    graph.add_node("awaiting_confirmation", awaiting_confirmation)
    graph.add_node("executing", executing)

    # Add edges
    graph.set_entry_point("validating")
    graph.add_conditional_edges(
        "validating",
        _route("policy_check"),
        {"policy_check": "policy_check", "end": END},
    )
    graph.add_conditional_edges(
        "policy_check",
        _route_after_policy,
        {
            "awaiting_confirmation": "awaiting_confirmation",
            "executing": "executing",
            "end": END,
        },
    )
    graph.add_conditional_edges(
        "awaiting_confirmation",
        _route("executing"),
        {"executing": "executing", "end": END},
    )
    graph.add_edge("executing", END)

    return graph.compile()
