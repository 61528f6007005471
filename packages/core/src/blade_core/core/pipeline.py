"""
The execution pipeline: the single entry point through which the agent
loop runs a tool call the model proposed.

`ExecutionPipeline.execute` never raises for validation, policy,
confirmation, cancellation or executor failures; every outcome is a
`ToolResult`.
"""

import asyncio
import logging
import time
import uuid
from collections import Counter, deque
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from blade_core.config.permissions import PermissionConfig, PermissionStore, RuleList
from blade_core.core.context import ExecutionContext
from blade_core.core.events import EventEmitter, PipelineEventType
from blade_core.core.graphs.execution_graph import (
    GraphNodeContext,
    build_execution_graph,
    params_as_mapping,
)
from blade_core.core.states import PipelineState
from blade_core.core.types import PermissionMode, PipelineStatus
from blade_core.permission.policy import PolicyEngine
from blade_core.permission.sensitive import SensitiveFileDetector
from blade_core.telemetry import (
    PermissionRuleAddedEvent,
    ToolCallDecision,
    ToolCallEvent,
    log_permission_rule_added,
    log_tool_call,
)
from blade_core.tools.base.registry import ToolRegistry
from blade_core.tools.common import ToolErrorKind, ToolResult
from blade_core.utils.errors import PermissionConfigError, get_error_message

logger = logging.getLogger(__name__)


class ToolCallRequest(BaseModel):
    """One call for `execute_all`."""

    tool_name: str
    params: dict[str, Any] = Field(default_factory=dict)
    # Falls back to a fresh context from `execute_all`'s factory.
    context: ExecutionContext | None = None


class ExecutionRecord(BaseModel):
    execution_id: str
    tool_name: str
    params: Any = None
    status: PipelineStatus
    success: bool
    error_kind: ToolErrorKind | None = None
    permission_mode: PermissionMode
    effective_decision: str | None = None
    matched_rule: str | None = None
    confirmed: bool = False
    started_at: datetime
    duration_ms: int


def _to_telemetry_decision(
    record: ExecutionRecord,
) -> ToolCallDecision | None:
    if record.error_kind in (
        ToolErrorKind.CONFIRMATION_REJECTED,
        ToolErrorKind.DENY_BLOCKED,
    ):
        return ToolCallDecision.REJECT
    if record.confirmed:
        return ToolCallDecision.ACCEPT
    if record.status in (PipelineStatus.COMPLETED, PipelineStatus.FAILED) and (
        record.effective_decision is not None
    ):
        return ToolCallDecision.AUTO
    return None


class ExecutionPipeline:
    """
    Validates, authorizes, confirms and executes tool calls.

    Holds the read-only tool registry and an immutable policy snapshot;
    everything per-call lives in the `ExecutionContext`.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        policy: PolicyEngine | PermissionConfig | None = None,
        permission_store: PermissionStore | None = None,
        sensitive_detector: SensitiveFileDetector | None = None,
        emitter: EventEmitter | None = None,
        max_history_size: int = 1000,
    ):
        if not isinstance(policy, PolicyEngine):
            policy = PolicyEngine(policy)
        self.registry = registry
        self.permission_store = permission_store
        self.emitter = emitter or EventEmitter()
        self._policy_engine = policy
        self._history: deque[ExecutionRecord] = deque(maxlen=max_history_size)
        self._session_approvals: set[str] = set()

        self._graph = build_execution_graph(
            GraphNodeContext(
                registry=registry,
                emitter=self.emitter,
                sensitive_detector=sensitive_detector,
                remember_approval=self._remember_approval,
                session_approvals=self._session_approvals,
            )
        )

    @property
    def policy_engine(self) -> PolicyEngine:
        return self._policy_engine

    def update_permissions(self, config: PermissionConfig) -> None:
        """Repoints the pipeline at a new configuration snapshot."""
        self._policy_engine = PolicyEngine(config)
        logger.debug("Permission configuration updated.")

    def clear_session_approvals(self) -> None:
        self._session_approvals.clear()

    async def execute(
        self,
        tool_name: str,
        params: Mapping[str, Any] | None,
        context: ExecutionContext | None = None,
    ) -> ToolResult:
        context = context or ExecutionContext()
        execution_id = str(uuid.uuid4())
        started_at = datetime.now()
        start = time.monotonic()

        await self.emitter.emit(
            PipelineEventType.EXECUTION_STARTED,
            execution_id,
            tool_name,
            permission_mode=PermissionMode(context.permission_mode).value,
        )

        initial: PipelineState = {
            "execution_id": execution_id,
            "tool_name": tool_name,
            "raw_params": params if params is not None else {},
            "context": context,
            "policy_engine": self._policy_engine,
            "status": PipelineStatus.VALIDATING,
            "result": None,
        }

        try:
            state = await self._graph.ainvoke(initial)
            result: ToolResult = state["result"]
        except asyncio.CancelledError:
            if not context.signal.is_set():
                raise
            state = {**initial, "status": PipelineStatus.FAILED}
            result = ToolResult.failure(
                ToolErrorKind.CANCELLED, f"Tool call '{tool_name}' was cancelled."
            )
        except Exception as e:
            logger.exception(f"Pipeline failure while running '{tool_name}'")
            state = {**initial, "status": PipelineStatus.FAILED}
            result = ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR,
                f"Error executing tool '{tool_name}': {get_error_message(e)}",
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        result = self._with_metadata(
            result, state, execution_id, tool_name, context, duration_ms
        )
        record = self._record(state, result, started_at, duration_ms)

        await self.emitter.emit(
            PipelineEventType.EXECUTION_COMPLETED,
            execution_id,
            tool_name,
            status=record.status.value,
            success=result.success,
            error_kind=record.error_kind.value if record.error_kind else None,
            duration_ms=duration_ms,
        )
        log_tool_call(
            ToolCallEvent(
                execution_id=execution_id,
                function_name=tool_name,
                function_args=dict(params_as_mapping(state.get("params") or params)),
                duration_ms=duration_ms,
                success=result.success,
                permission_mode=record.permission_mode.value,
                decision=_to_telemetry_decision(record),
                matched_rule=record.matched_rule,
                error=result.error.message if result.error else None,
                error_type=record.error_kind.value if record.error_kind else None,
            )
        )
        return result

    async def execute_all(
        self,
        requests: Iterable[ToolCallRequest | tuple[str, Mapping[str, Any]]],
        context_factory: Callable[[], ExecutionContext] | None = None,
        max_concurrency: int = 4,
    ) -> list[ToolResult]:
        """
        Runs several calls concurrently; results keep the request order.

        Every call gets its own context: the one on its `ToolCallRequest`,
        or a new one from `context_factory`. Ordering between calls (two
        edits to one file, say) is up to the caller.
        """
        context_factory = context_factory or ExecutionContext
        semaphore = asyncio.Semaphore(max(1, max_concurrency))

        async def run(request) -> ToolResult:
            if isinstance(request, ToolCallRequest):
                name, params = request.tool_name, request.params
                context = request.context or context_factory()
            else:
                name, params = request
                context = context_factory()
            async with semaphore:
                return await self.execute(name, params, context)

        return list(await asyncio.gather(*(run(r) for r in requests)))

    def get_execution_history(self, limit: int | None = None) -> list[ExecutionRecord]:
        history = list(self._history)
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    def clear_history(self) -> None:
        self._history.clear()

    def get_stats(self) -> dict[str, Any]:
        records = list(self._history)
        total = len(records)
        successful = sum(1 for r in records if r.success)
        errors = Counter(r.error_kind.value for r in records if r.error_kind)
        return {
            "total": total,
            "successful": successful,
            "failed": total - successful,
            "by_error_kind": dict(errors),
            "by_tool": dict(Counter(r.tool_name for r in records)),
            "confirmed": sum(1 for r in records if r.confirmed),
            "average_duration_ms": (
                sum(r.duration_ms for r in records) / total if total else 0.0
            ),
        }

    async def _remember_approval(self, tool: Any, params: Any) -> None:
        if self.permission_store is None:
            logger.warning(
                f"Cannot remember approval for '{tool.name}': no permission store."
            )
            return

        try:
            rule = tool.abstract_rule(params)
        except Exception as e:
            logger.warning(
                f"Could not derive a rule for '{tool.name}': {get_error_message(e)}"
            )
            return
        if rule is None:
            rule = tool.name
        if not rule:
            logger.debug(f"'{tool.name}' does not support remembered approvals.")
            return

        try:
            config = await self.permission_store.append_rule(rule, RuleList.ALLOW)
        except PermissionConfigError as e:
            logger.warning(f"Failed to remember approval rule '{rule}': {e}")
            return

        self.update_permissions(config)
        log_permission_rule_added(
            PermissionRuleAddedEvent(list_name=RuleList.ALLOW.value, rule=rule)
        )

    def _with_metadata(
        self,
        result: ToolResult,
        state: Mapping[str, Any],
        execution_id: str,
        tool_name: str,
        context: ExecutionContext,
        duration_ms: int,
    ) -> ToolResult:
        effective = state.get("effective")
        check = state.get("policy_check")
        metadata = {
            **result.metadata,
            "execution_id": execution_id,
            "tool_name": tool_name,
            "permission_mode": PermissionMode(context.permission_mode).value,
            "effective_decision": effective.decision.value if effective else None,
            "matched_rule": (
                effective.matched_rule
                if effective
                else check.matched_rule if check else None
            ),
            "duration_ms": duration_ms,
        }
        if effective and effective.override:
            metadata["decision_override"] = effective.override
        if state.get("confirmation_source"):
            metadata["confirmation_source"] = state["confirmation_source"]
        return result.model_copy(update={"metadata": metadata})

    def _record(
        self,
        state: Mapping[str, Any],
        result: ToolResult,
        started_at: datetime,
        duration_ms: int,
    ) -> ExecutionRecord:
        response = state.get("confirmation_response")
        record = ExecutionRecord(
            execution_id=result.metadata["execution_id"],
            tool_name=result.metadata["tool_name"],
            params=state.get("raw_params"),
            status=state.get("status", PipelineStatus.FAILED),
            success=result.success,
            error_kind=result.error.kind if result.error else None,
            permission_mode=result.metadata["permission_mode"],
            effective_decision=result.metadata["effective_decision"],
            matched_rule=result.metadata["matched_rule"],
            confirmed=bool(response and response.approved),
            started_at=started_at,
            duration_ms=duration_ms,
        )
        self._history.append(record)
        return record
