"""
The tool contract consumed by the execution pipeline.

Tools are heterogeneous behind one interface (`Tool`). `BaseTool` gives
class-based tools sensible defaults; `ToolDescriptor` builds a tool out
of plain callables.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Generic, Literal, Protocol, TypeVar

from pydantic import BaseModel

from blade_core.core.cancellation import CancelSignal
from blade_core.core.types import ToolKind

from ..common import ConfirmationDetails, ToolResult
from .validation import ParameterValidator, PydanticValidator, SchemaValidator

if TYPE_CHECKING:
    from blade_core.core.context import ExecutionContext

TParams = TypeVar("TParams")


# --- Tool Protocol (Interface) ---
class Tool(Protocol[TParams]):
    """
    Protocol defining the basic contract for all tools.
    """

    name: str
    display_name: str
    description: str
    kind: ToolKind
    exits_plan_mode: bool

    @property
    def validator(self) -> ParameterValidator: ...

    @property
    def schema(self) -> dict[str, Any]: ...

    def validate_tool_params(self, params: TParams) -> str | None: ...

    def get_description(self, params: TParams) -> str: ...

    def get_affected_paths(self, params: TParams) -> list[str]: ...

    def abstract_rule(self, params: TParams) -> str | None: ...

    async def requires_confirmation(
        self, params: TParams, signal: CancelSignal | None = None
    ) -> ConfirmationDetails | None | Literal[False]: ...

    async def get_confirmation_details(
        self, params: TParams, signal: CancelSignal | None = None
    ) -> ConfirmationDetails | None: ...

    async def execute(
        self, params: TParams, context: "ExecutionContext"
    ) -> ToolResult: ...


# --- Abstract Base Tool Class ---
class BaseTool(ABC, Generic[TParams]):
    """
    Abstract base class providing common functionality for tools.
    """

    exits_plan_mode: bool = False

    def __init__(
        self,
        name: str,
        display_name: str,
        description: str,
        kind: ToolKind,
        params_model: type[BaseModel] | None = None,
        parameter_schema: dict[str, Any] | None = None,
        validator: ParameterValidator | None = None,
        is_output_markdown: bool = True,
        can_update_output: bool = False,
    ):
        self.name = name
        self.display_name = display_name
        self.description = description
        self.kind = ToolKind(kind)
        self.is_output_markdown = is_output_markdown
        self.can_update_output = can_update_output

        if validator is None:
            validator = (
                PydanticValidator(params_model)
                if params_model is not None
                else SchemaValidator(parameter_schema)
            )
        self._validator = validator
        self.parameter_schema = parameter_schema or validator.schema

    @property
    def validator(self) -> ParameterValidator:
        return self._validator

    @property
    def schema(self) -> dict[str, Any]:
        """The function declaration schema for the tool."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameter_schema,
        }

    def validate_tool_params(self, params: TParams) -> str | None:
        """Semantic checks that go beyond the parameter schema."""
        return None

    def get_description(self, params: TParams) -> str:
        if isinstance(params, BaseModel):
            return params.model_dump_json()
        return str(params)

    def get_affected_paths(self, params: TParams) -> list[str]:
        """Filesystem paths this call would touch."""
        return []

    def abstract_rule(self, params: TParams) -> str | None:
        """
        Generalizes a call into a reusable permission rule.

        Returns a full rule string, None for the bare tool name, or an
        empty string when the call must never be remembered.
        """
        return None

    async def requires_confirmation(
        self, params: TParams, signal: CancelSignal | None = None
    ) -> ConfirmationDetails | None | Literal[False]:
        """
        Forces a confirmation regardless of the permission rules.

        Returning details here outranks an allow rule; return None to leave
        the decision to the policy.
        """
        return None

    async def get_confirmation_details(
        self, params: TParams, signal: CancelSignal | None = None
    ) -> ConfirmationDetails | None:
        """What to show the operator when the policy asks; None for the generic prompt."""
        return None

    @abstractmethod
    async def execute(
        self, params: TParams, context: "ExecutionContext"
    ) -> ToolResult:
        """Abstract method for the core tool logic."""
        raise NotImplementedError


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


ConfirmationPredicate = Callable[
    [Any],
    ConfirmationDetails | None | Awaitable[ConfirmationDetails | None],
]
Executor = Callable[
    [Any, "ExecutionContext"], ToolResult | Any | Awaitable[ToolResult | Any]
]


class ToolDescriptor(BaseTool[Any]):
    """A tool assembled from plain callables instead of a subclass."""

    def __init__(
        self,
        name: str,
        kind: ToolKind,
        executor: Executor,
        parameter_schema: dict[str, Any] | None = None,
        params_model: type[BaseModel] | None = None,
        validator: ParameterValidator | None = None,
        requires_confirmation: ConfirmationPredicate | Literal[False] = False,
        confirmation_details: ConfirmationPredicate | None = None,
        affected_paths: Callable[[Any], list[str]] | None = None,
        abstract_rule: Callable[[Any], str | None] | None = None,
        description: str = "",
        display_name: str | None = None,
        exits_plan_mode: bool = False,
    ):
        super().__init__(
            name=name,
            display_name=display_name or name,
            description=description,
            kind=kind,
            params_model=params_model,
            parameter_schema=parameter_schema,
            validator=validator,
        )
        self._executor = executor
        self._predicate = requires_confirmation
        self._confirmation_details = confirmation_details
        self._affected_paths = affected_paths
        self._abstract_rule = abstract_rule
        self.exits_plan_mode = exits_plan_mode

    def get_affected_paths(self, params: Any) -> list[str]:
        if self._affected_paths is None:
            return []
        return list(self._affected_paths(params))

    def abstract_rule(self, params: Any) -> str | None:
        if self._abstract_rule is None:
            return None
        return self._abstract_rule(params)

    async def requires_confirmation(
        self, params: Any, signal: CancelSignal | None = None
    ) -> ConfirmationDetails | None | Literal[False]:
        if self._predicate is False:
            return False
        return await _maybe_await(self._predicate(params))

    async def get_confirmation_details(
        self, params: Any, signal: CancelSignal | None = None
    ) -> ConfirmationDetails | None:
        if self._confirmation_details is None:
            return None
        return await _maybe_await(self._confirmation_details(params))

    async def execute(self, params: Any, context: "ExecutionContext") -> Any:
        return await _maybe_await(self._executor(params, context))
