"""
Injectable parameter validators.

A validator turns the raw parameters proposed by the model into the
typed value handed to the executor, or reports why it cannot:

    typed, error = validator.validate(raw)
"""

from collections.abc import Mapping
from typing import Any, Protocol

from jsonschema import Draft7Validator
from pydantic import BaseModel, ValidationError


class ParameterValidator(Protocol):
    def validate(self, raw: Any) -> tuple[Any, str | None]: ...

    @property
    def schema(self) -> dict[str, Any]: ...


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "params"
        messages.append(f"{location}: {item['msg']}")
    return "; ".join(messages)


class PydanticValidator:
    """Validates parameters against a pydantic model."""

    def __init__(self, model: type[BaseModel]):
        self.model = model

    @property
    def schema(self) -> dict[str, Any]:
        return self.model.model_json_schema()

    def validate(self, raw: Any) -> tuple[BaseModel | None, str | None]:
        if isinstance(raw, self.model):
            return raw, None
        if not isinstance(raw, Mapping):
            return None, "Parameters must be an object."
        try:
            return self.model.model_validate(dict(raw)), None
        except ValidationError as e:
            return None, _format_validation_error(e)


class SchemaValidator:
    """
    Validates an object against a JSON schema (draft 7).

    Top-level defaults declared by the schema are filled in before
    validation.
    """

    def __init__(self, schema: dict[str, Any] | None = None):
        self._schema = schema or {"type": "object", "properties": {}}
        self._validator = Draft7Validator(self._schema)

    @property
    def schema(self) -> dict[str, Any]:
        return self._schema

    def validate(self, raw: Any) -> tuple[dict[str, Any] | None, str | None]:
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            return None, "Parameters must be an object."

        params = dict(raw)
        for name, prop in self._schema.get("properties", {}).items():
            if name not in params and isinstance(prop, dict) and "default" in prop:
                params[name] = prop["default"]

        errors = sorted(
            self._validator.iter_errors(params),
            key=lambda item: [str(part) for part in item.path],
        )
        if errors:
            messages = []
            for error in errors:
                location = ".".join(str(part) for part in error.path) or "params"
                messages.append(f"{location}: {error.message}")
            return None, "; ".join(messages)
        return params, None
