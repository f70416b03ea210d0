"""Parameter validation.

A command's `params.py` declares how raw invocation data maps to fields, and
optionally a schema. Three forms are accepted:

- mappings only: a pydantic model is synthesized from the declared types
- mappings + schema: the mappings assemble the data, the schema validates it
- schema only: the data is ``{"arg0": ..., "arg1": ..., **options}``

A schema is a pydantic model class, a `FieldSet`, or a ``{name: {...}}``
mapping (converted to a `FieldSet`).

Extraction precedence: a named option overrides a positional argument, which
overrides the mapping default. Absent values without a default are omitted.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Annotated, Any

import pydantic
from pydantic import BeforeValidator, create_model

from .logging_setup import get_logger
from .models import Issue, ValidationError
from .validation import FieldSet, FieldValidator, issues_from_pydantic

__all__ = [
    "ParamMapping",
    "ParamsDefinition",
    "ValidationFailure",
    "ValidationSuccess",
    "build_model",
    "extract_data",
    "validate_params",
]

MAPPING_TYPES = ("string", "number", "boolean", "array", "object")

TRUE_WORDS = frozenset({"true", "1", "yes"})
FALSE_WORDS = frozenset({"false", "0", "no"})


@dataclass(frozen=True)
class ParamMapping:  # pylint: disable=too-many-instance-attributes
    """Where a field's raw value comes from."""

    field: str
    type: str = "string"
    arg_index: int | None = None
    option: str | None = None
    default: Any = None
    required: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        if self.type not in MAPPING_TYPES:
            msg = f"Unsupported type {self.type!r} for field {self.field!r}, expected one of {', '.join(MAPPING_TYPES)}"
            raise ValueError(msg)

    @classmethod
    def from_value(cls, value: ParamMapping | Mapping[str, Any]) -> ParamMapping:
        """Build from a mapping; camelCase keys are accepted."""
        if isinstance(value, ParamMapping):
            return value
        return cls(
            field=str(value["field"]),
            type=str(value.get("type", "string")),
            arg_index=value.get("arg_index", value.get("argIndex")),
            option=value.get("option"),
            default=value.get("default", value.get("defaultValue")),
            required=bool(value.get("required", False)),
            description=str(value.get("description", "")),
        )


@dataclass(frozen=True)
class ParamsDefinition:
    """Mappings and optional schema of a command."""

    mappings: tuple[ParamMapping, ...] = ()
    schema: Any = None

    @classmethod
    def from_value(cls, value: Any) -> ParamsDefinition:  # noqa: ANN401
        """Normalize the value resolved from a `params.py` handler."""
        if isinstance(value, ParamsDefinition):
            return value
        if value is None:
            return cls()
        if _is_model(value) or isinstance(value, FieldSet):
            return cls(schema=value)
        if isinstance(value, Mapping):
            schema = value.get("schema")
            if isinstance(schema, Mapping):
                schema = FieldSet.from_mapping(schema)
            return cls(
                mappings=tuple(ParamMapping.from_value(mapping) for mapping in value.get("mappings") or ()),
                schema=schema,
            )
        if isinstance(value, Sequence) and not isinstance(value, str):
            return cls(mappings=tuple(ParamMapping.from_value(mapping) for mapping in value))
        msg = f"Unsupported params definition: {value!r}"
        raise TypeError(msg)


@dataclass(frozen=True)
class ValidationSuccess:
    """Validated data."""

    data: dict[str, Any] = field(default_factory=dict)
    success: bool = True


@dataclass(frozen=True)
class ValidationFailure:
    """Validation problems."""

    error: ValidationError
    success: bool = False


def _is_model(value: Any) -> bool:  # noqa: ANN401
    return isinstance(value, type) and issubclass(value, pydantic.BaseModel)


def extract_data(args: Sequence[str], options: Mapping[str, Any], mappings: Sequence[ParamMapping]) -> dict[str, Any]:
    """Assemble the raw data of the mapped fields."""
    data: dict[str, Any] = {}
    for mapping in mappings:
        if mapping.option and mapping.option in options:
            data[mapping.field] = options[mapping.option]
        elif mapping.arg_index is not None and 0 <= mapping.arg_index < len(args):
            data[mapping.field] = args[mapping.arg_index]
        elif mapping.default is not None:
            data[mapping.field] = mapping.default
    return data


def _positional_data(args: Sequence[str], options: Mapping[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {f"arg{index}": value for index, value in enumerate(args)}
    data.update(options)
    return data


# Coercions of the synthesized models


def _to_number(value: Any) -> int | float:  # noqa: ANN401
    if isinstance(value, bool):
        msg = f"Invalid number: {value!r}"
        raise ValueError(msg)  # noqa: TRY004
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        number = math.nan
    if not math.isfinite(number):
        msg = f"Invalid number: {value!r}"
        raise ValueError(msg)
    if isinstance(value, float):
        return value
    return int(number) if number.is_integer() else number


def _to_boolean(value: Any) -> bool:  # noqa: ANN401
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in TRUE_WORDS:
        return True
    if lowered in FALSE_WORDS:
        return False
    msg = f"Invalid boolean: {value!r}"
    raise ValueError(msg)


def _to_array(value: Any) -> list[str]:  # noqa: ANN401
    if isinstance(value, list | tuple):
        return [str(item) for item in value]
    return [item.strip() for item in str(value).split(",")]


def _to_object(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, dict):
        return value
    try:
        return json.loads(str(value))
    except json.JSONDecodeError:
        msg = f"Invalid JSON: {value!r}"
        raise ValueError(msg) from None


_ANNOTATIONS: dict[str, Any] = {
    "string": str,
    "number": Annotated[int | float, BeforeValidator(_to_number)],
    "boolean": Annotated[bool, BeforeValidator(_to_boolean)],
    "array": Annotated[list[str], BeforeValidator(_to_array)],
    "object": Annotated[Any, BeforeValidator(_to_object)],
}


def build_model(mappings: Sequence[ParamMapping], name: str = "Params") -> type[pydantic.BaseModel]:
    """Synthesize a pydantic model from the declared mapping types."""
    fields: dict[str, Any] = {}
    for mapping in mappings:
        annotation = _ANNOTATIONS[mapping.type]
        if mapping.required:
            fields[mapping.field] = (annotation, pydantic.Field(description=mapping.description or None))
        else:
            fields[mapping.field] = (annotation | None, pydantic.Field(default=None, description=mapping.description or None))
    return create_model(name, **fields)


def _validate_model(model: type[pydantic.BaseModel], data: dict[str, Any], exclude_unset: bool = False) -> ValidationSuccess | ValidationFailure:
    try:
        instance = model.model_validate(data)
    except pydantic.ValidationError as e:
        return ValidationFailure(ValidationError("Parameter validation failed", issues_from_pydantic(e)))
    return ValidationSuccess(instance.model_dump(exclude_unset=exclude_unset))


def _validate_fields(schema: FieldSet, data: dict[str, Any]) -> ValidationSuccess | ValidationFailure:
    validator = FieldValidator(data, "params", get_logger("params"))
    issues = validator.validate(schema)
    if issues:
        return ValidationFailure(ValidationError("Parameter validation failed", tuple(issues)))
    return ValidationSuccess(validator.values)


def validate_params(
    args: Sequence[str],
    options: Mapping[str, Any],
    definition: ParamsDefinition | None,
) -> ValidationSuccess | ValidationFailure:
    """Validate the invocation data of a command.

    Never raises: unexpected exceptions become an issue-less failure.

    Args:
        args: positional arguments left after the command path
        options: named options
        definition: the command's params definition, if any

    Returns:
        The validated data, or the validation error
    """
    if definition is None:
        return ValidationSuccess({})
    try:
        if definition.mappings:
            data = extract_data(args, options, definition.mappings)
        else:
            data = _positional_data(args, options)

        schema = definition.schema
        if schema is None:
            if not definition.mappings:
                return ValidationSuccess(data)
            missing = [
                Issue((mapping.field,), f"{mapping.field} is required")
                for mapping in definition.mappings
                if mapping.required and mapping.field not in data
            ]
            if missing:
                return ValidationFailure(ValidationError("Parameter validation failed", tuple(missing)))
            return _validate_model(build_model(definition.mappings), data, exclude_unset=True)
        if _is_model(schema):
            return _validate_model(schema, data)
        if isinstance(schema, FieldSet):
            return _validate_fields(schema, data)
        return ValidationFailure(ValidationError(f"Unsupported schema type: {type(schema).__name__}"))
    except Exception as e:  # noqa: BLE001  pylint: disable=broad-exception-caught
        get_logger("params").debug("Unexpected validation failure", exc_info=True)
        return ValidationFailure(ValidationError(str(e) or type(e).__name__))
