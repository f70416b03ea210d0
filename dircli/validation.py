"""Field schema validation framework.

Provides declarative schema definitions (Field, FieldSet) used for:

- the manual schemas of `params.py` handlers
- environment variables declared by `env.py`
- the dircli configuration file

Values coming from the command line or the environment are strings: they are
coerced to the declared type before the constraints (choices, ranges,
lengths, custom validator) are checked. Unknown keys are reported with fuzzy
suggestions for typos.
"""

from __future__ import annotations

import difflib
import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import pydantic

from .config import BOOL_FALSE_STRINGS, BOOL_TRUE_STRINGS
from .models import EnvValidationError, Issue, ValidationError

__all__ = [
    "Field",
    "FieldSet",
    "FieldValidator",
    "issues_from_pydantic",
    "validate_env",
]

# Type names accepted in mapping based declarations
TYPE_NAMES: dict[str, type] = {
    "string": str,
    "str": str,
    "number": float,
    "float": float,
    "integer": int,
    "int": int,
    "boolean": bool,
    "bool": bool,
    "array": list,
    "list": list,
    "object": dict,
    "dict": dict,
}


@dataclass
class Field:  # pylint: disable=too-many-instance-attributes
    """Describes an expected field.

    Attributes:
        name: The key name
        field_type: Expected type (str, int, float, bool, list, dict) or tuple of types for union
        required: Whether the field is required
        default: Default value if not provided
        description: Human-readable description, shown in help
        choices: List of valid values for enum-like fields
        min_value: Lower bound for numbers
        max_value: Upper bound for numbers
        min_length: Minimum length for strings and lists
        max_length: Maximum length for strings and lists
        validator: Custom validator function returning list of error messages
        error_message: Replaces every generated message for this field
    """

    name: str
    field_type: type | tuple[type, ...] = str
    required: bool = False
    default: Any = None
    description: str = ""
    choices: list | None = None
    min_value: float | None = None
    max_value: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    validator: Callable[[Any], list[str]] | None = None
    error_message: str | None = None

    @property
    def type_name(self) -> str:
        """Return human-readable type name (e.g., 'str', 'int or str')."""
        if isinstance(self.field_type, tuple):
            return " or ".join(typ.__name__ for typ in self.field_type)
        return self.field_type.__name__

    @classmethod
    def from_mapping(cls, name: str, spec: Mapping[str, Any]) -> Field:
        """Build a field from a loose mapping, e.g. ``{"type": "number", "min": 1}``."""
        raw_type = spec.get("type", str)
        field_type = TYPE_NAMES[raw_type] if isinstance(raw_type, str) else raw_type
        return cls(
            name=name,
            field_type=field_type,
            required=bool(spec.get("required", False)),
            default=spec.get("default", spec.get("defaultValue")),
            description=str(spec.get("description", "")),
            choices=spec.get("choices", spec.get("enum")),
            min_value=spec.get("min_value", spec.get("minValue", spec.get("min"))),
            max_value=spec.get("max_value", spec.get("maxValue", spec.get("max"))),
            min_length=spec.get("min_length", spec.get("minLength")),
            max_length=spec.get("max_length", spec.get("maxLength")),
            validator=spec.get("validator"),
            error_message=spec.get("error_message", spec.get("errorMessage")),
        )


class FieldSet(list):
    """A list of Field items with cached lookup by name."""

    def __init__(self, *args: Field) -> None:
        super().__init__(args)
        self._cache: dict[str, Field] = {}

    def get(self, name: str) -> Field | None:
        """Get a Field by name, with caching for repeated lookups.

        Args:
            name: The field name to look up

        Returns:
            The Field if found, None otherwise
        """
        v = self._cache.get(name)
        if not v:
            for prop in self:
                if prop.name == name:
                    v = prop
                    self._cache[name] = v
                    break
        return v

    @property
    def names(self) -> list[str]:
        """Field names, in declaration order."""
        return [field.name for field in self]

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Mapping[str, Any]]) -> FieldSet:
        """Build a schema from ``{name: {type: ..., required: ...}}``."""
        return cls(*(Field.from_mapping(name, field_spec) for name, field_spec in spec.items()))


def _find_similar_key(unknown_key: str, known_keys: list[str]) -> str | None:
    """Find a similar key using fuzzy matching.

    Args:
        unknown_key: The unknown key to find a match for
        known_keys: List of valid keys to search

    Returns:
        The closest matching key, or None if no close match found
    """
    matches = difflib.get_close_matches(unknown_key, known_keys, n=1)
    if matches:
        return matches[0]
    return None


def _coerce_bool(value: Any) -> bool:  # noqa: ANN401
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in BOOL_TRUE_STRINGS:
            return True
        if lowered in BOOL_FALSE_STRINGS:
            return False
    if isinstance(value, int):
        return bool(value)
    raise ValueError(value)


def _coerce_number(value: Any, number_type: type) -> int | float:  # noqa: ANN401
    if isinstance(value, bool):
        raise TypeError(value)
    number = float(value)
    if isinstance(value, int):
        return number_type(value)
    if not math.isfinite(number):
        raise ValueError(value)
    if number_type is int:
        if not number.is_integer():
            raise ValueError(value)
        return int(number)
    return int(number) if number.is_integer() and isinstance(value, str) and "." not in value else number


def _coerce_list(value: Any) -> list:  # noqa: ANN401
    if isinstance(value, list | tuple):
        return list(value)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",")]
    raise TypeError(value)


def coerce(value: Any, field_type: type | tuple[type, ...]) -> Any:  # noqa: ANN401
    """Convert `value` to `field_type`.

    Raises:
        ValueError: the value cannot be converted
        TypeError: the value cannot be converted
    """
    if isinstance(field_type, tuple):
        for single_type in field_type:
            try:
                return coerce(value, single_type)
            except (ValueError, TypeError):
                continue
        raise ValueError(value)
    if field_type is bool:
        return _coerce_bool(value)
    if field_type in (int, float):
        return _coerce_number(value, field_type)
    if field_type is str:
        if isinstance(value, str):
            return value
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        raise TypeError(value)
    if field_type is list:
        return _coerce_list(value)
    if field_type is dict:
        if isinstance(value, dict):
            return value
        raise TypeError(value)
    if isinstance(value, field_type):
        return value
    return field_type(value)


class FieldValidator:
    """Validates a mapping against a FieldSet.

    After `validate`, `values` holds the coerced values and the defaults of
    the missing optional fields.
    """

    def __init__(self, data: Mapping[str, Any], section: str, logger: logging.Logger) -> None:
        """Initialize the validator.

        Args:
            data: The mapping to validate
            section: Name used in warnings (e.g. "env", "config")
            logger: Logger instance for warnings
        """
        self.data = data
        self.section = section
        self.log = logger
        self.values: dict[str, Any] = {}

    def validate(self, schema: FieldSet) -> list[Issue]:
        """Validate the data against schema.

        Args:
            schema: List of Field definitions

        Returns:
            List of issues (empty if validation passed)
        """
        issues: list[Issue] = []
        self.values = {}

        for field_def in schema:
            value = self.data.get(field_def.name)

            if value is None:
                if field_def.required:
                    issues.append(self._issue(field_def, f"{field_def.name} is required"))
                elif field_def.default is not None:
                    self.values[field_def.name] = field_def.default
                continue

            try:
                value = coerce(value, field_def.field_type)
            except (ValueError, TypeError):
                issues.append(self._issue(field_def, f"Expected {field_def.type_name}, got {value!r}"))
                continue

            problems = self._check_constraints(field_def, value)
            if field_def.validator:
                problems.extend(field_def.validator(value))
            if problems:
                issues.extend(self._issue(field_def, problem) for problem in problems)
                continue
            self.values[field_def.name] = value

        return issues

    def _issue(self, field_def: Field, message: str) -> Issue:
        return Issue((field_def.name,), field_def.error_message or message)

    @staticmethod
    def _check_constraints(field_def: Field, value: Any) -> list[str]:  # noqa: ANN401
        """Check choices, numeric bounds and lengths."""
        problems = []
        if field_def.choices is not None and value not in field_def.choices:
            choices_str = ", ".join(repr(c) for c in field_def.choices)
            problems.append(f"Invalid value {value!r}, valid options: {choices_str}")
        if isinstance(value, int | float) and not isinstance(value, bool):
            if field_def.min_value is not None and value < field_def.min_value:
                problems.append(f"{field_def.name} must be at least {field_def.min_value}")
            if field_def.max_value is not None and value > field_def.max_value:
                problems.append(f"{field_def.name} cannot exceed {field_def.max_value}")
        if isinstance(value, str | list):
            if field_def.min_length is not None and len(value) < field_def.min_length:
                problems.append(f"{field_def.name} must be at least {field_def.min_length} long")
            if field_def.max_length is not None and len(value) > field_def.max_length:
                problems.append(f"{field_def.name} cannot exceed {field_def.max_length} in length")
        return problems

    def warn_unknown_keys(self, schema: FieldSet) -> list[str]:
        """Log warnings for unknown keys.

        Args:
            schema: List of Field definitions

        Returns:
            List of warning messages
        """
        warnings = []
        known_keys = schema.names

        for key in self.data:
            if key in known_keys:
                continue

            similar = _find_similar_key(key, known_keys)
            if similar:
                msg = f"[{self.section}] Unknown option '{key}' (did you mean '{similar}'?)"
            else:
                msg = f"[{self.section}] Unknown option '{key}' - will be ignored"

            self.log.warning(msg)
            warnings.append(msg)

        return warnings


def issues_from_pydantic(error: pydantic.ValidationError) -> tuple[Issue, ...]:
    """Convert pydantic errors into issues."""
    return tuple(Issue(tuple(str(part) for part in detail["loc"]), detail["msg"]) for detail in error.errors())


def validate_env(schema: Any, environ: Mapping[str, str], logger: logging.Logger) -> Any:  # noqa: ANN401
    """Validate environment variables.

    Args:
        schema: a FieldSet, a ``{name: {...}}`` mapping or a pydantic model class
        environ: the raw environment
        logger: logger used for debug messages

    Returns:
        A dict of the declared variables (coerced, with defaults), or the
        pydantic model instance

    Raises:
        EnvValidationError: listing every invalid variable
    """
    if isinstance(schema, type) and issubclass(schema, pydantic.BaseModel):
        try:
            return schema.model_validate(dict(environ))
        except pydantic.ValidationError as e:
            raise EnvValidationError(ValidationError("Environment variable validation failed", issues_from_pydantic(e))) from e

    if not isinstance(schema, FieldSet):
        schema = FieldSet.from_mapping(schema)

    validator = FieldValidator(environ, "env", logger)
    issues = validator.validate(schema)
    if issues:
        raise EnvValidationError(ValidationError("Environment variable validation failed", tuple(issues)))
    logger.debug("Environment validated: %s", ", ".join(sorted(validator.values)))
    return validator.values
