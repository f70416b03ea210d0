"""Handler registry - the static catalog of handler kinds.

Each handler kind is bound to a fixed file name, a scope, an execution order
and a set of dependencies. The catalog is immutable: it is defined once here
and only exposed through read APIs.

Execution orders are spread in bands so a new kind can be inserted between
two existing ones without renumbering.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Literal

from .models import RegistryError, Scope

__all__ = [
    "HANDLER_REGISTRY",
    "DependencyReport",
    "ExecutionOrder",
    "HandlerDefinition",
    "by_file_name",
    "check_registry",
    "get_definition",
    "list_by_scope",
    "validate_dependencies",
]


class ExecutionOrder(IntEnum):
    """Execution order bands (lower runs first)."""

    GLOBAL_ERROR = 0
    ENV = 100
    VERSION = 200
    MIDDLEWARE = 300
    HELP = 400
    PARAMS = 500
    COMMAND = 1000
    ERROR = 1100


@dataclass(frozen=True)
class HandlerDefinition:  # pylint: disable=too-many-instance-attributes
    """Describes one handler kind.

    Attributes:
        name: Handler name (e.g. "env", "global-error")
        file_name: Module file looked up by the scanner (e.g. "env.py")
        export_name: Module attribute holding the handler
        scope: GLOBAL for root-only handlers, COMMAND for per-command handlers
        execution_order: Rank in the handler chain
        required: Whether a command directory must provide it
        dependencies: Names of the handlers this one relies on
        description: Human-readable purpose
    """

    name: str
    file_name: str
    export_name: str
    scope: Scope
    execution_order: int
    required: bool = False
    dependencies: frozenset[str] = field(default_factory=frozenset)
    description: str = ""


HANDLER_REGISTRY: tuple[HandlerDefinition, ...] = (
    HandlerDefinition(
        name="global-error",
        file_name="global_error.py",
        export_name="global_error",
        scope=Scope.GLOBAL,
        execution_order=ExecutionOrder.GLOBAL_ERROR,
        description="Catches errors not handled by a command error handler",
    ),
    HandlerDefinition(
        name="env",
        file_name="env.py",
        export_name="env",
        scope=Scope.GLOBAL,
        execution_order=ExecutionOrder.ENV,
        description="Typed environment variables",
    ),
    HandlerDefinition(
        name="version",
        file_name="version.py",
        export_name="version",
        scope=Scope.GLOBAL,
        execution_order=ExecutionOrder.VERSION,
        description="Version information of the program",
    ),
    HandlerDefinition(
        name="middleware",
        file_name="middleware.py",
        export_name="middleware",
        scope=Scope.GLOBAL,
        execution_order=ExecutionOrder.MIDDLEWARE,
        description="Wraps every command call",
    ),
    HandlerDefinition(
        name="help",
        file_name="help.py",
        export_name="help",
        scope=Scope.COMMAND,
        execution_order=ExecutionOrder.HELP,
        description="Help text and aliases of a command",
    ),
    HandlerDefinition(
        name="params",
        file_name="params.py",
        export_name="params",
        scope=Scope.COMMAND,
        execution_order=ExecutionOrder.PARAMS,
        dependencies=frozenset({"env"}),
        description="Parameter mappings and validation",
    ),
    HandlerDefinition(
        name="command",
        file_name="command.py",
        export_name="command",
        scope=Scope.COMMAND,
        execution_order=ExecutionOrder.COMMAND,
        required=True,
        dependencies=frozenset({"params"}),
        description="Command implementation",
    ),
    HandlerDefinition(
        name="error",
        file_name="error.py",
        export_name="error",
        scope=Scope.COMMAND,
        execution_order=ExecutionOrder.ERROR,
        description="Command specific error handling",
    ),
)

_BY_NAME: dict[str, HandlerDefinition] = {definition.name: definition for definition in HANDLER_REGISTRY}


@dataclass(frozen=True)
class DependencyReport:
    """Result of `validate_dependencies`."""

    valid: bool
    errors: tuple[str, ...] = ()


def get_definition(name: str) -> HandlerDefinition:
    """Return the definition of handler `name`.

    Raises:
        KeyError: if no such handler kind exists
    """
    return _BY_NAME[name]


def list_by_scope(scope: Scope | Literal["all"] = "all") -> list[HandlerDefinition]:
    """Return the handlers of `scope` sorted by ascending execution order."""
    ordered = sorted(HANDLER_REGISTRY, key=lambda definition: definition.execution_order)
    if scope == "all":
        return ordered
    return [definition for definition in ordered if definition.scope == scope]


def by_file_name(scope: Scope) -> dict[str, HandlerDefinition]:
    """Map file names to handler definitions for the given scope."""
    return {definition.file_name: definition for definition in list_by_scope(scope)}


def validate_dependencies(available: Iterable[str]) -> DependencyReport:
    """Check that every available handler has its dependencies available.

    Args:
        available: Names of the handlers present (e.g. for one command)

    Returns:
        A report with one error per missing dependency
    """
    available_set = set(available)
    errors = [
        f"Handler '{definition.name}' depends on '{dependency}' which is not available"
        for definition in list_by_scope()
        if definition.name in available_set
        for dependency in sorted(definition.dependencies)
        if dependency not in available_set
    ]
    return DependencyReport(valid=not errors, errors=tuple(errors))


def check_registry(registry: Iterable[HandlerDefinition] = HANDLER_REGISTRY) -> None:
    """Verify the catalog invariants.

    - exactly one required handler
    - unique names, file names and execution orders
    - every dependency exists and runs strictly earlier

    Raises:
        RegistryError: listing every violated invariant
    """
    definitions = list(registry)
    by_name = {definition.name: definition for definition in definitions}
    errors: list[str] = []

    required = [definition.name for definition in definitions if definition.required]
    if len(required) != 1:
        errors.append(f"Expected exactly one required handler, found {required}")

    for attribute in ("name", "file_name", "execution_order"):
        values = [getattr(definition, attribute) for definition in definitions]
        duplicates = sorted({str(value) for value in values if values.count(value) > 1})
        if duplicates:
            errors.append(f"Duplicate {attribute}: {', '.join(duplicates)}")

    for definition in definitions:
        for dependency in sorted(definition.dependencies):
            target = by_name.get(dependency)
            if target is None:
                errors.append(f"Handler '{definition.name}' depends on '{dependency}' which does not exist")
            elif target.execution_order >= definition.execution_order:
                errors.append(
                    f"Handler '{definition.name}' (order {definition.execution_order}) must run after "
                    f"its dependency '{dependency}' (order {target.execution_order})"
                )

    if errors:
        raise RegistryError("\n".join(errors))
