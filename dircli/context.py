"""Context records threaded through the handler chain.

A dispatch starts with a bare `ExecutionContext` and derives a new one after
each handler (`with_`). Contexts are never mutated nor shared between
dispatches.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Self

__all__ = ["ErrorContext", "ExecutionContext", "MiddlewareContext", "NextFunction"]

NextFunction = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ExecutionContext:  # pylint: disable=too-many-instance-attributes
    """Everything known about the current invocation.

    Attributes:
        args: positional arguments left after the command path
        options: named options
        params: parameters bound by dynamic path segments
        raw_env: the process environment
        command_path: matched command path (e.g. "user/[id]")
        env: validated environment (set by the env handler)
        version: declared version (set by the version handler)
        has_middleware: whether a middleware wraps the command
        help: command help metadata (set by the help handler)
        validated_data: validated parameters (set by the params handler)
        error_handler: the command error handler, if any
        global_error_handler: the global error handler, if any
    """

    args: tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)
    raw_env: Mapping[str, str] = field(default_factory=dict)
    command_path: str = ""
    env: Any = None
    version: Any = None
    has_middleware: bool = False
    help: Any = None
    validated_data: dict[str, Any] | None = None
    error_handler: Callable[..., Any] | None = None
    global_error_handler: Callable[..., Any] | None = None

    def with_(self, **changes: Any) -> Self:  # noqa: ANN401
        """Return a copy with `changes` applied."""
        return dataclasses.replace(self, **changes)

    @property
    def data(self) -> dict[str, Any]:
        """Validated parameters, or an empty dict."""
        return self.validated_data or {}


@dataclass(frozen=True)
class ErrorContext(ExecutionContext):
    """Context given to error handlers."""

    error: BaseException | None = None

    @classmethod
    def from_context(cls, context: ExecutionContext, error: BaseException) -> ErrorContext:
        """Extend `context` with the error being handled."""
        return cls(**_base_values(context), error=error)

    @property
    def issues(self) -> tuple:
        """Validation issues carried by the error, if any."""
        return tuple(getattr(self.error, "issues", ()))


@dataclass(frozen=True)
class MiddlewareContext(ExecutionContext):
    """Context given to middleware: adds the tokens naming the command."""

    command: tuple[str, ...] = ()

    @classmethod
    def from_context(cls, context: ExecutionContext, command: tuple[str, ...]) -> MiddlewareContext:
        """Extend `context` with the command tokens."""
        return cls(**_base_values(context), command=command)


def _base_values(context: ExecutionContext) -> dict[str, Any]:
    return {f.name: getattr(context, f.name) for f in dataclasses.fields(ExecutionContext)}
