"""Handler kinds: how each loaded handler contributes to the context.

Every kind has a `resolve` step, producing a value from the loaded handler and
the current context, and a `merge` step, deriving the next context from that
value. The table must cover the registry exactly (see `check_kinds`).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .context import ExecutionContext
from .loader import LoadedHandler, normalize
from .logging_setup import get_logger
from .metadata import CommandMetadata, VersionDeclaration
from .models import ParamsValidationError, RegistryError
from .params import ParamsDefinition, ValidationFailure, validate_params
from .registry import HANDLER_REGISTRY
from .validation import validate_env

__all__ = ["HANDLER_KINDS", "HandlerKind", "check_kinds"]

Resolve = Callable[[LoadedHandler, ExecutionContext], Awaitable[Any]]
Merge = Callable[[ExecutionContext, Any], ExecutionContext]


@dataclass(frozen=True)
class HandlerKind:
    """Resolve and merge steps of one handler kind."""

    resolve: Resolve
    merge: Merge


async def _handler(loaded: LoadedHandler, _context: ExecutionContext) -> Any:  # noqa: ANN401
    return loaded.call


async def _resolve_env(loaded: LoadedHandler, context: ExecutionContext) -> Any:  # noqa: ANN401
    schema = await loaded.call(context)
    return validate_env(schema, context.raw_env, get_logger("env"))


async def _resolve_version(loaded: LoadedHandler, context: ExecutionContext) -> VersionDeclaration:
    return VersionDeclaration.from_value(await loaded.call(context))


async def _resolve_help(loaded: LoadedHandler, context: ExecutionContext) -> CommandMetadata:
    value = await loaded.call(context)
    if isinstance(value, CommandMetadata):
        return value
    if isinstance(value, Mapping):
        return CommandMetadata.from_dict(value)
    if isinstance(value, str):
        return CommandMetadata(description=value)
    msg = f"help must be a mapping or a string, got {type(value).__name__}"
    raise TypeError(msg)


async def _resolve_params(loaded: LoadedHandler, context: ExecutionContext) -> dict[str, Any]:
    definition = ParamsDefinition.from_value(await loaded.call(context))
    result = validate_params(context.args, context.options, definition)
    if isinstance(result, ValidationFailure):
        raise ParamsValidationError(result.error)
    return result.data


async def _resolve_factory(loaded: LoadedHandler, context: ExecutionContext) -> Any:  # noqa: ANN401
    """Call the factory and normalize the handler it returns."""
    return normalize(await loaded.call(context), callable_required=True)


async def _resolve_middleware(loaded: LoadedHandler, context: ExecutionContext) -> Any:  # noqa: ANN401
    middleware = await loaded.call(context)
    if not callable(middleware):
        msg = f"middleware factory returned {type(middleware).__name__}, expected a callable"
        raise TypeError(msg)
    return middleware


HANDLER_KINDS: Mapping[str, HandlerKind] = MappingProxyType(
    {
        "global-error": HandlerKind(_resolve_factory, lambda context, value: context.with_(global_error_handler=value)),
        "env": HandlerKind(_resolve_env, lambda context, value: context.with_(env=value)),
        "version": HandlerKind(_resolve_version, lambda context, value: context.with_(version=value)),
        "middleware": HandlerKind(_resolve_middleware, lambda context, _value: context.with_(has_middleware=True)),
        "help": HandlerKind(_resolve_help, lambda context, value: context.with_(help=value)),
        "params": HandlerKind(_resolve_params, lambda context, value: context.with_(validated_data=value)),
        "command": HandlerKind(_handler, lambda context, _value: context),
        "error": HandlerKind(_handler, lambda context, value: context.with_(error_handler=value)),
    }
)


def check_kinds() -> None:
    """Verify the kind table covers the registry exactly.

    Raises:
        RegistryError: listing the missing and unexpected kinds
    """
    names = {definition.name for definition in HANDLER_REGISTRY}
    missing = sorted(names - HANDLER_KINDS.keys())
    unexpected = sorted(HANDLER_KINDS.keys() - names)
    if missing or unexpected:
        raise RegistryError(f"Handler kinds out of sync with the registry: missing {missing}, unexpected {unexpected}")
