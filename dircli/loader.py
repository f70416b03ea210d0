"""Handler module loading.

Handler files are imported from their path with `importlib`. Each file is
imported at most once per loader: concurrent callers await the same
in-flight task.

Exports are normalized once, here, into `call(context) -> value`:

- env, version, help and params export either a value or a factory taking
  zero or one argument (the context);
- middleware and global-error export a factory;
- command and error export the handler itself.
"""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import re
import sys
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

from .logging_setup import get_logger
from .models import HandlerExecutionError

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .registry import HandlerDefinition
    from .scanner import HandlerEntry

__all__ = ["CALLABLE_EXPORTS", "HandlerLoader", "LoadedHandler", "normalize"]

HandlerCall = Callable[["ExecutionContext"], Awaitable[Any]]

# Kinds whose export must be callable
CALLABLE_EXPORTS = frozenset({"command", "error", "middleware", "global-error"})

_MODULE_PREFIX = "_dircli_app"


@dataclass(frozen=True)
class LoadedHandler:
    """A handler export ready to be called."""

    entry: HandlerEntry
    value: Any
    call: HandlerCall

    @property
    def definition(self) -> HandlerDefinition:
        """Definition of the handler kind."""
        return self.entry.definition

    @property
    def name(self) -> str:
        """Handler kind name."""
        return self.entry.definition.name


def _takes_context(function: Callable[..., Any]) -> bool:
    """Tell whether `function` accepts a positional argument."""
    try:
        parameters = inspect.signature(function).parameters.values()
    except (TypeError, ValueError):
        return True
    return any(
        parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD, parameter.VAR_POSITIONAL)
        for parameter in parameters
    )


def normalize(value: Any, callable_required: bool = False) -> HandlerCall:  # noqa: ANN401
    """Turn a value or a function into `async call(context) -> value`.

    Args:
        value: the module export
        callable_required: reject non-callable values

    Raises:
        TypeError: `callable_required` is set and `value` is not callable
    """
    if callable_required:
        if not callable(value):
            msg = f"expected a callable, got {type(value).__name__}"
            raise TypeError(msg)
        function = value
    elif inspect.isroutine(value):
        function = value
    else:

        async def constant(_context: ExecutionContext) -> Any:  # noqa: ANN401
            return value

        return constant

    with_context = _takes_context(function)

    async def call(context: ExecutionContext) -> Any:  # noqa: ANN401
        result = function(context) if with_context else function()
        if inspect.isawaitable(result):
            result = await result
        return result

    return call


def _module_name(path: Path) -> str:
    slug = re.sub(r"\W", "_", str(path.with_suffix("")).strip("/"))
    return f"{_MODULE_PREFIX}_{slug}"


class HandlerLoader:
    """Imports handler modules, memoized per file."""

    def __init__(self) -> None:
        self.log = get_logger("loader")
        self._modules: dict[Path, asyncio.Task[ModuleType]] = {}

    def _import(self, path: Path) -> ModuleType:
        name = _module_name(path)
        spec = importlib.util.spec_from_file_location(name, path)
        if spec is None or spec.loader is None:
            msg = f"Cannot import {path}"
            raise ImportError(msg)
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            del sys.modules[name]
            raise
        self.log.debug("Imported %s as %s", path, name)
        return module

    async def load_module(self, path: Path) -> ModuleType:
        """Import `path`, once."""
        task = self._modules.get(path)
        if task is None:
            task = asyncio.ensure_future(asyncio.to_thread(self._import, path))
            self._modules[path] = task
        return await task

    async def load(self, entry: HandlerEntry) -> LoadedHandler:
        """Load the export of a handler file.

        Raises:
            HandlerExecutionError: the module failed to import, or lacks the export
        """
        definition = entry.definition
        try:
            module = await self.load_module(entry.file_path)
            try:
                value = getattr(module, definition.export_name)
            except AttributeError:
                msg = f"{entry.file_path} does not define '{definition.export_name}'"
                raise AttributeError(msg) from None
            call = normalize(value, callable_required=definition.name in CALLABLE_EXPORTS)
        except Exception as e:
            self.log.exception("Unable to load handler %s from %s", definition.name, entry.file_path)
            raise HandlerExecutionError(definition.name, e) from e
        return LoadedHandler(entry=entry, value=value, call=call)

    async def preload(self, entries: Iterable[HandlerEntry]) -> dict[str, LoadedHandler]:
        """Load several handlers concurrently, keyed by handler name."""
        loaded = await asyncio.gather(*(self.load(entry) for entry in entries))
        return {handler.name: handler for handler in loaded}
