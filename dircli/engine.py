"""Execution engine - runs one invocation of a dispatched program.

States of a dispatch::

    MATCHING -> LOADING_GLOBAL -> LOADING_COMMAND -> VALIDATING -> EXECUTING -> DONE
                                                                              \\-> ERROR

Handlers applicable to the matched command run strictly in ascending
execution order, each one deriving a new context. The first failure routes
to exactly one error handler: the command's, else the global one, else the
default output.
"""

from __future__ import annotations

import asyncio
import difflib
import inspect
import os
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any, TextIO

from .ansi import OutputStyles, colorize
from .arguments import ParsedArguments, parse_arguments, wants_help, wants_version
from .constants import DEFAULT_PROGRAM_NAME, DEFAULT_VERSION
from .context import ErrorContext, ExecutionContext, MiddlewareContext
from .debug import is_debug
from .handlers import HANDLER_KINDS, check_kinds
from .help import get_command_help, get_program_help, get_version
from .loader import HandlerLoader, LoadedHandler
from .logging_setup import get_logger
from .manifest import load_manifest
from .matcher import MatchResult, match
from .metadata import VersionDeclaration
from .models import DircliError, ExitCode, HandlerExecutionError, Scope, UnknownCommandError
from .params import ParamsDefinition
from .registry import ExecutionOrder, check_registry, list_by_scope, validate_dependencies
from .scanner import CommandNode, DiscoveredStructure, HandlerEntry, Scanner

__all__ = ["DispatchState", "ExecutionEngine", "run_app"]

# Loaded concurrently before the chain starts
CRITICAL_HANDLERS = ("global-error", "env", "middleware")
# Loaded only when a failure is routed to them
ON_DEMAND_HANDLERS = ("error",)


class DispatchState(StrEnum):
    """Steps of a dispatch."""

    MATCHING = "matching"
    LOADING_GLOBAL = "loading global handlers"
    LOADING_COMMAND = "loading command handlers"
    VALIDATING = "validating"
    EXECUTING = "executing"
    DONE = "done"
    ERROR = "error"


def _exit_code(exit_request: SystemExit) -> int:
    """Translate `SystemExit.code` the way the interpreter does."""
    code = exit_request.code
    if code is None:
        return ExitCode.SUCCESS
    if isinstance(code, int):
        return code
    return ExitCode.FAILURE


async def _maybe_await(value: Any) -> Any:  # noqa: ANN401
    if inspect.isawaitable(value):
        return await value
    return value


class _Dispatch:  # pylint: disable=too-many-instance-attributes
    """State of a single invocation."""

    def __init__(self, engine: ExecutionEngine, parsed: ParsedArguments, result: MatchResult) -> None:
        self.engine = engine
        self.log = engine.log
        self.parsed = parsed
        self.result = result
        self.command: CommandNode = result.command
        self.applicable: dict[str, HandlerEntry] = engine.structure.handlers_for(result.command)
        self.loaded: dict[str, LoadedHandler] = {}
        self.resolved: dict[str, Any] = {}
        self.context = ExecutionContext(
            args=parsed.positional[result.consumed_count :],
            options=dict(parsed.options),
            params=dict(result.bound_params),
            raw_env=dict(engine.environ),
            command_path=result.command.path,
        )
        self.state = DispatchState.MATCHING

    def enter(self, state: DispatchState) -> None:
        if state != self.state:
            self.log.debug("[%s] %s -> %s", self.command.path or "(root)", self.state, state)
            self.state = state

    async def load(self, name: str) -> LoadedHandler:
        loaded = self.loaded.get(name)
        if loaded is None:
            loaded = await self.engine.loader.load(self.applicable[name])
            self.loaded[name] = loaded
        return loaded

    async def run(self) -> int:
        """Run the chain then the command; route failures."""
        try:
            return await self._run()
        except SystemExit as e:
            return _exit_code(e)
        except Exception as e:  # pylint: disable=broad-exception-caught
            return await self.route_error(e)

    async def _run(self) -> int:
        report = validate_dependencies(self.applicable)
        for error in report.errors:
            self.log.debug(error)

        self.enter(DispatchState.LOADING_GLOBAL)
        self.loaded.update(await self.engine.loader.preload(self.applicable[name] for name in CRITICAL_HANDLERS if name in self.applicable))

        help_requested = wants_help(self.parsed.options)
        for definition in list_by_scope():
            if help_requested and definition.execution_order > ExecutionOrder.HELP:
                await self.show_help()
                return ExitCode.SUCCESS
            if definition.name not in self.applicable or definition.name in ON_DEMAND_HANDLERS:
                continue
            if definition.execution_order == ExecutionOrder.PARAMS:
                self.enter(DispatchState.VALIDATING)
            elif definition.scope == Scope.COMMAND:
                self.enter(DispatchState.LOADING_COMMAND)
            await self.step(definition.name)

        return await self.execute()

    async def step(self, name: str) -> None:
        """Resolve one handler and merge its value into the context."""
        kind = HANDLER_KINDS[name]
        try:
            loaded = await self.load(name)
            value = await kind.resolve(loaded, self.context)
        except (DircliError, SystemExit):
            raise
        except Exception as e:
            raise HandlerExecutionError(name, e) from e
        self.resolved[name] = value
        self.context = kind.merge(self.context, value)

    async def execute(self) -> int:
        """Run the command, wrapped by the middleware when there is one."""
        self.enter(DispatchState.EXECUTING)
        command = self.resolved["command"]
        outcome: list[Any] = []

        async def run_command() -> Any:  # noqa: ANN401
            try:
                result = await command(self.context)
            except (DircliError, SystemExit):
                raise
            except Exception as e:
                raise HandlerExecutionError("command", e) from e
            outcome.append(result)
            return result

        middleware = self.resolved.get("middleware")
        if middleware is None:
            await run_command()
        else:
            middleware_context = MiddlewareContext.from_context(self.context, self.parsed.positional[: self.result.consumed_count])
            try:
                await _maybe_await(middleware(middleware_context, run_command))
            except (DircliError, SystemExit):
                raise
            except Exception as e:
                raise HandlerExecutionError("middleware", e) from e

        self.enter(DispatchState.DONE)
        result = outcome[0] if outcome else None
        if isinstance(result, int) and not isinstance(result, bool):
            return result
        return ExitCode.SUCCESS

    async def show_help(self) -> None:
        """Print the command help, listing the parameter mappings when declared."""
        mappings: tuple = ()
        if "params" in self.applicable:
            try:
                loaded = await self.load("params")
                mappings = ParamsDefinition.from_value(await loaded.call(self.context)).mappings
            except Exception:  # pylint: disable=broad-exception-caught
                self.log.warning("Unable to read the parameters of %s", self.command.display_name, exc_info=is_debug())
        text = get_command_help(self.command, self.engine.program_name, self.context.help, mappings)
        self.engine.print(text)

    async def _lazy_handler(self, name: str) -> Callable[[Any], Awaitable[Any]] | None:
        """Return an error handler, loading it when the chain did not reach it."""
        if name in self.resolved:
            return self.resolved[name]
        if name not in self.applicable:
            return None
        try:
            await self.step(name)
        except Exception:  # pylint: disable=broad-exception-caught
            self.log.exception("Unable to load the %s handler", name)
            return None
        return self.resolved[name]

    async def route_error(self, error: Exception) -> int:
        """Give `error` to exactly one error handler."""
        self.enter(DispatchState.ERROR)
        self.log.debug("Handling %s", error, exc_info=True)

        handler = await self._lazy_handler("error")
        argument: Any = None
        if handler is not None:
            argument = ErrorContext.from_context(self.context, error)
        else:
            handler = await self._lazy_handler("global-error")
            argument = error
        if handler is None:
            self.engine.report(error)
            return ExitCode.FAILURE

        try:
            result = await handler(argument)
        except SystemExit as e:
            return _exit_code(e)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.log.critical("Error handler failed: %s", e, exc_info=True)
            self.engine.print(f"Error handler failed: {e}", err=True)
            return ExitCode.FAILURE
        if isinstance(result, int) and not isinstance(result, bool):
            return result
        return ExitCode.FAILURE


class ExecutionEngine:
    """Dispatches invocations to the commands of a discovered structure."""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        structure: DiscoveredStructure,
        loader: HandlerLoader | None = None,
        *,
        program_name: str = DEFAULT_PROGRAM_NAME,
        default_version: str = DEFAULT_VERSION,
        environ: Mapping[str, str] | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        colored_errors: bool = True,
    ) -> None:
        check_registry()
        check_kinds()
        self.structure = structure
        self.loader = loader or HandlerLoader()
        self.program_name = program_name
        self.default_version = default_version
        self.environ = os.environ if environ is None else environ
        self.stdout = stdout
        self.stderr = stderr
        self.colored_errors = colored_errors
        self.log = get_logger("engine")

    def print(self, text: str, err: bool = False) -> None:
        """Write a line to stdout (or stderr)."""
        stream = (self.stderr or sys.stderr) if err else (self.stdout or sys.stdout)
        print(text, file=stream)

    def _style(self, text: str, *codes: str) -> str:
        if not self.colored_errors:
            return text
        return colorize(text, *codes, stream=self.stderr or sys.stderr)

    def report(self, error: BaseException) -> None:
        """Default error output."""
        issues = getattr(error, "issues", ())
        self.print(self._style(f"Error: {error}", *OutputStyles.ERROR_TITLE), err=True)
        for issue in issues:
            self.print(f"  {self._style(issue.dotted_path, *OutputStyles.ISSUE_PATH)}: {issue.message}", err=True)
        if isinstance(error, HandlerExecutionError) and error.__cause__ is not None and is_debug():
            self.log.error("Traceback of the failure", exc_info=error.__cause__)

    async def program_version(self) -> VersionDeclaration | None:
        """Resolve the global version handler, or return the declared version."""
        entry = self.structure.global_handlers().get("version")
        if entry is None:
            return self.structure.version
        context = ExecutionContext(raw_env=dict(self.environ))
        try:
            loaded = await self.loader.load(entry)
            return await HANDLER_KINDS["version"].resolve(loaded, context)
        except Exception:  # pylint: disable=broad-exception-caught
            self.log.warning("Unable to resolve the version handler, using the declared version", exc_info=is_debug())
            return self.structure.version

    async def show_program_help(self) -> None:
        """Print the list of commands."""
        self.print(get_program_help(self.structure, self.program_name, await self.program_version()))

    def _unknown_command(self, attempted: str) -> int:
        error = UnknownCommandError(attempted)
        self.log.debug(str(error))
        self.print(self._style(str(error), *OutputStyles.ERROR_TITLE), err=True)
        names = [command.display_name for command in self.structure.commands if command.display_name]
        similar = difflib.get_close_matches(attempted, names, n=1)
        if similar:
            self.print(f"Did you mean '{similar[0]}'?", err=True)
        self.print(f"Run '{self.program_name} --help' to list the commands", err=True)
        return ExitCode.FAILURE

    async def dispatch(self, argv: Sequence[str]) -> int:
        """Run one invocation.

        Args:
            argv: the program arguments, without the program name

        Returns:
            The exit code
        """
        parsed = parse_arguments(argv)
        self.log.debug("[%s] %s", DispatchState.MATCHING, " ".join(argv))

        if not parsed.positional:
            if wants_version(parsed.options):
                self.print(get_version(await self.program_version(), self.default_version))
                return ExitCode.SUCCESS
            if wants_help(parsed.options):
                await self.show_program_help()
                return ExitCode.SUCCESS

        result = match(parsed.positional, self.structure)
        if not isinstance(result, MatchResult):
            if not parsed.positional:
                await self.show_program_help()
                return ExitCode.SUCCESS
            return self._unknown_command(result.attempted_path)

        return await _Dispatch(self, parsed, result).run()


async def _load_structure(root: Path, manifest: Path | None, parallel: bool) -> DiscoveredStructure:
    if manifest is not None:
        return await load_manifest(manifest)
    scanner = Scanner(root)
    return await scanner.scan() if parallel else scanner.scan_sync()


def run_app(  # pylint: disable=too-many-arguments
    root: str | os.PathLike[str],
    argv: Sequence[str] | None = None,
    *,
    manifest: str | os.PathLike[str] | None = None,
    program_name: str = DEFAULT_PROGRAM_NAME,
    default_version: str = DEFAULT_VERSION,
    parallel: bool = True,
) -> int:
    """Discover the commands under `root` and dispatch `argv` (sys.argv by default).

    Returns:
        The exit code
    """

    async def main() -> int:
        structure = await _load_structure(Path(root), Path(manifest) if manifest else None, parallel)
        engine = ExecutionEngine(structure, program_name=program_name, default_version=default_version)
        return await engine.dispatch(sys.argv[1:] if argv is None else argv)

    return asyncio.run(main())
