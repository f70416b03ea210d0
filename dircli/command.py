"""dircli - run, inspect and prebuild directory-routed command line programs."""

import asyncio
import json
import sys
from collections.abc import Collection
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from pathlib import Path

from .config import Configuration
from .config_loader import ConfigLoader
from .engine import ExecutionEngine
from .handlers import check_kinds
from .logging_setup import get_logger, init_logger
from .manifest import build_manifest, load_manifest, write_manifest
from .models import ConfigError, DircliError, ExitCode
from .registry import check_registry, validate_dependencies
from .scanner import DiscoveredStructure, Scanner

__all__ = ["main", "use_flag", "use_param"]

DEFAULT_MANIFEST = "dircli.manifest.json"

USAGE = """Syntax: dircli [--debug [FILE]] [--config FILE] <command> [options]

Commands:
  run [--app DIR] [--manifest FILE] [--] ARGS...
                      dispatch ARGS to the program in the application directory
  scan [--app DIR] [--json]
                      list the discovered commands and handlers
  build [--app DIR] [-o FILE]
                      write a manifest, loaded by `run --manifest`
  check [--app DIR]   report discovery warnings and alias conflicts
  version             show the dircli version
  help                show this help
"""


def use_param(txt: str, argv: list[str], optional: bool = False, reserved: Collection[str] = ()) -> str:
    """Check if parameter `txt` is in `argv`.

    If found, removes it from `argv` & returns the argument value. With
    `optional`, a missing value (end of list or next token is an option)
    yields "-" and only the flag is removed. Words in `reserved` are never
    taken as a value.
    """
    v = ""
    if txt in argv:
        i = argv.index(txt)
        if i + 1 < len(argv) and not (optional and (argv[i + 1].startswith("-") or argv[i + 1] in reserved)):
            v = argv[i + 1]
            del argv[i : i + 2]
        elif optional:
            v = "-"
            del argv[i]
        else:
            msg = f"{txt} expects a value"
            raise ConfigError(msg)
    return v


def use_flag(txt: str, argv: list[str]) -> bool:
    """Remove flag `txt` from `argv`, tell whether it was there."""
    if txt in argv:
        argv.remove(txt)
        return True
    return False


def _get_version() -> str:
    try:
        return package_version("dircli")
    except PackageNotFoundError:
        return "unknown"


def _split_run_arguments(argv: list[str]) -> tuple[list[str], list[str]]:
    """Separate the leading tool options of `run` from the program arguments."""
    if "--" in argv:
        i = argv.index("--")
        return argv[:i], argv[i + 1 :]
    tool: list[str] = []
    rest = list(argv)
    while len(rest) >= 2 and rest[0] in ("--app", "--manifest"):  # noqa: PLR2004
        tool.extend(rest[:2])
        del rest[:2]
    return tool, rest


async def _discover(config: Configuration, app_dir: str) -> DiscoveredStructure:
    scanner = Scanner(Path(app_dir) if app_dir else config.app_dir)
    return await scanner.scan() if config.parallel_scan else scanner.scan_sync()


async def _run(config: Configuration, argv: list[str]) -> int:
    tool, program_args = _split_run_arguments(argv)
    app_dir = use_param("--app", tool)
    manifest = use_param("--manifest", tool)
    if tool:
        print(f"Unexpected arguments: {' '.join(tool)}", file=sys.stderr)
        return ExitCode.USAGE_ERROR

    manifest_path = Path(manifest) if manifest else config.manifest
    if manifest_path is not None and not app_dir:
        structure = await load_manifest(manifest_path)
    else:
        structure = await _discover(config, app_dir)
    engine = ExecutionEngine(
        structure,
        program_name=config.program_name,
        default_version=config.default_version,
        colored_errors=config.colored_errors,
    )
    return await engine.dispatch(program_args)


async def _scan(config: Configuration, argv: list[str]) -> int:
    app_dir = use_param("--app", argv)
    as_json = use_flag("--json", argv)
    structure = await _discover(config, app_dir)
    if as_json:
        print(json.dumps(build_manifest(structure), indent=2))
        return ExitCode.SUCCESS

    print(f"Application directory: {structure.root}")
    for command in structure.commands:
        handlers = ", ".join(name for name in command.handlers if name != "command")
        line = f"  {command.display_name or '(default)'}"
        if handlers:
            line += f"  [{handlers}]"
        print(line)
    global_handlers = sorted(structure.global_handlers())
    if global_handlers:
        print(f"Global handlers: {', '.join(global_handlers)}")
    for warning in structure.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return ExitCode.SUCCESS


async def _build(config: Configuration, argv: list[str]) -> int:
    app_dir = use_param("--app", argv)
    output = use_param("-o", argv) or use_param("--output", argv)
    structure = await _discover(config, app_dir)
    target = Path(output) if output else (config.manifest or Path(DEFAULT_MANIFEST))
    await write_manifest(structure, target)
    print(f"Manifest of {len(structure.commands)} command(s) written to {target}")
    return ExitCode.SUCCESS


async def _check(config: Configuration, argv: list[str]) -> int:
    app_dir = use_param("--app", argv)
    check_registry()
    check_kinds()
    structure = await _discover(config, app_dir)
    problems = list(structure.warnings)
    for command in structure.commands:
        # optional dependencies: reported, not counted as problems
        for error in validate_dependencies(structure.handlers_for(command)).errors:
            print(f"note: {command.display_name or '(default)'}: {error}")
    for problem in problems:
        print(f"warning: {problem}", file=sys.stderr)
    if not structure.commands:
        print(f"No command found in {structure.root}", file=sys.stderr)
        return ExitCode.FAILURE
    print(f"{len(structure.commands)} command(s), {len(problems)} problem(s)")
    return ExitCode.FAILURE if problems else ExitCode.SUCCESS


COMMANDS = {
    "run": _run,
    "scan": _scan,
    "build": _build,
    "check": _check,
}

TOOL_WORDS = frozenset({*COMMANDS, "help", "version"})


async def run_tool(argv: list[str], config_file: str = "") -> int:
    """Run a dircli sub-command.

    Args:
        argv: the arguments following the global options
        config_file: explicit configuration file

    Returns:
        The exit code
    """
    if not argv or argv[0] in ("help", "--help", "-h"):
        print(USAGE)
        return ExitCode.SUCCESS
    if argv[0] in ("version", "--version"):
        print(_get_version())
        return ExitCode.SUCCESS

    handler = COMMANDS.get(argv[0])
    if handler is None:
        print(f"Unknown command: {argv[0]}\n", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return ExitCode.USAGE_ERROR

    config = await ConfigLoader(get_logger("config")).load(config_file)
    return await handler(config, argv[1:])


def main(argv: list[str] | None = None) -> None:
    """Run the command."""
    args = list(sys.argv[1:] if argv is None else argv)
    # global options are only looked for before "--"
    passthrough: list[str] = []
    if "--" in args:
        i = args.index("--")
        args, passthrough = args[:i], args[i:]
    log = get_logger("startup")
    try:
        debug_flag = use_param("--debug", args, optional=True, reserved=TOOL_WORDS)
        if debug_flag:
            init_logger(filename=None if debug_flag == "-" else debug_flag, force_debug=True)
        else:
            init_logger()
        log = get_logger("startup")
        config_file = use_param("--config", args)
        code = asyncio.run(run_tool(args + passthrough, config_file))
    except KeyboardInterrupt:
        code = ExitCode.FAILURE
    except ConfigError as e:
        log.critical("%s", e)
        code = ExitCode.USAGE_ERROR
    except DircliError as e:
        log.critical("Command failed: %s", e)
        code = ExitCode.FAILURE
    except Exception:  # pylint: disable=W0718
        log.critical("Unhandled exception:", exc_info=True)
        code = ExitCode.FAILURE
    sys.exit(int(code))


if __name__ == "__main__":
    main()
