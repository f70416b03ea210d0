"""Directory scanner - turns an application tree into commands and handlers.

Layout conventions::

    app/
        env.py              global handlers, root directory only
        version.py
        middleware.py
        global_error.py
        hello/
            command.py      makes `hello` a command
            params.py       attached to `hello` only
        user/
            [id]/
                command.py  `user <id>`, binds the `id` parameter

Two variants are provided: `Scanner.scan` walks subdirectories concurrently
using aiofiles, `Scanner.scan_sync` walks them one by one. Both feed the same
assembly step so their results are equal.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import aiofiles.os

from .constants import IGNORED_DIRECTORIES
from .logging_setup import get_logger
from .metadata import AstMetadataExtractor, CommandMetadata, MetadataExtractor, VersionDeclaration
from .models import Scope
from .registry import HandlerDefinition, by_file_name, get_definition

__all__ = [
    "CommandNode",
    "DiscoveredStructure",
    "HandlerEntry",
    "Scanner",
    "Segment",
    "handler_key",
]

COMMAND_FILES = by_file_name(Scope.COMMAND)
GLOBAL_FILES = by_file_name(Scope.GLOBAL)
COMMAND_HANDLER = "command"


@dataclass(frozen=True)
class Segment:
    """A path component: literal text or a dynamic `[name]` placeholder."""

    value: str
    dynamic: bool = False

    @classmethod
    def parse(cls, directory_name: str) -> Segment:
        """Build a segment from a directory name (`[id]` is dynamic)."""
        if len(directory_name) > 2 and directory_name.startswith("[") and directory_name.endswith("]"):  # noqa: PLR2004
            return cls(directory_name[1:-1].removeprefix("..."), dynamic=True)
        return cls(directory_name)

    def __str__(self) -> str:
        return f"[{self.value}]" if self.dynamic else self.value


@dataclass(frozen=True)
class HandlerEntry:
    """A handler file found by the scanner."""

    file_path: Path
    definition: HandlerDefinition
    command_path: str | None = None  # None for global handlers


@dataclass(frozen=True)
class CommandNode:
    """A discovered command."""

    segments: tuple[Segment, ...]
    source_file: Path
    handlers: Mapping[str, Path] = field(default_factory=lambda: MappingProxyType({}))
    metadata: CommandMetadata | None = None

    @property
    def path(self) -> str:
        """Slash separated path, e.g. "user/[id]/delete" ("" for the root command)."""
        return "/".join(str(segment) for segment in self.segments)

    @property
    def depth(self) -> int:
        """Number of segments."""
        return len(self.segments)

    @property
    def dynamic_params(self) -> tuple[str, ...]:
        """Names of the parameters bound by dynamic segments."""
        return tuple(segment.value for segment in self.segments if segment.dynamic)

    @property
    def aliases(self) -> tuple[str, ...]:
        """Aliases declared for the last segment."""
        return self.metadata.aliases if self.metadata else ()

    @property
    def display_name(self) -> str:
        """Space separated path as typed by users."""
        return " ".join(str(segment) for segment in self.segments)


@dataclass(frozen=True)
class DiscoveredStructure:
    """Everything one scan found. Rebuilt by each scan, never updated."""

    root: Path
    commands: tuple[CommandNode, ...] = ()
    handlers: Mapping[str, HandlerEntry] = field(default_factory=lambda: MappingProxyType({}))
    conflicts: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    version: VersionDeclaration | None = None

    def global_handlers(self) -> dict[str, HandlerEntry]:
        """Return the global handlers keyed by handler name."""
        return {entry.definition.name: entry for entry in self.handlers.values() if entry.definition.scope == Scope.GLOBAL}

    def handlers_for(self, command: CommandNode) -> dict[str, HandlerEntry]:
        """Return every handler applicable to `command` (global + its own), keyed by name."""
        applicable = self.global_handlers()
        for name, file_path in command.handlers.items():
            applicable[name] = HandlerEntry(file_path, get_definition(name), command.path)
        return applicable

    def find(self, path: str) -> CommandNode | None:
        """Return the command with the given slash separated path."""
        for command in self.commands:
            if command.path == path:
                return command
        return None


def handler_key(definition: HandlerDefinition, command_path: str | None) -> str:
    """Key of a handler in `DiscoveredStructure.handlers`."""
    if definition.scope == Scope.GLOBAL or not command_path:
        return definition.name
    return f"{command_path}/{definition.name}"


@dataclass(frozen=True)
class _Found:
    """A raw command-scope file found while walking."""

    parts: tuple[str, ...]
    file_name: str
    file_path: Path


class Scanner:
    """Scans an application directory."""

    def __init__(self, root: str | os.PathLike[str], extractor: MetadataExtractor | None = None) -> None:
        self.root = Path(root)
        self.extractor = extractor or AstMetadataExtractor()
        self.log = get_logger("scanner")

    async def scan(self) -> DiscoveredStructure:
        """Scan concurrently: subdirectories are visited in parallel."""
        if not await aiofiles.os.path.isdir(self.root):
            self.log.info("Application directory %s not found", self.root)
            return DiscoveredStructure(root=self.root)

        async def probe(file_name: str) -> str | None:
            return file_name if await aiofiles.os.path.isfile(self.root / file_name) else None

        global_files = [name for name in await asyncio.gather(*(probe(name) for name in GLOBAL_FILES)) if name]
        found: list[_Found] = []
        warnings: list[str] = []
        await self._walk(self.root, (), found, warnings)
        return self._assemble(global_files, found, warnings)

    def scan_sync(self) -> DiscoveredStructure:
        """Scan sequentially."""
        if not self.root.is_dir():
            self.log.info("Application directory %s not found", self.root)
            return DiscoveredStructure(root=self.root)

        global_files = [name for name in GLOBAL_FILES if (self.root / name).is_file()]
        warnings: list[str] = []
        found = list(self._walk_sync(self.root, (), warnings))
        return self._assemble(global_files, found, warnings)

    def _warn(self, warnings: list[str], message: str, *args: object) -> None:
        self.log.warning(message, *args)
        warnings.append(message % args)

    @staticmethod
    def _ignored(name: str) -> bool:
        return name in IGNORED_DIRECTORIES or name.startswith(".")

    async def _walk(self, directory: Path, parts: tuple[str, ...], found: list[_Found], warnings: list[str]) -> None:
        try:
            names = await aiofiles.os.listdir(directory)
        except OSError as e:
            self._warn(warnings, "Failed to read directory %s: %s", directory, e)
            return

        children = []
        for name in names:
            full_path = directory / name
            if await aiofiles.os.path.isdir(full_path):
                if not self._ignored(name):
                    children.append(self._walk(full_path, (*parts, name), found, warnings))
            elif name in COMMAND_FILES and await aiofiles.os.path.isfile(full_path):
                found.append(_Found(parts, name, full_path))
        await asyncio.gather(*children)

    def _walk_sync(self, directory: Path, parts: tuple[str, ...], warnings: list[str]) -> Iterator[_Found]:
        try:
            names = os.listdir(directory)
        except OSError as e:
            self._warn(warnings, "Failed to read directory %s: %s", directory, e)
            return

        for name in names:
            full_path = directory / name
            if full_path.is_dir():
                if not self._ignored(name):
                    yield from self._walk_sync(full_path, (*parts, name), warnings)
            elif name in COMMAND_FILES and full_path.is_file():
                yield _Found(parts, name, full_path)

    def _assemble(self, global_files: list[str], found: list[_Found], warnings: list[str]) -> DiscoveredStructure:
        """Build the structure from the raw findings, independently of their order."""
        handlers: dict[str, HandlerEntry] = {}
        for file_name in global_files:
            definition = GLOBAL_FILES[file_name]
            handlers[handler_key(definition, None)] = HandlerEntry(self.root / file_name, definition)

        by_directory: dict[tuple[str, ...], dict[str, Path]] = {}
        for item in found:
            definition = COMMAND_FILES[item.file_name]
            by_directory.setdefault(item.parts, {})[definition.name] = item.file_path

        commands: list[CommandNode] = []
        for parts, files in by_directory.items():
            segments = tuple(Segment.parse(part) for part in parts)
            command_path = "/".join(str(segment) for segment in segments)
            for name, file_path in files.items():
                definition = get_definition(name)
                handlers[handler_key(definition, command_path)] = HandlerEntry(file_path, definition, command_path)

            if COMMAND_HANDLER not in files:
                self._warn(warnings, "Ignoring %s in %s: no command.py in this directory", ", ".join(sorted(files)), self.root.joinpath(*parts))
                continue

            commands.append(
                CommandNode(
                    segments=segments,
                    source_file=files[COMMAND_HANDLER],
                    handlers=MappingProxyType(dict(sorted(files.items()))),
                    metadata=self._extract_metadata(files),
                )
            )

        # literal segments sort before dynamic ones, so they win ties in the matcher
        commands.sort(key=lambda command: (command.depth, [(segment.dynamic, segment.value) for segment in command.segments]))

        # imported here: the matcher depends on this module's types
        from .matcher import find_alias_collisions  # pylint: disable=import-outside-toplevel

        conflicts = find_alias_collisions(commands)
        for conflict in conflicts:
            self._warn(warnings, "Ambiguous command path: %s", conflict)

        version = None
        if "version.py" in global_files:
            version = self.extractor.extract_version(self.root / "version.py")

        # parse problems were already logged by the extractor
        warnings.extend(self.extractor.warnings)
        self.extractor.warnings.clear()

        self.log.debug("Found %d command(s) and %d handler file(s) in %s", len(commands), len(handlers), self.root)
        return DiscoveredStructure(
            root=self.root,
            commands=tuple(commands),
            handlers=MappingProxyType(dict(sorted(handlers.items()))),
            conflicts=tuple(conflicts),
            warnings=tuple(sorted(warnings)),
            version=version,
        )

    def _extract_metadata(self, files: dict[str, Path]) -> CommandMetadata | None:
        """Return the metadata declared in the help file, or else in the command file."""
        for name in ("help", COMMAND_HANDLER):
            if name in files:
                metadata = self.extractor.extract(files[name])
                if metadata is not None:
                    return metadata
        return None
