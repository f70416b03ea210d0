"""JSON manifest of a discovered structure.

A manifest lets a program start without scanning its application directory.
File paths are stored relative to the application root, and the root relative
to the manifest, so the manifest stays valid when the project is moved.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any

import aiofiles

from .constants import MANIFEST_FORMAT
from .logging_setup import get_logger
from .metadata import CommandMetadata, VersionDeclaration
from .models import DircliError
from .registry import get_definition
from .scanner import CommandNode, DiscoveredStructure, HandlerEntry, Segment

__all__ = ["ManifestError", "build_manifest", "load_manifest", "parse_manifest", "write_manifest"]


class ManifestError(DircliError):
    """The manifest cannot be read or has an unsupported format."""


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def build_manifest(structure: DiscoveredStructure, base_dir: Path | None = None) -> dict[str, Any]:
    """Serialize `structure` to a JSON friendly dict.

    Args:
        structure: the scan result
        base_dir: directory the manifest will be written to (root is stored relative to it)
    """
    root = structure.root
    root_ref = os.path.relpath(root, base_dir) if base_dir is not None else str(root)
    return {
        "format": MANIFEST_FORMAT,
        "root": Path(root_ref).as_posix(),
        "commands": [
            {
                "path": command.path,
                "source_file": _relative(command.source_file, root),
                "handlers": {name: _relative(file_path, root) for name, file_path in command.handlers.items()},
                "metadata": command.metadata.to_dict() if command.metadata else None,
            }
            for command in structure.commands
        ],
        "handlers": {
            key: {
                "name": entry.definition.name,
                "file_path": _relative(entry.file_path, root),
                "command_path": entry.command_path,
            }
            for key, entry in structure.handlers.items()
        },
        "conflicts": list(structure.conflicts),
        "warnings": list(structure.warnings),
        "version": (
            {"version": structure.version.version, "metadata": structure.version.metadata} if structure.version else None
        ),
    }


def parse_manifest(data: dict[str, Any], root: Path) -> DiscoveredStructure:
    """Rebuild a structure from a manifest dict.

    Raises:
        ManifestError: unsupported format or malformed content
    """
    if data.get("format") != MANIFEST_FORMAT:
        raise ManifestError(f"Unsupported manifest format {data.get('format')!r}, expected {MANIFEST_FORMAT}")
    try:
        commands = tuple(
            CommandNode(
                segments=tuple(Segment.parse(part) for part in item["path"].split("/") if part),
                source_file=root / item["source_file"],
                handlers=MappingProxyType({name: root / file_path for name, file_path in item["handlers"].items()}),
                metadata=CommandMetadata.from_dict(item["metadata"]) if item.get("metadata") else None,
            )
            for item in data["commands"]
        )
        handlers = {
            key: HandlerEntry(root / item["file_path"], get_definition(item["name"]), item.get("command_path"))
            for key, item in data["handlers"].items()
        }
        version = VersionDeclaration.from_value(data["version"]) if data.get("version") else None
    except (KeyError, TypeError, AttributeError) as e:
        raise ManifestError(f"Malformed manifest: {e!r}") from e
    return DiscoveredStructure(
        root=root,
        commands=commands,
        handlers=MappingProxyType(handlers),
        conflicts=tuple(data.get("conflicts", ())),
        warnings=tuple(data.get("warnings", ())),
        version=version,
    )


async def write_manifest(structure: DiscoveredStructure, path: str | os.PathLike[str]) -> Path:
    """Write the manifest of `structure` to `path`."""
    target = Path(path)
    content = json.dumps(build_manifest(structure, target.parent.resolve()), indent=2, sort_keys=False)
    async with aiofiles.open(target, "w", encoding="utf-8") as f:
        await f.write(content + "\n")
    get_logger("manifest").info("Wrote manifest of %d command(s) to %s", len(structure.commands), target)
    return target


async def load_manifest(path: str | os.PathLike[str], root: Path | None = None) -> DiscoveredStructure:
    """Load a manifest written by `write_manifest`.

    Args:
        path: manifest file
        root: overrides the application root recorded in the manifest

    Raises:
        ManifestError: the file is missing, is not JSON, or is malformed
    """
    source = Path(path)
    try:
        async with aiofiles.open(source, encoding="utf-8") as f:
            data = json.loads(await f.read())
    except OSError as e:
        raise ManifestError(f"Unable to read manifest {source}: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid manifest {source}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"Invalid manifest {source}: expected an object")
    if root is None:
        root = (source.parent / data.get("root", ".")).resolve()
    get_logger("manifest").debug("Loaded manifest %s (root %s)", source, root)
    return parse_manifest(data, root)
