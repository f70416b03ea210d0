"""Help and version rendering for dispatched programs."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .metadata import CommandMetadata, VersionDeclaration

if TYPE_CHECKING:
    from .params import ParamMapping
    from .scanner import CommandNode, DiscoveredStructure

__all__ = ["get_command_help", "get_commands_help", "get_program_help", "get_version"]

COLUMN_WIDTH = 20


def get_version(version: VersionDeclaration | None, default: str) -> str:
    """Return the version string to print for `--version`."""
    if version is None or not version.version:
        return default
    return version.version


def get_commands_help(structure: DiscoveredStructure) -> dict[str, str]:
    """Get the available commands and their short documentation.

    Returns:
        Dict mapping the command as typed (e.g. "user create") to its description
    """
    result: dict[str, str] = {}
    for command in structure.commands:
        name = command.display_name or "(default)"
        description = command.metadata.description if command.metadata and command.metadata.description else ""
        if command.aliases:
            description = f"{description} (aliases: {', '.join(command.aliases)})".strip()
        result[name] = description
    return result


def get_program_help(structure: DiscoveredStructure, program_name: str, version: VersionDeclaration | None = None) -> str:
    """Get the help text of the whole program.

    Args:
        structure: the discovered commands
        program_name: name used in the usage line
        version: declared version, its metadata is shown when present
    """
    lines: list[str] = []
    metadata = version.metadata if version else {}
    if version and metadata:
        lines.append(f"{metadata.get('name', program_name)} {metadata.get('version', version.version)}".strip())
        if metadata.get("description"):
            lines.append(str(metadata["description"]))
        lines.append("")

    lines.append(f"Usage: {program_name} <command> [options]")
    lines.append("")
    lines.append("Available commands:")
    commands = get_commands_help(structure)
    if not commands:
        lines.append("  (none)")
    for name, description in commands.items():
        lines.append(f"  {name.ljust(COLUMN_WIDTH)} {description}".rstrip())

    lines.append("")
    lines.append("Options:")
    lines.append("  --help, -h     Show help")
    lines.append("  --version, -v  Show version")

    if metadata.get("author"):
        lines.append("")
        lines.append(f"Author: {metadata['author']}")

    lines.append("")
    lines.append(f"Use '{program_name} <command> --help' for more details")
    return "\n".join(lines)


def _describe_mapping(mapping: ParamMapping) -> str:
    position = f"[{mapping.arg_index + 1}] " if mapping.arg_index is not None else ""
    option = f" (or --{mapping.option})" if mapping.option else ""
    details = [mapping.type]
    if mapping.required:
        details.append("required")
    if mapping.default is not None:
        details.append(f"default: {mapping.default}")
    text = f"  {position}{mapping.field}{option}"
    suffix = f"<{', '.join(details)}>"
    if mapping.description:
        suffix = f"{mapping.description} {suffix}"
    return f"{text.ljust(COLUMN_WIDTH + 2)} {suffix}"


def get_command_help(
    command: CommandNode,
    program_name: str,
    metadata: CommandMetadata | None = None,
    mappings: Sequence[ParamMapping] = (),
) -> str:
    """Get the help text of one command.

    Args:
        command: the command
        program_name: name used in the usage line
        metadata: metadata returned by the help handler, else the statically extracted one
        mappings: parameter mappings, listed as arguments
    """
    metadata = metadata or command.metadata or CommandMetadata()
    usage = " ".join(part for part in (program_name, command.display_name) if part)
    lines = [f"Usage: {usage} [options]"]

    if metadata.description:
        lines.append("")
        lines.append(metadata.description)

    if mappings:
        lines.append("")
        lines.append("Arguments:")
        lines.extend(_describe_mapping(mapping) for mapping in mappings)

    if metadata.aliases:
        lines.append("")
        lines.append(f"Aliases: {', '.join(metadata.aliases)}")

    if metadata.examples:
        lines.append("")
        lines.append("Examples:")
        lines.extend(f"  {program_name} {example}" for example in metadata.examples)

    if metadata.additional_help:
        lines.append("")
        lines.append(metadata.additional_help)

    return "\n".join(lines)
