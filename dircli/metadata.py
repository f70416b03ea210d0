"""Static metadata extraction from handler modules.

Command metadata (name, description, examples, aliases) is read without
importing the module: the file is parsed with `ast` and a module-level
literal is evaluated with `ast.literal_eval`. Both forms are accepted::

    help = {"description": "Say hello", "aliases": ["hi"]}

    def help():
        return {"description": "Say hello", "aliases": ["hi"]}

Parse problems are reported as warnings and yield `None`.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .logging_setup import get_logger

__all__ = [
    "AstMetadataExtractor",
    "CommandMetadata",
    "MetadataExtractor",
    "VersionDeclaration",
]


@dataclass(frozen=True)
class CommandMetadata:
    """Declared metadata of a command."""

    name: str | None = None
    description: str | None = None
    examples: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()
    additional_help: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CommandMetadata:
        """Build from a loosely typed mapping (module literal or manifest)."""
        return cls(
            name=_opt_str(data.get("name")),
            description=_opt_str(data.get("description")),
            examples=tuple(str(example) for example in data.get("examples") or ()),
            aliases=tuple(str(alias) for alias in data.get("aliases") or ()),
            additional_help=_opt_str(data.get("additional_help", data.get("additionalHelp"))),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON friendly mapping, omitting empty fields."""
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "examples": list(self.examples),
            "aliases": list(self.aliases),
            "additional_help": self.additional_help,
        }
        return {key: value for key, value in data.items() if value}


@dataclass(frozen=True)
class VersionDeclaration:
    """A version string with optional metadata (name, author, ...)."""

    version: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> VersionDeclaration:  # noqa: ANN401
        """Normalize a version handler value.

        Accepts a plain string, a mapping with a `version` key, or an
        existing declaration.
        """
        if isinstance(value, VersionDeclaration):
            return value
        if isinstance(value, dict):
            return cls(version=str(value.get("version", "")), metadata=dict(value.get("metadata") or {}))
        return cls(version=str(value))


def _opt_str(value: Any) -> str | None:  # noqa: ANN401
    return None if value is None else str(value)


class MetadataExtractor(Protocol):
    """Reads declared metadata out of handler files."""

    warnings: list[str]
    """Problems met while reading files, emptied by the scanner after each scan."""

    def extract(self, path: Path) -> CommandMetadata | None:
        """Return the command metadata declared in `path`, if any."""

    def extract_version(self, path: Path) -> VersionDeclaration | None:
        """Return the version declared in `path`, if any."""


class AstMetadataExtractor:
    """Default extractor, based on the standard `ast` module.

    Looks for `help` (help files) or `metadata` (command files) at module
    level, and for `version` in version files.
    """

    metadata_names = ("help", "metadata")

    def __init__(self) -> None:
        self.log = get_logger("metadata")
        self.warnings: list[str] = []

    def extract(self, path: Path) -> CommandMetadata | None:
        tree = self._parse(path)
        if tree is None:
            return None
        for name in self.metadata_names:
            value = self._find_literal(tree, path, name)
            if isinstance(value, dict):
                return CommandMetadata.from_dict(value)
        return None

    def extract_version(self, path: Path) -> VersionDeclaration | None:
        tree = self._parse(path)
        value = None if tree is None else self._find_literal(tree, path, "version")
        if value is None:
            return None
        return VersionDeclaration.from_value(value)

    def _warn(self, message: str, *args: object) -> None:
        self.log.warning(message, *args)
        self.warnings.append(message % args)

    def _parse(self, path: Path) -> ast.Module | None:
        try:
            return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        except (OSError, UnicodeDecodeError) as e:
            self._warn("Unable to read %s: %s", path, e)
        except SyntaxError as e:
            self._warn("Syntax error in %s line %s: %s", path, e.lineno, e.msg)
        return None

    def _find_literal(self, tree: ast.Module, path: Path, name: str) -> Any:  # noqa: ANN401
        """Return the literal bound to `name` at module level, or returned by function `name`."""
        for node in tree.body:
            expression = _bound_expression(node, name)
            if expression is None:
                continue
            try:
                return ast.literal_eval(expression)
            except (ValueError, TypeError):
                self._warn("%s: '%s' is not a literal, metadata ignored", path, name)
                return None
        return None


def _bound_expression(node: ast.stmt, name: str) -> ast.expr | None:
    """Return the expression `node` binds to `name`, if it does."""
    if isinstance(node, ast.Assign) and any(isinstance(target, ast.Name) and target.id == name for target in node.targets):
        return node.value
    if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name) and node.target.id == name:
        return node.value
    if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef) and node.name == name:
        for statement in node.body:
            if isinstance(statement, ast.Return) and statement.value is not None:
                return statement.value
    return None
