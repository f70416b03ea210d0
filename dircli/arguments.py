"""Command line tokenization for dispatched programs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .constants import HELP_FLAGS, VERSION_FLAGS

__all__ = ["OptionValue", "ParsedArguments", "parse_arguments", "wants_help", "wants_version"]

OptionValue = str | bool


@dataclass(frozen=True)
class ParsedArguments:
    """Positional tokens and named options of an invocation."""

    positional: tuple[str, ...] = ()
    options: dict[str, OptionValue] = field(default_factory=dict)


def parse_arguments(argv: Sequence[str]) -> ParsedArguments:
    """Split `argv` into positional tokens and options.

    Recognized forms:

    - ``--key=value``
    - ``--key value`` (when the next token does not start with ``-``)
    - ``--flag`` (True)
    - ``-x`` (True)
    - ``--`` ends option parsing, the remaining tokens are positional

    A repeated option keeps its last value.
    """
    positional: list[str] = []
    options: dict[str, OptionValue] = {}

    index = 0
    while index < len(argv):
        token = argv[index]
        index += 1
        if token == "--":
            positional.extend(argv[index:])
            break
        if token.startswith("--"):
            key, sep, value = token[2:].partition("=")
            if sep:
                options[key] = value
            elif index < len(argv) and not argv[index].startswith("-"):
                options[key] = argv[index]
                index += 1
            else:
                options[key] = True
        elif token.startswith("-") and len(token) > 1:
            options[token[1:]] = True
        else:
            positional.append(token)

    return ParsedArguments(tuple(positional), options)


def wants_help(options: Mapping[str, OptionValue]) -> bool:
    """Tell whether `--help` or `-h` was given."""
    return any(options.get(flag) for flag in HELP_FLAGS)


def wants_version(options: Mapping[str, OptionValue]) -> bool:
    """Tell whether `--version` or `-v` was given."""
    return any(options.get(flag) for flag in VERSION_FLAGS)
