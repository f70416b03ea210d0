"""Command matcher - resolves invocation tokens to a discovered command.

Rules, in order:

1. a command matches when each of its segments matches the token at the same
   position: literal segments require equality, dynamic segments bind the
   token to their name;
2. an alias stands for the last segment of its command, so `user add`
   matches `user/create` when `create` declares the alias `add`;
3. the longest match wins, direct or aliased (`user add` beats `user`);
4. ties keep the direct match, then the first command in discovery order;
5. the root command (no segment) matches any tokens, so it only applies when
   nothing else consumed a token.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import chain
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .scanner import CommandNode, DiscoveredStructure, Segment

__all__ = ["MatchResult", "NotFound", "alias_paths", "attempted_path", "find_alias_collisions", "match"]


@dataclass(frozen=True)
class MatchResult:
    """A resolved command."""

    command: CommandNode
    bound_params: dict[str, str] = field(default_factory=dict)
    consumed_count: int = 0
    alias: str | None = None  # alias used for the last segment, if any


@dataclass(frozen=True)
class NotFound:
    """No command matched; carries the attempted path for error reporting."""

    attempted_path: str


def _match_segments(segments: Sequence[Segment], tokens: Sequence[str]) -> dict[str, str] | None:
    """Return the bound parameters if `segments` match the leading tokens."""
    if len(segments) > len(tokens):
        return None
    bound: dict[str, str] = {}
    for segment, token in zip(segments, tokens, strict=False):
        if segment.dynamic:
            bound[segment.value] = token
        elif segment.value != token:
            return None
    return bound


def _aliased(command: CommandNode, alias: str) -> tuple[Segment, ...]:
    """Return the command segments with the last one replaced by `alias`."""
    last = command.segments[-1]
    return (*command.segments[:-1], type(last)(alias))


def _best(candidates: Iterable[tuple[CommandNode, tuple[Segment, ...], str | None]], tokens: Sequence[str]) -> MatchResult | None:
    best: MatchResult | None = None
    for command, segments, alias in candidates:
        bound = _match_segments(segments, tokens)
        if bound is None:
            continue
        if best is None or len(segments) > best.consumed_count:
            best = MatchResult(command=command, bound_params=bound, consumed_count=len(segments), alias=alias)
    return best


def attempted_path(tokens: Sequence[str]) -> str:
    """Return the leading non-option tokens joined by spaces."""
    words = []
    for token in tokens:
        if token.startswith("-"):
            break
        words.append(token)
    return " ".join(words)


def match(tokens: Sequence[str], structure: DiscoveredStructure | Sequence[CommandNode]) -> MatchResult | NotFound:
    """Resolve `tokens` (positional words of the invocation) to a command.

    Args:
        tokens: positional tokens, options removed
        structure: a discovered structure, or its command list

    Returns:
        The best `MatchResult`, or `NotFound`
    """
    commands = structure if isinstance(structure, Sequence) else structure.commands

    # direct paths come first so they keep ties against alias paths
    candidates = chain(
        ((command, command.segments, None) for command in commands),
        ((command, _aliased(command, alias), alias) for command in commands if command.segments for alias in command.aliases),
    )
    best = _best(candidates, tokens)
    if best is not None:
        return best

    return NotFound(attempted_path(tokens))


def alias_paths(command: CommandNode) -> list[str]:
    """Return the slash separated paths reachable through the command's aliases."""
    if not command.segments:
        return []
    return ["/".join(str(segment) for segment in _aliased(command, alias)) for alias in command.aliases]


def find_alias_collisions(commands: Sequence[CommandNode]) -> list[str]:
    """List alias paths that collide with a literal command path or another alias path.

    Such trees are ambiguous: the matcher would silently prefer the literal
    command (or the first discovered one).
    """
    literal = {command.path: command for command in commands}
    seen: dict[str, CommandNode] = {}
    conflicts: list[str] = []
    for command in commands:
        for path in alias_paths(command):
            other = literal.get(path)
            if other is not None and other is not command:
                conflicts.append(f"alias '{path}' of '{command.path}' shadows command '{other.path}'")
            elif path in seen and seen[path] is not command:
                conflicts.append(f"alias '{path}' is declared by both '{seen[path].path}' and '{command.path}'")
            seen.setdefault(path, command)
    return conflicts
