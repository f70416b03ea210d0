from pathlib import Path

from dircli.matcher import MatchResult, NotFound, alias_paths, attempted_path, find_alias_collisions, match
from dircli.metadata import CommandMetadata
from dircli.scanner import CommandNode, Segment


def node(path, aliases=()):
    segments = tuple(Segment.parse(part) for part in path.split("/") if part)
    metadata = CommandMetadata(aliases=tuple(aliases)) if aliases else None
    return CommandNode(segments=segments, source_file=Path(path or ".") / "command.py", metadata=metadata)


COMMANDS = [
    node(""),
    node("user"),
    node("user/create", aliases=["add", "new"]),
    node("user/[id]"),
    node("user/[id]/delete", aliases=["rm"]),
    node("deploy", aliases=["ship"]),
]


def test_longest_match_wins():
    result = match(["user", "create"], COMMANDS)
    assert isinstance(result, MatchResult)
    assert result.command.path == "user/create"
    assert result.consumed_count == 2

    result = match(["user"], COMMANDS)
    assert result.command.path == "user"
    assert result.consumed_count == 1


def test_dynamic_segment_binds():
    result = match(["user", "42", "delete"], COMMANDS)
    assert result.command.path == "user/[id]/delete"
    assert result.bound_params == {"id": "42"}

    result = match(["user", "42"], COMMANDS)
    assert result.command.path == "user/[id]"
    assert result.bound_params == {"id": "42"}


def test_literal_and_dynamic_tie_keeps_discovery_order():
    # user/create and user/[id] both match two tokens, the first one listed wins
    result = match(["user", "create"], COMMANDS)
    assert result.command.path == "user/create"
    reordered = [COMMANDS[3], COMMANDS[2]]
    assert match(["user", "create"], reordered).command.path == "user/[id]"


def test_extra_tokens_are_left():
    result = match(["deploy", "prod", "eu"], COMMANDS)
    assert result.command.path == "deploy"
    assert result.consumed_count == 1


def test_alias_equivalence():
    direct = match(["user", "create"], COMMANDS)
    for alias in ("add", "new"):
        aliased = match(["user", alias], COMMANDS)
        # user/[id] binds the alias as an id with the same length; direct matches keep ties
        assert aliased.command.path == "user/[id]"

    only_aliases = [node("user/create", aliases=["add"]), node("deploy", aliases=["ship"])]
    aliased = match(["user", "add"], only_aliases)
    assert aliased.command == match(["user", "create"], only_aliases).command
    assert aliased.alias == "add"
    assert aliased.consumed_count == direct.consumed_count

    assert match(["ship"], COMMANDS).command.path == "deploy"


def test_alias_beats_shorter_parent():
    commands = [node("user"), node("user/create", aliases=["add"])]
    direct = match(["user", "create"], commands)
    aliased = match(["user", "add", "--name", "bob"], commands)
    assert aliased.command is direct.command
    assert aliased.command.path == "user/create"
    assert aliased.consumed_count == direct.consumed_count == 2
    assert aliased.alias == "add"

    # the parent still gets tokens that are neither a child nor an alias
    result = match(["user", "other"], commands)
    assert result.command.path == "user"
    assert result.consumed_count == 1


def test_alias_on_dynamic_parent():
    result = match(["user", "7", "rm"], COMMANDS)
    assert result.command.path == "user/[id]/delete"
    assert result.bound_params == {"id": "7"}


def test_root_command_matches_no_tokens():
    result = match([], COMMANDS)
    assert result.command.path == ""
    assert result.consumed_count == 0


def test_root_command_is_the_fallback():
    result = match(["whatever", "else"], COMMANDS)
    assert result.command.path == ""
    assert result.consumed_count == 0
    # aliases are tried before falling back to the root command
    assert match(["ship", "now"], COMMANDS).command.path == "deploy"


def test_not_found():
    commands = [node("user"), node("deploy")]
    result = match(["nope", "x"], commands)
    assert result == NotFound("nope x")
    assert match([], commands) == NotFound("")


def test_attempted_path_stops_at_options():
    assert attempted_path(["a", "b", "--c", "d"]) == "a b"


def test_alias_paths():
    assert alias_paths(COMMANDS[2]) == ["user/add", "user/new"]
    assert alias_paths(node("", aliases=["x"])) == []


def test_alias_collisions():
    commands = [node("list"), node("show", aliases=["list", "ls"]), node("status", aliases=["ls"])]
    assert find_alias_collisions(commands) == [
        "alias 'list' of 'show' shadows command 'list'",
        "alias 'ls' is declared by both 'show' and 'status'",
    ]
    assert find_alias_collisions(COMMANDS) == []
