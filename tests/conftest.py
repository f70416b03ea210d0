" generic fixtures "
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from dircli.logging_setup import get_logger, init_logger


def pytest_configure():
    "Runs once before all"
    init_logger("/dev/null", force_debug=True)


@pytest.fixture
def test_logger():
    "Logger for the tested components"
    return get_logger("tests")


@pytest.fixture
def make_app(tmp_path) -> Callable[[dict[str, str]], Path]:
    """Build an application tree under tmp_path.

    Keys are paths relative to the app root, values the file contents
    (dedented). Returns the app root.
    """

    def build(files: dict[str, str], root: str = "app") -> Path:
        app = tmp_path / root
        app.mkdir(exist_ok=True)
        for name, content in files.items():
            target = app / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content), encoding="utf-8")
        return app

    return build


# Handler sources shared by several test modules

HELLO_COMMAND = """
    def command(ctx):
        print(f"Hello, {ctx.data['name']}!")
"""

HELLO_PARAMS = """
    params = {
        "mappings": [
            {"field": "name", "type": "string", "arg_index": 0, "option": "name", "default": "World"},
        ]
    }
"""

HELLO_HELP = """
    help = {"description": "Say hello", "aliases": ["hi"], "examples": ["hello Alice"]}
"""


@pytest.fixture
def hello_app(make_app):
    "The classic hello command, with parameters and help"
    return make_app(
        {
            "hello/command.py": HELLO_COMMAND,
            "hello/params.py": HELLO_PARAMS,
            "hello/help.py": HELLO_HELP,
        }
    )
