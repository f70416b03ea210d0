"""Tests for the ansi module."""

import os
from io import StringIO
from unittest.mock import patch

from dircli.ansi import BOLD, DIM, RED, RESET, YELLOW, OutputStyles, colorize, make_style, should_colorize


def test_colorize_when_forced():
    with patch.dict(os.environ, {"FORCE_COLOR": "1", "NO_COLOR": ""}):
        assert colorize("hello", RED, stream=StringIO()) == "\x1b[31mhello\x1b[0m"
        assert colorize("hello", *OutputStyles.ERROR_TITLE, stream=StringIO()) == "\x1b[31;1mhello\x1b[0m"
        assert colorize("hello", stream=StringIO()) == "hello"


def test_colorize_plain_stream():
    """Non-TTY streams get the text unchanged."""
    with patch.dict(os.environ, {"FORCE_COLOR": "", "NO_COLOR": ""}):
        assert colorize("hello", RED, stream=StringIO()) == "hello"


def test_no_color_wins():
    with patch.dict(os.environ, {"NO_COLOR": "1", "FORCE_COLOR": "1"}):
        assert should_colorize(StringIO()) is False


def test_make_style():
    assert make_style(YELLOW, DIM) == ("\x1b[33;2m", RESET)
    assert make_style() == ("", RESET)
    assert make_style(BOLD)[0] == "\x1b[1m"
