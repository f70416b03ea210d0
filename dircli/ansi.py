"""Terminal colors for log records and error output.

Colors are off when NO_COLOR is set, forced by FORCE_COLOR, and otherwise
only used on terminals.
"""

import os
import sys
from typing import TextIO

__all__ = [
    "BOLD",
    "DIM",
    "RED",
    "RESET",
    "YELLOW",
    "LogStyles",
    "OutputStyles",
    "colorize",
    "make_style",
    "should_colorize",
]

CSI = "\x1b["
RESET = CSI + "0m"

# SGR parameters
BOLD = "1"
DIM = "2"
RED = "31"
YELLOW = "33"


def should_colorize(stream: TextIO | None = None) -> bool:
    """Tell whether escape sequences may be written to `stream` (default: stderr)."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    target = sys.stderr if stream is None else stream
    isatty = getattr(target, "isatty", None)
    return bool(isatty and isatty())


def make_style(*codes: str) -> tuple[str, str]:
    """Return the (prefix, suffix) pair selecting `codes`."""
    prefix = f"{CSI}{';'.join(codes)}m" if codes else ""
    return prefix, RESET


def colorize(text: str, *codes: str, stream: TextIO | None = None) -> str:
    """Wrap `text` in the `codes` style, if `stream` accepts colors."""
    if not codes or not should_colorize(stream):
        return text
    prefix, suffix = make_style(*codes)
    return prefix + text + suffix


class LogStyles:
    """Styles of the log levels."""

    WARNING = (YELLOW, DIM)
    ERROR = (RED, DIM)
    CRITICAL = (RED, BOLD)


class OutputStyles:
    """Styles of the messages printed to users."""

    ERROR_TITLE = (RED, BOLD)
    ISSUE_PATH = (YELLOW,)
