"""Debug mode switch.

Enabled by the DIRCLI_DEBUG or DEBUG environment variables (unless they hold
an explicit false value such as "0" or "no"), or by `dircli --debug`.
"""

import os

from .config import coerce_to_bool

__all__ = [
    "DEBUG_VARIABLES",
    "is_debug",
    "set_debug",
]

DEBUG_VARIABLES = ("DIRCLI_DEBUG", "DEBUG")


def _from_environment() -> bool:
    for name in DEBUG_VARIABLES:
        if name in os.environ:
            return coerce_to_bool(os.environ[name])
    return False


class _DebugState:
    """Holds the switch, so no global statement is needed."""

    value: bool = _from_environment()


_debug_state = _DebugState()


def is_debug() -> bool:
    """Return the current debug state."""
    return _debug_state.value


def set_debug(value: bool) -> None:
    """Set the debug state."""
    _debug_state.value = value
