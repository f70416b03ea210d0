"""Shared constants for dircli."""

__all__ = [
    "CONFIG_FILE",
    "DEFAULT_APP_DIR",
    "DEFAULT_PROGRAM_NAME",
    "DEFAULT_VERSION",
    "HELP_FLAGS",
    "IGNORED_DIRECTORIES",
    "MANIFEST_FORMAT",
    "PYPROJECT_FILE",
    "PYPROJECT_SECTION",
    "VERSION_FLAGS",
]

# Configuration lookup
CONFIG_FILE = "dircli.toml"
PYPROJECT_FILE = "pyproject.toml"
PYPROJECT_SECTION = "dircli"  # [tool.dircli]

DEFAULT_APP_DIR = "app"
DEFAULT_PROGRAM_NAME = "cli"
DEFAULT_VERSION = "0.0.0"

# Flags recognized by dispatched programs
HELP_FLAGS = frozenset({"help", "h"})
VERSION_FLAGS = frozenset({"version", "v"})

# Directories never treated as command directories
IGNORED_DIRECTORIES = frozenset({"__pycache__"})

MANIFEST_FORMAT = 1
