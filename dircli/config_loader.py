"""Configuration file loading.

Lookup order when no file is given explicitly:

1. ``dircli.toml`` in the working directory
2. the ``[tool.dircli]`` table of ``pyproject.toml``
3. built-in defaults
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles

from .config import Configuration
from .constants import CONFIG_FILE, DEFAULT_APP_DIR, DEFAULT_PROGRAM_NAME, DEFAULT_VERSION, PYPROJECT_FILE, PYPROJECT_SECTION
from .models import ConfigError
from .validation import Field, FieldSet, FieldValidator

if TYPE_CHECKING:
    import logging

__all__ = ["CONFIG_SCHEMA", "ConfigLoader"]

CONFIG_SCHEMA = FieldSet(
    Field("app_dir", str, default=DEFAULT_APP_DIR, description="Directory holding the command tree"),
    Field("program_name", str, default=DEFAULT_PROGRAM_NAME, description="Program name used in help output"),
    Field("manifest", str, description="Prebuilt manifest loaded instead of scanning"),
    Field("default_version", str, default=DEFAULT_VERSION, description="Version shown when version.py is absent"),
    Field("parallel_scan", bool, default=True, description="Scan subdirectories concurrently"),
    Field("colored_errors", bool, default=True, description="Allow colors in error output"),
)


class ConfigLoader:
    """Finds, reads and validates the dircli configuration."""

    def __init__(self, log: logging.Logger, cwd: Path | None = None) -> None:
        """Initialize the config loader.

        Args:
            log: Logger instance for status and error messages
            cwd: Directory searched for configuration files
        """
        self.log = log
        self.cwd = cwd or Path.cwd()
        self.warnings: list[str] = []

    async def load(self, config_filename: str = "") -> Configuration:
        """Load the configuration.

        Args:
            config_filename: Optional path to a TOML file. When empty, the
                default locations are searched.

        Returns:
            The validated configuration

        Raises:
            ConfigError: If an explicit file is missing, or a file has syntax errors or invalid values
        """
        if config_filename:
            fname = Path(os.path.expandvars(config_filename)).expanduser()
            if not fname.is_absolute():
                fname = self.cwd / fname
            if not fname.exists():
                self.log.critical("Config file not found: %s", fname)
                raise ConfigError(f"Config file not found: {fname}")
            data, base_dir = await self._load_config_file(fname), fname.parent
        else:
            data, base_dir = await self._find_default()

        validator = FieldValidator(data, "config", self.log)
        self.warnings = validator.warn_unknown_keys(CONFIG_SCHEMA)
        issues = validator.validate(CONFIG_SCHEMA)
        if issues:
            for issue in issues:
                self.log.error("Invalid configuration: %s", issue)
            raise ConfigError("Invalid configuration: " + "; ".join(str(issue) for issue in issues))
        return Configuration(validator.values, logger=self.log, schema=CONFIG_SCHEMA, base_dir=base_dir)

    async def _find_default(self) -> tuple[dict[str, Any], Path]:
        """Search the default locations."""
        config_path = self.cwd / CONFIG_FILE
        if config_path.exists():
            return await self._load_config_file(config_path), self.cwd

        pyproject = self.cwd / PYPROJECT_FILE
        if pyproject.exists():
            section = (await self._load_config_file(pyproject)).get("tool", {}).get(PYPROJECT_SECTION)
            if isinstance(section, dict):
                return section, self.cwd

        self.log.debug("No configuration found in %s, using defaults", self.cwd)
        return {}, self.cwd

    async def _load_config_file(self, fname: Path) -> dict[str, Any]:
        """Load a single TOML file.

        Raises:
            ConfigError: If the file cannot be read or has syntax errors
        """
        self.log.info("Loading %s", fname)
        try:
            async with aiofiles.open(fname, encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            self.log.critical("Unable to read %s: %s", fname, e)
            raise ConfigError(f"Unable to read {fname}") from e
        try:
            return tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            self.log.critical("Problem reading %s: %s", fname, e)
            raise ConfigError(f"Problem reading {fname}: {e}") from e
