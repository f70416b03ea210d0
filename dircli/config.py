"""Settings of the dircli tool, with typed accessors and schema defaults."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .constants import DEFAULT_APP_DIR, DEFAULT_PROGRAM_NAME, DEFAULT_VERSION

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping

    from .validation import FieldSet

__all__ = ["BOOL_FALSE_STRINGS", "BOOL_STRINGS", "BOOL_TRUE_STRINGS", "Configuration", "coerce_to_bool"]

SettingValue = float | bool | str | list | dict

# Spellings understood for booleans, in settings, env variables and params
BOOL_TRUE_STRINGS = frozenset({"true", "yes", "on", "1", "enabled"})
BOOL_FALSE_STRINGS = frozenset({"false", "no", "off", "0", "disabled"})
BOOL_STRINGS = BOOL_TRUE_STRINGS | BOOL_FALSE_STRINGS


def coerce_to_bool(value: SettingValue | None, default: bool = False) -> bool:
    """Read a loosely typed flag.

    `None` gives `default`. A blank string or one of `BOOL_FALSE_STRINGS`
    is False, any other string is True. Other values use `bool()`.
    """
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        return bool(text) and text not in BOOL_FALSE_STRINGS
    return bool(value)


class Configuration(dict):
    """The dircli settings, with defaults taken from the schema.

    `base_dir` is the directory relative paths are resolved against (the
    directory of the configuration file, or the working directory).
    """

    def __init__(
        self,
        values: Mapping[str, SettingValue] | None = None,
        *,
        logger: logging.Logger,
        schema: FieldSet | None = None,
        base_dir: Path | None = None,
    ) -> None:
        super().__init__(values or {})
        self.log = logger
        self.base_dir = base_dir or Path.cwd()
        self._defaults: dict[str, SettingValue] = {}
        if schema:
            self.set_schema(schema)

    def set_schema(self, schema: FieldSet) -> None:
        """Use the defaults declared by `schema`."""
        self._defaults = {item.name: item.default for item in schema if item.default is not None}

    def get(self, name: str, default: SettingValue | None = None) -> SettingValue | None:  # type: ignore[override]
        """Get a value, falling back to the schema default then to `default`."""
        if name in self:
            return self[name]
        return self._defaults.get(name, default)

    def get_bool(self, name: str, default: bool = False) -> bool:
        """Get a flag (see `coerce_to_bool`)."""
        return coerce_to_bool(self.get(name), default)

    def get_str(self, name: str, default: str = "") -> str:
        """Get a string value."""
        value = self.get(name)
        if value is None:
            return default
        return str(value)

    def get_path(self, name: str) -> Path | None:
        """Get a path value, resolved against `base_dir`."""
        value = self.get(name)
        if value is None or value == "":
            return None
        return self.base_dir / Path(str(value)).expanduser()

    def has_explicit(self, name: str) -> bool:
        """Tell whether `name` was set, as opposed to defaulted."""
        return name in self

    @property
    def app_dir(self) -> Path:
        """Directory holding the command tree."""
        return self.get_path("app_dir") or self.base_dir / DEFAULT_APP_DIR

    @property
    def manifest(self) -> Path | None:
        """Prebuilt manifest to load instead of scanning."""
        return self.get_path("manifest")

    @property
    def program_name(self) -> str:
        """Name shown in help and usage lines."""
        return self.get_str("program_name", DEFAULT_PROGRAM_NAME)

    @property
    def default_version(self) -> str:
        """Version printed when the program declares none."""
        return self.get_str("default_version", DEFAULT_VERSION)

    @property
    def parallel_scan(self) -> bool:
        """Whether directories are scanned concurrently."""
        return self.get_bool("parallel_scan", True)

    @property
    def colored_errors(self) -> bool:
        """Whether error output may use colors."""
        return self.get_bool("colored_errors", True)
