"""Logging setup and utilities.

Every component logs through a named, non-propagating logger obtained with
`get_logger`. `init_logger` installs the shared handlers: a screen handler
(colored by level) and an optional file handler. Loggers created before
`init_logger` runs are reconfigured in place.
"""

import logging

from .ansi import LogStyles, make_style, should_colorize
from .debug import is_debug, set_debug

__all__ = [
    "LogObjects",
    "ScreenLogFormatter",
    "get_logger",
    "init_logger",
]

ROOT_LOGGER = "dircli"
FILE_FORMAT = r"%(asctime)s [%(levelname)s] %(name)s :: %(message)s :: %(filename)s:%(lineno)d"

_LEVEL_STYLES = {
    logging.WARNING: LogStyles.WARNING,
    logging.ERROR: LogStyles.ERROR,
    logging.CRITICAL: LogStyles.CRITICAL,
}


class LogObjects:
    """Handlers shared by every dircli logger."""

    handlers: list[logging.Handler] = []


class ScreenLogFormatter(logging.Formatter):
    """Terse screen output, colored by level when stderr accepts colors.

    In debug mode the logger name and source location are shown too.
    """

    def __init__(self, debug: bool = False) -> None:
        super().__init__()
        fmt = r"%(name)18s - %(message)s // %(filename)s:%(lineno)d" if debug else r"%(message)s"
        colored = should_colorize()
        self._plain = logging.Formatter(fmt)
        self._by_level: dict[int, logging.Formatter] = {}
        for level, style in _LEVEL_STYLES.items():
            prefix, suffix = make_style(*style) if colored else ("", "")
            self._by_level[level] = logging.Formatter(prefix + fmt + suffix)

    def format(self, record: logging.LogRecord) -> str:
        return self._by_level.get(record.levelno, self._plain).format(record)


def _configure(logger: logging.Logger, level: int | None = None) -> None:
    logger.setLevel((logging.DEBUG if is_debug() else logging.WARNING) if level is None else level)
    logger.propagate = False
    for handler in list(logger.handlers):
        if handler not in LogObjects.handlers:
            logger.removeHandler(handler)
    for handler in LogObjects.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)


def init_logger(filename: str | None = None, force_debug: bool = False) -> None:
    """Initialize the logging system.

    Args:
        filename: Optional filename to log to
        force_debug: If True, force debug level
    """
    if force_debug:
        set_debug(True)

    for handler in LogObjects.handlers:
        handler.close()
    LogObjects.handlers.clear()
    if filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT))
        LogObjects.handlers.append(file_handler)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ScreenLogFormatter(is_debug()))
    LogObjects.handlers.append(stream_handler)

    manager = logging.Logger.manager
    for name, existing in list(manager.loggerDict.items()):
        if (name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}.")) and isinstance(existing, logging.Logger):
            _configure(existing)


def get_logger(name: str = ROOT_LOGGER, level: int | None = None) -> logging.Logger:
    """Return a named logger.

    Args:
        name (str): logger's name, prefixed with "dircli."
        level (int): logger's level (auto if not set)

    Returns:
        The logger instance
    """
    logger = logging.getLogger(name if name == ROOT_LOGGER else f"{ROOT_LOGGER}.{name}")
    _configure(logger, level)
    return logger
