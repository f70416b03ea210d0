"""Shared types: exit codes, validation issues and the exception hierarchy."""

from dataclasses import dataclass, field
from enum import IntEnum, StrEnum

__all__ = [
    "ConfigError",
    "DircliError",
    "EnvValidationError",
    "ExitCode",
    "HandlerExecutionError",
    "Issue",
    "ParamsValidationError",
    "RegistryError",
    "Scope",
    "UnknownCommandError",
    "ValidationError",
]


class ExitCode(IntEnum):
    """Process exit codes of a dispatched program."""

    SUCCESS = 0
    FAILURE = 1  # unknown command, invalid arguments, handler failure
    USAGE_ERROR = 2  # misuse of the dircli tool itself


class Scope(StrEnum):
    """Where a handler applies."""

    GLOBAL = "global"
    COMMAND = "command"


@dataclass(frozen=True)
class Issue:
    """A single validation problem."""

    path: tuple[str, ...]
    message: str

    @property
    def dotted_path(self) -> str:
        """Return the path as `a.b.c`, or "value" for a root level issue."""
        return ".".join(self.path) if self.path else "value"

    def __str__(self) -> str:
        return f"{self.dotted_path}: {self.message}"


@dataclass(frozen=True)
class ValidationError:
    """Structured validation failure: a summary message and its issues."""

    message: str
    issues: tuple[Issue, ...] = field(default_factory=tuple)

    def format(self) -> str:
        """Render the error as an indented multi-line text."""
        lines = [self.message]
        lines.extend(f"  {issue}" for issue in self.issues)
        return "\n".join(lines)


class DircliError(Exception):
    """Base class for every error raised by dircli."""


class ConfigError(DircliError):
    """The configuration file is missing, unreadable or invalid."""


class RegistryError(DircliError):
    """The handler catalog is inconsistent (fatal at startup)."""


class UnknownCommandError(DircliError):
    """No discovered command matches the invocation."""

    def __init__(self, attempted_path: str) -> None:
        super().__init__(f"Unknown command: {attempted_path}")
        self.attempted_path = attempted_path


class _IssuesError(DircliError):
    """An error carrying a structured `ValidationError`."""

    def __init__(self, error: ValidationError) -> None:
        super().__init__(error.message)
        self.validation = error

    @property
    def issues(self) -> tuple[Issue, ...]:
        """Issues of the underlying validation error."""
        return self.validation.issues


class ParamsValidationError(_IssuesError):
    """Command arguments failed validation."""


class EnvValidationError(_IssuesError):
    """Environment variables failed validation."""


class HandlerExecutionError(DircliError):
    """A handler raised; wraps the original exception with the handler name."""

    def __init__(self, handler_name: str, cause: BaseException) -> None:
        super().__init__(f"Failed to execute handler '{handler_name}': {cause}")
        self.handler_name = handler_name
        self.__cause__ = cause
