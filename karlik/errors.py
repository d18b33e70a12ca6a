"""Exception hierarchy shared by the program model and the runtime."""
from __future__ import annotations

from typing import Optional


class KarlikError(Exception):
    """Base class for every error raised by karlik."""


class ProgramLoadError(KarlikError):
    """Persisted data is malformed or out of range."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        suffix = f" (line {line})" if line is not None else ""
        super().__init__(f"{message}{suffix}")


class DuplicateIdentifierError(KarlikError, ValueError):
    """A procedure identifier is already used in the module."""


class IdentifierExhaustedError(KarlikError):
    """Identifier generation gave up after its retry bound."""


class NotationError(KarlikError):
    """Authoring notation could not be parsed."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        super().__init__(message)


class InvalidOperationError(KarlikError):
    """The caller used an API in a state that does not allow it."""


class RobotBusyError(InvalidOperationError):
    """The robot is executing a program or halted on an error."""


class RobotNotRunningError(InvalidOperationError):
    """The robot has nothing to step, or must have its error cleared first."""


class EmptyStackError(InvalidOperationError):
    """Pop from an empty continuation stack."""


class UnsupportedStatementError(KarlikError):
    """The engine does not execute this statement kind."""


class RobotPlacementError(KarlikError):
    """A robot cannot be placed on the requested tile."""


__all__ = [
    "DuplicateIdentifierError",
    "EmptyStackError",
    "IdentifierExhaustedError",
    "InvalidOperationError",
    "KarlikError",
    "NotationError",
    "ProgramLoadError",
    "RobotBusyError",
    "RobotNotRunningError",
    "RobotPlacementError",
    "UnsupportedStatementError",
]
