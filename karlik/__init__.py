"""Karlik: procedures composed from primitive actions, executed by robots on a grid."""

from .errors import (
    InvalidOperationError,
    KarlikError,
    ProgramLoadError,
    UnsupportedStatementError,
)
from .program.ast import Module, Procedure
from .runtime.robot import Robot, RobotError
from .session import Session
from .world.grid import Direction, TileGrid, TileKind

__all__ = [
    "Direction",
    "InvalidOperationError",
    "KarlikError",
    "Module",
    "Procedure",
    "ProgramLoadError",
    "Robot",
    "RobotError",
    "Session",
    "TileGrid",
    "TileKind",
    "UnsupportedStatementError",
]
