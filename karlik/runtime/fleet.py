"""Robots placed on a shared grid."""
from __future__ import annotations

import logging
from typing import Iterator, List, Optional

from karlik.errors import ProgramLoadError, RobotPlacementError, UnsupportedStatementError
from karlik.program.ast import Module, Procedure
from karlik.program.codec import SnapshotReader, SnapshotWriter
from karlik.world.grid import Direction, Grid

from .robot import ExecutionTracer, Robot, RobotError

logger = logging.getLogger(__name__)


class RobotFleet:
    """Insertion-ordered robots sharing one grid.

    Robots are stepped one after another; each action sees the grid as
    left by the robots stepped before it in the same round.
    """

    def __init__(self, grid: Grid, *, tracer: Optional[ExecutionTracer] = None):
        self.grid = grid
        self.tracer = tracer
        self._robots: List[Robot] = []

    def add(self, x: int, y: int, direction: Direction = Direction.EAST) -> Robot:
        if self.get(x, y) is not None:
            raise RobotPlacementError(f"Tile ({x}, {y}) is already occupied by a robot")
        robot = Robot(self.grid, x, y, direction, tracer=self.tracer)
        self._robots.append(robot)
        logger.debug("robot_added x=%s y=%s direction=%s", x, y, robot.direction.name)
        return robot

    def remove(self, x: int, y: int) -> None:
        robot = self.get(x, y)
        if robot is None:
            return
        self._robots.remove(robot)
        logger.debug("robot_removed x=%s y=%s", x, y)

    def get(self, x: int, y: int) -> Optional[Robot]:
        for robot in self._robots:
            if robot.x == x and robot.y == y:
                return robot
        return None

    def run_procedure(self, proc: Procedure) -> int:
        """Start ``proc`` on every robot that is idle and healthy."""
        started = 0
        for robot in self._robots:
            if robot.is_busy() or robot.error != RobotError.NONE:
                continue
            robot.run_procedure(proc)
            started += 1
        return started

    def step_all(self) -> int:
        """Advance every running robot by one statement.

        A robot sitting on a statement the engine does not execute is left
        where it is and the round carries on with the next robot; such
        robots are reported by :meth:`stalled`.
        """
        stepped = 0
        for robot in self._robots:
            if not robot.is_busy() or robot.error != RobotError.NONE:
                continue
            try:
                robot.step()
            except UnsupportedStatementError as exc:
                logger.warning("robot_stalled x=%s y=%s error=%s", robot.x, robot.y, exc)
                continue
            stepped += 1
        return stepped

    def stalled(self) -> List[Robot]:
        return [robot for robot in self._robots if robot.is_stalled()]

    def is_busy(self) -> bool:
        """True while some robot can still make progress."""
        return any(
            robot.is_busy() and robot.error == RobotError.NONE and not robot.is_stalled()
            for robot in self._robots
        )

    def __iter__(self) -> Iterator[Robot]:
        return iter(list(self._robots))

    def __len__(self) -> int:
        return len(self._robots)

    # ------------------------------------------------------------------
    # Persistence

    def dump(self, writer: SnapshotWriter) -> None:
        writer.write_uint(len(self._robots))
        for robot in self._robots:
            robot.dump(writer)

    @classmethod
    def load(
        cls,
        reader: SnapshotReader,
        grid: Grid,
        module: Module,
        *,
        tracer: Optional[ExecutionTracer] = None,
    ) -> "RobotFleet":
        fleet = cls(grid, tracer=tracer)
        count = reader.read_uint("robot count")
        for _ in range(count):
            line = reader.line
            robot = Robot.load(reader, grid, module)
            if fleet.get(robot.x, robot.y) is not None:
                raise ProgramLoadError(f"Two robots at ({robot.x}, {robot.y})", line=line)
            if tracer is not None:
                robot.tracer = tracer
            fleet._robots.append(robot)
        return fleet


__all__ = ["RobotFleet"]
