"""Step-wise execution of procedures by a robot on a tile grid."""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Dict, List, NoReturn, Optional, Type

from karlik.errors import (
    InvalidOperationError,
    KarlikError,
    RobotBusyError,
    RobotNotRunningError,
    UnsupportedStatementError,
)
from karlik.program.ast import Call, Intrinsic, IntrinsicType, Module, Procedure, Statement
from karlik.program.codec import SnapshotReader, SnapshotWriter, read_stmt_ref, write_stmt_ref
from karlik.world.grid import Direction, Grid, TileKind

from .continuation import ContinuationStack

logger = logging.getLogger(__name__)


class RobotError(IntEnum):
    NONE = 0
    HIT_WALL = 1
    ALREADY_TAG = 2
    NO_TAG = 3


_PUT_TAGS = {
    IntrinsicType.PUT_WHITE: TileKind.WHITE_TAG,
    IntrinsicType.PUT_GREY: TileKind.GREY_TAG,
    IntrinsicType.PUT_BLACK: TileKind.BLACK_TAG,
}


class ExecutionTracer:
    """Records robot events in order while enabled.

    One tracer may be shared by a whole fleet; every event is numbered with
    its position in the shared sequence.
    """

    def __init__(self, *, enabled: bool = False):
        self.enabled = enabled
        self.events: List[Dict[str, Any]] = []

    def emit(self, event_type: str, **payload):
        if not self.enabled:
            return
        self.events.append({"seq": len(self.events), "type": event_type, **payload})

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event["type"] == event_type]

    def clear(self):
        self.events.clear()

    def as_list(self) -> List[Dict[str, Any]]:
        return list(self.events)


class Robot:
    """A robot and the program position it is executing.

    The robot is idle while it has no current statement, running while it
    has one and no error, and halted while an error is set. A failed
    intrinsic leaves the current statement in place so that the same
    statement runs again once the error is cleared.
    """

    def __init__(
        self,
        grid: Grid,
        x: int,
        y: int,
        direction: Direction = Direction.EAST,
        *,
        stack: Optional[ContinuationStack] = None,
        tracer: Optional[ExecutionTracer] = None,
    ):
        self.grid = grid
        self.x = x
        self.y = y
        self.direction = Direction(direction)
        self.stack = stack if stack is not None else ContinuationStack()
        self.tracer = tracer or ExecutionTracer(enabled=False)
        self._cur_proc: Optional[Procedure] = None
        self._cur_stmt: Optional[Statement] = None
        self._error = RobotError.NONE

    @property
    def position(self):
        return self.x, self.y

    @property
    def current_procedure(self) -> Optional[Procedure]:
        return self._cur_proc

    @property
    def current_statement(self) -> Optional[Statement]:
        return self._cur_stmt

    @property
    def error(self) -> RobotError:
        return self._error

    def is_busy(self) -> bool:
        return self._cur_stmt is not None

    def is_stalled(self) -> bool:
        """True while the current statement is one ``step`` does not execute."""
        return self._cur_stmt is not None and not isinstance(self._cur_stmt, (Intrinsic, Call))

    # ------------------------------------------------------------------
    # Run control

    def run_procedure(self, proc: Procedure) -> None:
        if self._cur_stmt is not None or self._error != RobotError.NONE:
            self._contract_error(RobotBusyError, "Robot is busy or halted on error")
        self._cur_proc = proc
        self._cur_stmt = proc.body.first()
        if self._cur_stmt is None:
            self._cur_proc = None
        self._trace("run_start", procedure=proc.ident)
        logger.debug("robot_run proc=%s pos=%s", proc.ident, self.position)

    def step(self) -> None:
        """Execute the current statement."""
        stmt = self._cur_stmt
        if stmt is None:
            self._contract_error(RobotNotRunningError, "Robot is not running")
        if self._error != RobotError.NONE:
            self._contract_error(
                RobotNotRunningError,
                f"Robot is halted on {self._error.name}; clear the error first",
            )

        if self.tracer.enabled:
            self._trace("statement_start", **self._location())
        if isinstance(stmt, Intrinsic):
            self._exec_intrinsic(stmt)
            return
        if isinstance(stmt, Call):
            self._exec_call(stmt)
            return
        self._contract_error(
            UnsupportedStatementError,
            f"{stmt.stype.name} statements are not executed",
        )

    def reset(self) -> None:
        """Clear the error and abandon the current run.

        The continuation stack is left untouched.
        """
        self._error = RobotError.NONE
        self._cur_stmt = None
        self._cur_proc = None
        self._trace("reset")

    def clear_error(self) -> None:
        """Clear the error so the next step retries the failed statement."""
        self._error = RobotError.NONE
        self._trace("clear_error")

    # ------------------------------------------------------------------
    # Primitive actions

    def turn_left(self) -> None:
        self.direction = self.direction.ccw()

    def move(self) -> None:
        xoff, yoff = self.direction.offset
        target = self.grid.get_tile(self.x + xoff, self.y + yoff)
        if not self.grid.is_walkable(target):
            self._fail(RobotError.HIT_WALL)
            return
        self.x += xoff
        self.y += yoff

    def put_tag(self, kind: TileKind) -> None:
        if self.grid.get_tile(self.x, self.y) != TileKind.NONE:
            self._fail(RobotError.ALREADY_TAG)
            return
        self.grid.set_tile(self.x, self.y, kind)

    def pick_up(self) -> None:
        if not self.grid.has_tag(self.grid.get_tile(self.x, self.y)):
            self._fail(RobotError.NO_TAG)
            return
        self.grid.set_tile(self.x, self.y, TileKind.NONE)

    # ------------------------------------------------------------------
    # Statement execution

    def _exec_intrinsic(self, stmt: Intrinsic) -> None:
        itype = stmt.itype
        if itype == IntrinsicType.TURN_LEFT:
            self.turn_left()
        elif itype == IntrinsicType.MOVE:
            self.move()
        elif itype in _PUT_TAGS:
            self.put_tag(_PUT_TAGS[itype])
        elif itype == IntrinsicType.PICK_UP:
            self.pick_up()

        if self._error != RobotError.NONE:
            return

        self._trace("intrinsic", itype=itype.name, x=self.x, y=self.y, direction=self.direction.name)
        self._cur_stmt = stmt.next()
        if self._cur_stmt is None:
            self._leave()

    def _exec_call(self, stmt: Call) -> None:
        snext = stmt.next()
        if snext is None:
            self._trace("tail_call", callee=stmt.proc.ident)
        else:
            if self._cur_proc is None:
                self._contract_error(
                    InvalidOperationError, "Call statement has no current procedure"
                )
            self.stack.push(self._cur_proc, snext)
            self._trace("call", callee=stmt.proc.ident, depth=len(self.stack))
        self._cur_proc = stmt.proc
        self._cur_stmt = stmt.proc.body.first()
        if self._cur_stmt is None:
            self._leave()

    def _leave(self) -> None:
        if self.stack.is_empty():
            self._trace("run_end")
            logger.debug("robot_idle pos=%s", self.position)
            self._cur_proc = None
            self._cur_stmt = None
            return
        entry = self.stack.pop()
        self._cur_proc = entry.procedure
        self._cur_stmt = entry.statement
        self._trace("return", procedure=entry.procedure.ident, depth=len(self.stack))

    # ------------------------------------------------------------------
    # Helpers

    def _fail(self, error: RobotError) -> None:
        self._error = error
        if self.tracer.enabled:
            self._trace("error", error=error.name, **self._location())
        logger.debug("robot_error kind=%s pos=%s", error.name, self.position)

    def _location(self) -> Dict[str, Any]:
        proc = self._cur_proc
        stmt = self._cur_stmt
        if proc is None or stmt is None:
            return {}
        return {"procedure": proc.ident, "index": proc.stmt_index(stmt)}

    def _trace(self, event_type: str, **payload):
        self.tracer.emit(event_type, **payload)

    def _contract_error(self, exc_cls: Type[KarlikError], message: str) -> NoReturn:
        location = self._location()
        if location:
            message = f"{message} (in procedure '{location['procedure']}', statement {location['index']})"
        self._trace("contract_error", message=message)
        raise exc_cls(message)

    # ------------------------------------------------------------------
    # Persistence

    def dump(self, writer: SnapshotWriter) -> None:
        writer.write_ints(self.x, self.y, self.direction, self._error)
        self.stack.dump(writer)
        if self._cur_stmt is None or self._cur_proc is None:
            writer.write_uint(0)
            return
        writer.write_uint(1)
        write_stmt_ref(writer, self._cur_proc, self._cur_stmt)

    @classmethod
    def load(cls, reader: SnapshotReader, grid: Grid, module: Module) -> "Robot":
        x = reader.read_int("robot x")
        y = reader.read_int("robot y")
        direction = reader.read_enum(Direction, "direction")
        error = reader.read_enum(RobotError, "robot error")
        stack = ContinuationStack.load(reader, module)
        robot = cls(grid, x, y, direction, stack=stack)
        robot._error = error
        if reader.read_flag("run-state flag"):
            robot._cur_proc, robot._cur_stmt = read_stmt_ref(reader, module)
        return robot

    def __repr__(self) -> str:
        return (
            f"Robot(x={self.x}, y={self.y}, direction={self.direction.name}, "
            f"error={self._error.name}, busy={self.is_busy()})"
        )


__all__ = ["ExecutionTracer", "Robot", "RobotError"]
