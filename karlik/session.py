"""Whole-session snapshots: program, map and robots in one text file."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO, Union

from karlik.errors import ProgramLoadError
from karlik.program.ast import Module
from karlik.program.codec import SnapshotReader, SnapshotWriter, read_module, write_module
from karlik.runtime.fleet import RobotFleet
from karlik.runtime.robot import ExecutionTracer
from karlik.world.grid import TileGrid

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Everything needed to resume work: the module, the grid and its robots.

    The snapshot stores the sections in that order, since robots refer to
    procedures of the module.
    """

    module: Module
    grid: TileGrid
    fleet: RobotFleet

    @classmethod
    def new(cls, width: int, height: int, module: Optional[Module] = None) -> "Session":
        grid = TileGrid(width, height)
        return cls(module=module or Module(), grid=grid, fleet=RobotFleet(grid))

    def dump(self, fp: TextIO) -> None:
        writer = SnapshotWriter(fp)
        write_module(writer, self.module)
        self.grid.dump(writer)
        self.fleet.dump(writer)

    def dumps(self) -> str:
        buffer = io.StringIO()
        self.dump(buffer)
        return buffer.getvalue()

    @classmethod
    def loads(cls, text: str, *, tracer: Optional[ExecutionTracer] = None) -> "Session":
        reader = SnapshotReader(text)
        module = read_module(reader)
        try:
            grid = TileGrid.load(reader)
            fleet = RobotFleet.load(reader, grid, module, tracer=tracer)
            reader.expect_end()
        except ProgramLoadError:
            module.destroy()
            raise
        return cls(module=module, grid=grid, fleet=fleet)

    @classmethod
    def load(cls, fp: TextIO, *, tracer: Optional[ExecutionTracer] = None) -> "Session":
        return cls.loads(fp.read(), tracer=tracer)

    def save(self, path: Union[str, Path]) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.dumps(), encoding="utf-8")
        logger.info(
            "session_saved path=%s procedures=%s robots=%s",
            target,
            len(self.module),
            len(self.fleet),
        )
        return target

    @classmethod
    def open(
        cls,
        path: Union[str, Path],
        *,
        tracer: Optional[ExecutionTracer] = None,
    ) -> "Session":
        source = Path(path)
        session = cls.loads(source.read_text(encoding="utf-8"), tracer=tracer)
        logger.info(
            "session_loaded path=%s procedures=%s robots=%s",
            source,
            len(session.module),
            len(session.fleet),
        )
        return session


__all__ = ["Session"]
