"""Tile grid the robots live on."""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import List, Tuple

from karlik.errors import ProgramLoadError
from karlik.program.codec import SnapshotReader, SnapshotWriter


class Direction(IntEnum):
    EAST = 0
    NORTH = 1
    WEST = 2
    SOUTH = 3

    def ccw(self) -> "Direction":
        return Direction((self + 1) % 4)

    @property
    def offset(self) -> Tuple[int, int]:
        return _OFFSETS[self]


_OFFSETS = {
    Direction.EAST: (1, 0),
    Direction.NORTH: (0, -1),
    Direction.WEST: (-1, 0),
    Direction.SOUTH: (0, 1),
}


class TileKind(IntEnum):
    NONE = 0
    WALL = 1
    WHITE_TAG = 2
    GREY_TAG = 3
    BLACK_TAG = 4


TAG_KINDS = frozenset({TileKind.WHITE_TAG, TileKind.GREY_TAG, TileKind.BLACK_TAG})


class Grid(ABC):
    """Queries and mutators the execution engine needs from the map."""

    @abstractmethod
    def get_tile(self, x: int, y: int) -> TileKind:
        """Return the tile at (x, y); coordinates outside the map read as wall."""

    @abstractmethod
    def set_tile(self, x: int, y: int, kind: TileKind) -> None:
        """Replace the tile at (x, y)."""

    def is_walkable(self, kind: TileKind) -> bool:
        return kind != TileKind.WALL

    def has_tag(self, kind: TileKind) -> bool:
        return kind in TAG_KINDS


class TileGrid(Grid):
    """In-memory rectangular grid stored as an array of columns."""

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self._tiles: List[List[TileKind]] = [
            [TileKind.NONE] * height for _ in range(width)
        ]

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_tile(self, x: int, y: int) -> TileKind:
        if not self.contains(x, y):
            return TileKind.WALL
        return self._tiles[x][y]

    def set_tile(self, x: int, y: int, kind: TileKind) -> None:
        if not self.contains(x, y):
            raise IndexError(f"Tile ({x}, {y}) outside {self.width}x{self.height} grid")
        self._tiles[x][y] = TileKind(kind)

    def rows(self) -> List[List[TileKind]]:
        return [[self._tiles[x][y] for x in range(self.width)] for y in range(self.height)]

    def dump(self, writer: SnapshotWriter) -> None:
        writer.write_ints(self.width, self.height)
        writer.write_line("")
        for row in self.rows():
            writer.write_ints(*row)

    @classmethod
    def load(cls, reader: SnapshotReader) -> "TileGrid":
        line = reader.line
        width = reader.read_int("grid width")
        height = reader.read_int("grid height")
        if width <= 0 or height <= 0:
            raise ProgramLoadError(f"Invalid grid dimensions {width}x{height}", line=line)
        grid = cls(width, height)
        for y in range(height):
            for x in range(width):
                grid._tiles[x][y] = reader.read_enum(TileKind, "tile kind")
        return grid

    def __repr__(self) -> str:
        return f"TileGrid({self.width}x{self.height})"
