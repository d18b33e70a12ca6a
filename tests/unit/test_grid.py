"""Unit tests for :mod:`karlik.world.grid`."""
from __future__ import annotations

import io

import pytest

from karlik.errors import ProgramLoadError
from karlik.program.codec import SnapshotReader, SnapshotWriter
from karlik.world.grid import Direction, TileGrid, TileKind


def test_direction_turns_counter_clockwise():
    seen = [Direction.EAST]
    for _ in range(4):
        seen.append(seen[-1].ccw())

    assert seen == [
        Direction.EAST,
        Direction.NORTH,
        Direction.WEST,
        Direction.SOUTH,
        Direction.EAST,
    ]


@pytest.mark.parametrize(
    "direction, offset",
    [
        (Direction.EAST, (1, 0)),
        (Direction.NORTH, (0, -1)),
        (Direction.WEST, (-1, 0)),
        (Direction.SOUTH, (0, 1)),
    ],
)
def test_direction_offsets(direction, offset):
    assert direction.offset == offset


@pytest.mark.parametrize("x, y", [(-1, 0), (0, -1), (3, 0), (0, 2), (99, 99)])
def test_outside_reads_as_wall(x, y):
    grid = TileGrid(3, 2)

    assert grid.get_tile(x, y) == TileKind.WALL
    assert not grid.is_walkable(grid.get_tile(x, y))


def test_set_and_get_tile():
    grid = TileGrid(3, 2)
    grid.set_tile(2, 1, TileKind.GREY_TAG)

    assert grid.get_tile(2, 1) == TileKind.GREY_TAG
    assert grid.has_tag(grid.get_tile(2, 1))
    assert not grid.has_tag(grid.get_tile(0, 0))
    assert grid.rows()[1] == [TileKind.NONE, TileKind.NONE, TileKind.GREY_TAG]


def test_set_tile_outside_raises():
    grid = TileGrid(2, 2)

    with pytest.raises(IndexError):
        grid.set_tile(2, 0, TileKind.WALL)


@pytest.mark.parametrize("width, height", [(0, 3), (3, 0), (-1, 2)])
def test_dimensions_must_be_positive(width, height):
    with pytest.raises(ValueError):
        TileGrid(width, height)


def test_dump_writes_rows_after_blank_line():
    grid = TileGrid(3, 2)
    grid.set_tile(0, 0, TileKind.WALL)
    grid.set_tile(2, 1, TileKind.BLACK_TAG)
    buffer = io.StringIO()

    grid.dump(SnapshotWriter(buffer))

    assert buffer.getvalue() == "3 2\n\n1 0 0\n0 0 4\n"


def test_load_restores_tiles():
    grid = TileGrid.load(SnapshotReader("3 2\n\n1 0 0\n0 0 4\n"))

    assert (grid.width, grid.height) == (3, 2)
    assert grid.get_tile(0, 0) == TileKind.WALL
    assert grid.get_tile(2, 1) == TileKind.BLACK_TAG
    assert grid.get_tile(1, 1) == TileKind.NONE


@pytest.mark.parametrize(
    "text",
    [
        pytest.param("2 1\n\n0 5\n", id="tile-kind"),
        pytest.param("0 1\n\n", id="zero-width"),
        pytest.param("2 2\n\n0 0\n0\n", id="truncated"),
    ],
)
def test_load_rejects_bad_grids(text):
    with pytest.raises(ProgramLoadError):
        TileGrid.load(SnapshotReader(text))
