from .grid import Direction, Grid, TileGrid, TileKind

__all__ = ["Direction", "Grid", "TileGrid", "TileKind"]
