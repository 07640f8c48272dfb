from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .geometry import Cell
from .models import Piece

Grid = List[List[Optional[int]]]

EMPTY: Optional[int] = None

OUT_OF_BOUNDS = "out_of_bounds"
OVERLAP = "overlap"


class PlacementError(ValueError):
    pass


def make_grid(width: int, height: int) -> Grid:
    return [[EMPTY for _ in range(width)] for _ in range(height)]


def copy_grid(grid: Grid) -> Grid:
    return [list(row) for row in grid]


def placement_violation(
    grid: Grid,
    cells: Iterable[Cell],
    origin_row: int,
    origin_col: int,
    exclude_piece_id: Optional[int] = None,
) -> Optional[str]:
    """Return why ``cells`` cannot sit at the origin, or ``None`` if they can.

    Bounds are checked for every cell before occupancy so a candidate that is
    both off-grid and overlapping reports ``out_of_bounds``.
    """
    height = len(grid)
    width = len(grid[0]) if height else 0
    targets: List[Tuple[int, int]] = []
    for r, c in cells:
        row = origin_row + r
        col = origin_col + c
        if row < 0 or row >= height or col < 0 or col >= width:
            return OUT_OF_BOUNDS
        targets.append((row, col))
    for row, col in targets:
        occupant = grid[row][col]
        if occupant is not EMPTY and occupant != exclude_piece_id:
            return OVERLAP
    return None


def can_place(
    grid: Grid,
    cells: Iterable[Cell],
    origin_row: int,
    origin_col: int,
    exclude_piece_id: Optional[int] = None,
) -> bool:
    return placement_violation(grid, cells, origin_row, origin_col, exclude_piece_id) is None


def is_complete(grid: Grid, pieces: Sequence[Piece]) -> bool:
    """True when every piece is placed and no grid cell is empty."""
    if any(not piece.placed for piece in pieces):
        return False
    for row in grid:
        for cell in row:
            if cell is EMPTY:
                return False
    return True


class GridState:
    """Occupancy map for one level. The only writer of grid cells."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.cells: Grid = make_grid(width, height)

    def can_place(
        self,
        cells: Iterable[Cell],
        origin_row: int,
        origin_col: int,
        exclude_piece_id: Optional[int] = None,
    ) -> bool:
        return can_place(self.cells, cells, origin_row, origin_col, exclude_piece_id)

    def violation(
        self,
        cells: Iterable[Cell],
        origin_row: int,
        origin_col: int,
        exclude_piece_id: Optional[int] = None,
    ) -> Optional[str]:
        return placement_violation(self.cells, cells, origin_row, origin_col, exclude_piece_id)

    def place(self, piece: Piece, origin_row: int, origin_col: int) -> Grid:
        cells = piece.cells
        reason = self.violation(cells, origin_row, origin_col)
        if reason is not None:
            raise PlacementError(
                f"Piece {piece.id} cannot be placed at ({origin_row}, {origin_col}): {reason}"
            )
        for r, c in cells:
            self.cells[origin_row + r][origin_col + c] = piece.id
        piece.placed = True
        piece.grid_row = origin_row
        piece.grid_col = origin_col
        return self.occupancy()

    def remove(self, piece: Piece) -> bool:
        if not piece.placed:
            return False
        for row, col in self.cells_of(piece.id):
            self.cells[row][col] = EMPTY
        piece.placed = False
        return True

    def clear(self) -> None:
        self.cells = make_grid(self.width, self.height)

    def occupancy(self) -> Grid:
        return copy_grid(self.cells)

    def cells_of(self, piece_id: int) -> List[Tuple[int, int]]:
        return [
            (r, c)
            for r, row in enumerate(self.cells)
            for c, occupant in enumerate(row)
            if occupant == piece_id
        ]

    def empty_cells(self) -> List[Tuple[int, int]]:
        return [
            (r, c)
            for r, row in enumerate(self.cells)
            for c, occupant in enumerate(row)
            if occupant is EMPTY
        ]

    def is_complete(self, pieces: Sequence[Piece]) -> bool:
        return is_complete(self.cells, pieces)

    def rows_as_text(self) -> List[str]:
        return [
            "".join("." if occupant is EMPTY else _piece_glyph(occupant) for occupant in row)
            for row in self.cells
        ]


def _piece_glyph(piece_id: int) -> str:
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    return alphabet[piece_id % len(alphabet)]
