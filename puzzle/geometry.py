from __future__ import annotations

from typing import Iterable, Tuple

Cell = Tuple[int, int]
Cells = Tuple[Cell, ...]


def _as_list(cells: Iterable[Cell]) -> list:
    items = [(int(r), int(c)) for r, c in cells]
    if not items:
        raise ValueError("A shape needs at least one cell")
    return items


def normalize(cells: Iterable[Cell]) -> Cells:
    """Shift cells so the minimum row and column are both 0."""
    items = _as_list(cells)
    min_r = min(r for r, _ in items)
    min_c = min(c for _, c in items)
    return tuple(sorted((r - min_r, c - min_c) for r, c in items))


def bounds(cells: Iterable[Cell]) -> Tuple[int, int]:
    """Return ``(height, width)`` of the bounding box of normalised cells."""
    items = _as_list(cells)
    return (
        max(r for r, _ in items) - min(r for r, _ in items) + 1,
        max(c for _, c in items) - min(c for _, c in items) + 1,
    )


def rotate_clockwise(cells: Iterable[Cell]) -> Cells:
    items = _as_list(cells)
    max_r = max(r for r, _ in items)
    return normalize((c, max_r - r) for r, c in items)


def rotate_counter_clockwise(cells: Iterable[Cell]) -> Cells:
    items = _as_list(cells)
    max_c = max(c for _, c in items)
    return normalize((max_c - c, r) for r, c in items)


def apply_rotation(cells: Iterable[Cell], rotation: int) -> Cells:
    """Apply ``rotation`` quarter-turns clockwise, normalising after each.

    Three clockwise turns are taken as one counter-clockwise turn.
    """
    result = normalize(cells)
    turns = rotation % 4
    if turns == 3:
        return rotate_counter_clockwise(result)
    for _ in range(turns):
        result = rotate_clockwise(result)
    return result
