from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .geometry import normalize
from .models import Shape

# Offsets are (row, col) with the minimum row and column at 0.
SHAPE_CELLS: Dict[str, List[Tuple[int, int]]] = {
    # Dominoes
    "bar2": [(0, 0), (0, 1)],
    # Triominoes
    "bar3": [(0, 0), (0, 1), (0, 2)],
    "L3": [(0, 0), (1, 0), (1, 1)],
    # Tetrominoes
    "bar4": [(0, 0), (0, 1), (0, 2), (0, 3)],
    "L4": [(0, 0), (1, 0), (2, 0), (2, 1)],
    "J4": [(0, 1), (1, 1), (2, 1), (2, 0)],
    "S4": [(0, 1), (0, 2), (1, 0), (1, 1)],
    "Z4": [(0, 0), (0, 1), (1, 1), (1, 2)],
    "T4": [(0, 0), (0, 1), (0, 2), (1, 1)],
    "sq4": [(0, 0), (0, 1), (1, 0), (1, 1)],
    # Pentominoes
    "bar5": [(0, 0), (0, 1), (0, 2), (0, 3), (0, 4)],
    "L5": [(0, 0), (1, 0), (2, 0), (3, 0), (3, 1)],
    "J5": [(0, 1), (1, 1), (2, 1), (3, 1), (3, 0)],
    "T5": [(0, 0), (0, 1), (0, 2), (1, 1), (2, 1)],
    "U5": [(0, 0), (0, 2), (1, 0), (1, 1), (1, 2)],
    "P5": [(0, 0), (0, 1), (1, 0), (1, 1), (2, 0)],
    "F5": [(0, 1), (0, 2), (1, 0), (1, 1), (2, 1)],
    "Y5": [(0, 0), (1, 0), (1, 1), (2, 0), (3, 0)],
    "N5": [(0, 0), (1, 0), (1, 1), (2, 1), (3, 1)],
}


def build_shapes(definitions: Dict[str, Iterable[Tuple[int, int]]]) -> Dict[str, Shape]:
    shapes: Dict[str, Shape] = {}
    for name, cells in definitions.items():
        normalized = normalize(cells)
        if len(set(normalized)) != len(normalized):
            raise ValueError(f"Shape {name!r} repeats a cell")
        shapes[name] = Shape(name, normalized)
    return shapes


SHAPES = build_shapes(SHAPE_CELLS)
