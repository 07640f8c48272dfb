from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .geometry import Cells, apply_rotation, bounds


@dataclass(frozen=True)
class Shape:
    name: str
    cells: Cells

    @property
    def size(self) -> int:
        return len(self.cells)

    @property
    def height(self) -> int:
        return bounds(self.cells)[0]

    @property
    def width(self) -> int:
        return bounds(self.cells)[1]

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "cells": [list(cell) for cell in self.cells],
            "width": self.width,
            "height": self.height,
        }


@dataclass
class Piece:
    id: int
    shape: Shape
    rotation: int = 0
    placed: bool = False
    grid_row: int = 0
    grid_col: int = 0
    tray_order: int = 0

    @property
    def cells(self) -> Cells:
        return apply_rotation(self.shape.cells, self.rotation)

    @property
    def origin(self) -> Optional[Tuple[int, int]]:
        if not self.placed:
            return None
        return self.grid_row, self.grid_col

    def to_dict(self) -> Dict[str, object]:
        height, width = bounds(self.cells)
        return {
            "id": self.id,
            "shape": self.shape.name,
            "rotation": self.rotation,
            "cells": [list(cell) for cell in self.cells],
            "width": width,
            "height": height,
            "placed": self.placed,
            "origin": list(self.origin) if self.origin is not None else None,
            "tray_order": self.tray_order,
        }


@dataclass(frozen=True)
class SolutionPlacement:
    piece_index: int
    row: int
    col: int
    rotation: int


@dataclass(frozen=True)
class Solution:
    """Hint-only assignment of every piece to a rotation and grid origin."""

    placements: Tuple[SolutionPlacement, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "placements": [
                {
                    "piece_index": p.piece_index,
                    "row": p.row,
                    "col": p.col,
                    "rotation": p.rotation,
                }
                for p in self.placements
            ]
        }


@dataclass(frozen=True)
class Level:
    id: int
    label: str
    grid_width: int
    grid_height: int
    piece_size: int
    difficulty: int
    piece_shapes: Tuple[str, ...]
    solutions: Tuple[Solution, ...] = field(default_factory=tuple)

    @property
    def area(self) -> int:
        return self.grid_width * self.grid_height

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "label": self.label,
            "grid_width": self.grid_width,
            "grid_height": self.grid_height,
            "piece_size": self.piece_size,
            "difficulty": self.difficulty,
            "pieces": list(self.piece_shapes),
            "solution_count": len(self.solutions),
        }
