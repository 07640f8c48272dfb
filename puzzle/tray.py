from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config import SETTINGS, BoardConfig

from .geometry import Cell, bounds
from .models import Level, Piece


@dataclass(frozen=True)
class TraySlot:
    piece_id: int
    row: int
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "piece_id": self.piece_id,
            "row": self.row,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "width": round(self.width, 2),
            "height": round(self.height, 2),
        }


@dataclass
class TrayLayout:
    slots: List[TraySlot]
    height: float

    @property
    def row_count(self) -> int:
        if not self.slots:
            return 0
        return max(slot.row for slot in self.slots) + 1

    def slot_for(self, piece_id: int) -> Optional[TraySlot]:
        for slot in self.slots:
            if slot.piece_id == piece_id:
                return slot
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "slots": [slot.to_dict() for slot in self.slots],
            "height": round(self.height, 2),
            "rows": self.row_count,
        }


@dataclass(frozen=True)
class BoardGeometry:
    """Where the grid and tray sit in board units for one level."""

    board_width: float
    grid_left: float
    grid_top: float
    grid_width: int
    grid_height: int
    config: BoardConfig

    @classmethod
    def for_level(
        cls,
        level: Level,
        max_grid_width: Optional[int] = None,
        config: Optional[BoardConfig] = None,
    ) -> "BoardGeometry":
        config = config or SETTINGS.BOARD
        widest = max(max_grid_width or level.grid_width, level.grid_width)
        # Sized for the widest level so the board does not shift between levels.
        board_width = widest * config.cell_size + config.pad * 2 + config.sum_gutter
        grid_left = (board_width - (level.grid_width * config.cell_size + config.sum_gutter)) / 2
        return cls(
            board_width=board_width,
            grid_left=grid_left,
            grid_top=config.pad,
            grid_width=level.grid_width,
            grid_height=level.grid_height,
            config=config,
        )

    @property
    def grid_center_x(self) -> float:
        return self.grid_left + self.grid_width * self.config.cell_size / 2

    @property
    def tray_top(self) -> float:
        return self.grid_top + self.grid_height * self.config.cell_size + self.config.tray_gap

    @property
    def tray_max_width(self) -> float:
        center = self.grid_center_x
        return 2 * min(center, self.board_width - center) - self.config.pad

    def cell_at(self, x: float, y: float) -> Optional[Tuple[int, int]]:
        cell = self.config.cell_size
        col = math.floor((x - self.grid_left) / cell)
        row = math.floor((y - self.grid_top) / cell)
        if 0 <= row < self.grid_height and 0 <= col < self.grid_width:
            return row, col
        return None

    def snap_origin(self, x: float, y: float, cells: Iterable[Cell]) -> Tuple[int, int]:
        """Grid origin for a piece whose bounding box is centred on ``(x, y)``."""
        height, width = bounds(cells)
        cell = self.config.cell_size
        row = _round_half_up((y - self.grid_top) / cell - height / 2)
        col = _round_half_up((x - self.grid_left) / cell - width / 2)
        return row, col


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def pack_tray(
    pieces: Sequence[Piece],
    max_width: float,
    *,
    center_x: Optional[float] = None,
    top: float = 0.0,
    config: Optional[BoardConfig] = None,
) -> TrayLayout:
    """Wrap ``pieces`` into centred rows no wider than ``max_width``.

    Footprints come from each piece's base shape, never its rotation, so
    turning a piece in the tray leaves every slot where it was.
    """
    config = config or SETTINGS.BOARD
    scale = config.cell_size * config.tray_scale
    gap = config.tray_piece_gap
    if center_x is None:
        center_x = max_width / 2

    rows: List[List[Tuple[Piece, float, float]]] = [[]]
    x = 0.0
    for piece in pieces:
        piece_w = piece.shape.width * scale
        piece_h = piece.shape.height * scale
        if x > 0 and x + piece_w > max_width:
            rows.append([])
            x = 0.0
        rows[-1].append((piece, piece_w, piece_h))
        x += piece_w + gap

    slots: List[TraySlot] = []
    cur_y = top + config.tray_pad_y
    for row_index, row in enumerate(rows):
        total_w = sum(w for _, w, _ in row) + max(len(row) - 1, 0) * gap
        row_h = max([h for _, _, h in row] + [config.tray_row_min_height])
        cur_x = max(config.pad / 2, center_x - total_w / 2)
        for piece, piece_w, piece_h in row:
            slots.append(
                TraySlot(
                    piece_id=piece.id,
                    row=row_index,
                    x=cur_x,
                    y=cur_y + (row_h - piece_h) / 2,
                    width=piece_w,
                    height=piece_h,
                )
            )
            cur_x += piece_w + gap
        cur_y += row_h + config.tray_pad_y
    return TrayLayout(slots=slots, height=cur_y - top + config.tray_pad_y)
