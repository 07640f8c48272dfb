from __future__ import annotations

import logging
import math
import random
from typing import Callable, Dict, List, Optional, Tuple, Union

from config import SETTINGS, BoardConfig, GestureConfig

from .gesture import CLOCKWISE, COUNTER_CLOCKWISE, DragSession, GestureRecognizer, PointerUpdate
from .grid import Grid, GridState, is_complete
from .levels import LEVELS, LevelStore, load_level
from .models import Level, Piece
from .tray import BoardGeometry, TrayLayout, pack_tray

logger = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, object]], None]


class PuzzleController:
    """Owns the grid, the pieces and the live drag for one player.

    Every command mutates state synchronously and reports an explicit result;
    rendering layers re-read state through ``snapshot`` or the accessors.
    """

    def __init__(
        self,
        store: Optional[LevelStore] = None,
        level_index: int = 0,
        *,
        gesture: Optional[GestureConfig] = None,
        board: Optional[BoardConfig] = None,
        rng: Optional[random.Random] = None,
        shuffle: Optional[bool] = None,
        event_callback: Optional[EventCallback] = None,
    ) -> None:
        self.store = store or LEVELS
        self.gesture_config = gesture or SETTINGS.GESTURE
        self.board_config = board or SETTINGS.BOARD
        self.rng = rng or random.Random()
        self.shuffle = SETTINGS.SHUFFLE_TRAY if shuffle is None else shuffle
        self.event_callback = event_callback
        self.level_index: Optional[int] = None
        self.drag: Optional[DragSession] = None
        self.selected_id: Optional[int] = None
        self._next_piece_id = 0
        self._was_complete = False
        self.load_level(level_index)

    # ------------------------------------------------------------------
    # Level lifecycle
    # ------------------------------------------------------------------
    def load_level(self, level: Union[Level, int]) -> Tuple[Grid, List[Piece]]:
        index: Optional[int] = None
        if isinstance(level, int):
            index = level
            level = self.store.get(index)
        grid, pieces = load_level(
            level,
            self.rng,
            id_start=self._next_piece_id,
            shuffle=self.shuffle,
        )
        self._next_piece_id += len(pieces)
        self.level = level
        self.level_index = index
        self.grid: GridState = grid
        self.pieces: List[Piece] = pieces
        self.geometry = BoardGeometry.for_level(level, self.store.max_grid_width, self.board_config)
        self.drag = None
        self.selected_id = None
        self._was_complete = False
        self._emit(
            "level_loaded",
            level_id=level.id,
            level_index=index,
            label=level.label,
            grid_size=(level.grid_width, level.grid_height),
            piece_shapes=list(level.piece_shapes),
            piece_ids=[piece.id for piece in pieces],
        )
        return self.grid.occupancy(), list(self.pieces)

    def go_to_level(self, index: int) -> Tuple[Grid, List[Piece]]:
        return self.load_level(index)

    def reset_level(self) -> Tuple[Grid, List[Piece]]:
        level = self.level_index if self.level_index is not None else self.level
        result = self.load_level(level)
        self._emit("level_reset", level_id=self.level.id)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def piece(self, piece_id: int) -> Piece:
        for piece in self.pieces:
            if piece.id == piece_id:
                return piece
        raise KeyError(f"No piece with id {piece_id} in level {self.level.id}")

    def piece_at(self, x: float, y: float) -> Optional[int]:
        """Id of the placed piece under a board point, if any."""
        cell = self.geometry.cell_at(x, y)
        if cell is None:
            return None
        row, col = cell
        return self.grid.cells[row][col]

    def is_complete(self) -> bool:
        return is_complete(self.grid.cells, self.pieces)

    def placed_sum(self) -> int:
        return sum(1 for piece in self.pieces if piece.placed) * self.level.piece_size

    def unplaced_pieces(self) -> List[Piece]:
        return sorted(
            (piece for piece in self.pieces if not piece.placed),
            key=lambda piece: piece.tray_order,
        )

    def tray_layout(self) -> TrayLayout:
        return pack_tray(
            self.unplaced_pieces(),
            self.geometry.tray_max_width,
            center_x=self.geometry.grid_center_x,
            top=self.geometry.tray_top,
            config=self.board_config,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def rotate(self, piece_id: int, direction: str = CLOCKWISE) -> bool:
        if direction not in (CLOCKWISE, COUNTER_CLOCKWISE):
            raise ValueError(f"Unknown rotation direction {direction!r}")
        piece = self.piece(piece_id)
        if piece.placed:
            # Placed pieces are picked up before they can turn.
            return False
        step = 1 if direction == CLOCKWISE else -1
        piece.rotation = (piece.rotation + step) % 4
        self._emit(
            "piece_rotated",
            piece_id=piece.id,
            direction=direction,
            rotation=piece.rotation,
        )
        if self.drag is not None and self.drag.piece_id == piece.id and self.drag.moved:
            self.drag.snap_target = self._snap_target(self.drag)
        return True

    def try_place(self, piece_id: int, row: int, col: int) -> bool:
        piece = self.piece(piece_id)
        if piece.placed:
            return False
        reason = self.grid.violation(piece.cells, row, col)
        if reason is not None:
            logger.debug("Rejected piece %s at (%s, %s): %s", piece.id, row, col, reason)
            self._emit(
                "placement_rejected",
                piece_id=piece.id,
                row=row,
                col=col,
                rotation=piece.rotation,
                reason=reason,
            )
            return False
        self.grid.place(piece, row, col)
        if self.selected_id == piece.id:
            self.selected_id = None
        self._emit(
            "piece_placed",
            piece_id=piece.id,
            row=row,
            col=col,
            rotation=piece.rotation,
            placed_sum=self.placed_sum(),
        )
        self._check_completion()
        return True

    def remove(self, piece_id: int) -> bool:
        piece = self.piece(piece_id)
        origin = piece.origin
        if not self.grid.remove(piece):
            return False
        self._emit(
            "piece_removed",
            piece_id=piece.id,
            origin=origin,
            placed_sum=self.placed_sum(),
        )
        self._check_completion()
        return True

    def tap(self, piece_id: int) -> bool:
        """Tap on a piece: grid pieces go back to the tray, tray pieces select then turn."""
        piece = self.piece(piece_id)
        if piece.placed:
            return self.remove(piece.id)
        if self.selected_id == piece.id:
            return self.rotate(piece.id, CLOCKWISE)
        self.selected_id = piece.id
        self._emit("piece_selected", piece_id=piece.id)
        return True

    def show_solution(self, index: int = 0) -> bool:
        """Lay out a canonical solution as a hint."""
        if not 0 <= index < len(self.level.solutions):
            return False
        self.drag = None
        self.selected_id = None
        for piece in self.pieces:
            self.grid.remove(piece)
        self.grid.clear()
        for placement in self.level.solutions[index].placements:
            if not 0 <= placement.piece_index < len(self.pieces):
                logger.warning(
                    "Solution %s of level %s names missing piece %s",
                    index,
                    self.level.id,
                    placement.piece_index,
                )
                continue
            piece = self.pieces[placement.piece_index]
            piece.rotation = placement.rotation
            if not self.grid.can_place(piece.cells, placement.row, placement.col):
                logger.warning(
                    "Solution %s of level %s does not fit piece %s",
                    index,
                    self.level.id,
                    placement.piece_index,
                )
                continue
            self.grid.place(piece, placement.row, placement.col)
        self._emit("solution_shown", level_id=self.level.id, solution_index=index)
        self._check_completion()
        return True

    # ------------------------------------------------------------------
    # Drag lifecycle
    # ------------------------------------------------------------------
    def begin_drag(self, piece_id: int, x: float, y: float, t: float = 0.0) -> bool:
        if self.drag is not None:
            logger.debug("Ignoring drag on piece %s while piece %s is held", piece_id, self.drag.piece_id)
            return False
        piece = self.piece(piece_id)
        from_grid = piece.placed
        origin = piece.origin
        if from_grid:
            self.remove(piece.id)
        recognizer = GestureRecognizer(self.gesture_config)
        recognizer.feed(x, y, t)
        self.drag = DragSession(
            piece_id=piece.id,
            start_rotation=piece.rotation,
            start_x=x,
            start_y=y,
            start_t=t,
            from_grid=from_grid,
            start_origin=origin,
            drag_x=x,
            drag_y=y - self.gesture_config.drag_lift,
            recognizer=recognizer,
        )
        self._emit("drag_started", piece_id=piece.id, from_grid=from_grid)
        return True

    def feed_pointer_sample(self, x: float, y: float, t: float) -> PointerUpdate:
        drag = self.drag
        if drag is None:
            return PointerUpdate()
        if not drag.moved:
            if math.hypot(x - drag.start_x, y - drag.start_y) > self.gesture_config.tap_threshold:
                drag.moved = True
        drag.drag_x = x
        drag.drag_y = y - self.gesture_config.drag_lift

        direction = drag.recognizer.feed(x, y, t)
        if direction is not None:
            self.rotate(drag.piece_id, direction)
            drag.rotations += 1

        drag.snap_target = self._snap_target(drag) if drag.moved else None
        return PointerUpdate(
            rotate=direction,
            snap_target=drag.snap_target,
            drag_x=drag.drag_x,
            drag_y=drag.drag_y,
        )

    def end_drag(self) -> bool:
        """Release the held piece; True when it lands on the grid."""
        drag = self.drag
        if drag is None:
            return False
        self.drag = None
        piece = self.piece(drag.piece_id)
        if not drag.moved:
            if drag.rotations:
                # Twisted in place: no drop, so the turn is undone.
                self._return_to_tray(piece, drag, "drag_returned")
            elif not drag.from_grid:
                # A press without travel is a tap. Grid pieces were already lifted.
                self.tap(piece.id)
            return False
        target = drag.snap_target
        if target is not None and self.try_place(piece.id, target[0], target[1]):
            self._emit(
                "drag_dropped",
                piece_id=piece.id,
                row=target[0],
                col=target[1],
                rotations=drag.rotations,
            )
            return True
        self._return_to_tray(piece, drag, "drag_returned")
        return False

    def cancel_drag(self) -> None:
        drag = self.drag
        if drag is None:
            return
        self.drag = None
        self._return_to_tray(self.piece(drag.piece_id), drag, "drag_cancelled")

    def _return_to_tray(self, piece: Piece, drag: DragSession, event_type: str) -> None:
        piece.rotation = drag.start_rotation
        self._emit(
            event_type,
            piece_id=piece.id,
            rotation=piece.rotation,
            from_grid=drag.from_grid,
        )

    def _snap_target(self, drag: DragSession) -> Optional[Tuple[int, int]]:
        cells = self.piece(drag.piece_id).cells
        row, col = self.geometry.snap_origin(drag.drag_x, drag.drag_y, cells)
        if self.grid.can_place(cells, row, col):
            return row, col
        return None

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def _check_completion(self) -> None:
        complete = self.is_complete()
        if complete and not self._was_complete:
            logger.info("Level %s completed", self.level.id)
            self._emit("level_completed", level_id=self.level.id, placed_sum=self.placed_sum())
        self._was_complete = complete

    def _emit(self, event_type: str, **payload: object) -> None:
        if self.event_callback:
            event: Dict[str, object] = {"type": event_type}
            event.update(payload)
            self.event_callback(event)

    def snapshot(self) -> Dict[str, object]:
        return {
            "level": self.level.to_dict(),
            "level_index": self.level_index,
            "level_count": len(self.store),
            "grid": self.grid.occupancy(),
            "grid_rows": self.grid.rows_as_text(),
            "pieces": [piece.to_dict() for piece in self.pieces],
            "tray": self.tray_layout().to_dict(),
            "selected_id": self.selected_id,
            "drag": self.drag.to_dict() if self.drag else None,
            "complete": self.is_complete(),
            "placed_sum": self.placed_sum(),
            "board": {
                "width": self.geometry.board_width,
                "grid_left": self.geometry.grid_left,
                "grid_top": self.geometry.grid_top,
                "tray_top": self.geometry.tray_top,
                "cell_size": self.board_config.cell_size,
            },
        }
