from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional, Tuple

from config import SETTINGS, GestureConfig

CLOCKWISE = SETTINGS.ROTATE_CLOCKWISE
COUNTER_CLOCKWISE = SETTINGS.ROTATE_COUNTER_CLOCKWISE

Sample = Tuple[float, float]


class GestureRecognizer:
    """Turns a stream of pointer samples into discrete rotate events.

    Consecutive displacement vectors are compared with
    ``atan2(cross, dot)`` and the signed turn is accumulated. A straight drag
    adds roughly nothing while a circular sweep adds up quickly, so only the
    accumulated turn is thresholded. Coordinates are screen-style (y grows
    downward), which makes a positive turn clockwise on screen.
    """

    def __init__(self, config: Optional[GestureConfig] = None) -> None:
        self.config = config or SETTINGS.GESTURE
        self.history: Deque[Sample] = deque(maxlen=max(self.config.history_size, 3))
        self.accumulated = 0.0
        self.cooldown_until: Optional[float] = None

    def reset(self) -> None:
        self.history.clear()
        self.accumulated = 0.0
        self.cooldown_until = None

    def in_cooldown(self, t: float) -> bool:
        return self.cooldown_until is not None and t < self.cooldown_until

    def feed(self, x: float, y: float, t: float) -> Optional[str]:
        if self.in_cooldown(t):
            return None
        self.history.append((x, y))
        if len(self.history) < 3:
            return None
        (x0, y0), (x1, y1), (x2, y2) = self.history[-3], self.history[-2], self.history[-1]
        v1 = (x1 - x0, y1 - y0)
        v2 = (x2 - x1, y2 - y1)
        floor = self.config.noise_floor
        if math.hypot(*v1) < floor or math.hypot(*v2) < floor:
            return None
        cross = v1[0] * v2[1] - v1[1] * v2[0]
        dot = v1[0] * v2[0] + v1[1] * v2[1]
        self.accumulated += math.atan2(cross, dot)

        threshold = self.config.turn_threshold
        if self.accumulated > threshold:
            return self._fire(CLOCKWISE, t)
        if self.accumulated < -threshold:
            return self._fire(COUNTER_CLOCKWISE, t)
        return None

    def _fire(self, direction: str, t: float) -> str:
        self.history.clear()
        self.accumulated = 0.0
        self.cooldown_until = t + self.config.cooldown_ms
        return direction


@dataclass
class DragSession:
    """State held while a pointer is down on a piece."""

    piece_id: int
    start_rotation: int
    start_x: float
    start_y: float
    start_t: float
    from_grid: bool = False
    start_origin: Optional[Tuple[int, int]] = None
    drag_x: float = 0.0
    drag_y: float = 0.0
    moved: bool = False
    snap_target: Optional[Tuple[int, int]] = None
    rotations: int = 0
    recognizer: GestureRecognizer = field(default_factory=GestureRecognizer)

    def to_dict(self) -> Dict[str, object]:
        return {
            "piece_id": self.piece_id,
            "from_grid": self.from_grid,
            "drag_x": round(self.drag_x, 2),
            "drag_y": round(self.drag_y, 2),
            "moved": self.moved,
            "snap_target": list(self.snap_target) if self.snap_target else None,
            "rotations": self.rotations,
        }


@dataclass
class PointerUpdate:
    rotate: Optional[str] = None
    snap_target: Optional[Tuple[int, int]] = None
    drag_x: Optional[float] = None
    drag_y: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {}
        if self.rotate:
            payload["rotate"] = self.rotate
        if self.snap_target is not None:
            payload["snap_target"] = {"row": self.snap_target[0], "col": self.snap_target[1]}
        if self.drag_x is not None and self.drag_y is not None:
            payload["drag"] = {"x": round(self.drag_x, 2), "y": round(self.drag_y, 2)}
        return payload
