import math
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class GestureConfig:
    """Thresholds that drive the twist-to-rotate recognizer.

    Attributes:
        turn_threshold: Accumulated signed turn (radians) that fires a rotation.
        cooldown_ms: Window after a rotation during which samples are not
            accumulated.
        noise_floor: Minimum displacement (board units) for a sample pair to
            count towards the turn.
        history_size: Number of recent pointer samples retained.
        drag_lift: Vertical offset so the dragged piece sits above the finger.
        tap_threshold: Distance the pointer must travel before a press turns
            into a drag.
    """
    turn_threshold: float = math.pi
    cooldown_ms: float = 400.0
    noise_floor: float = 2.0
    history_size: int = 28
    drag_lift: float = 45.0
    tap_threshold: float = 5.0


@dataclass(frozen=True)
class BoardConfig:
    cell_size: float = 40.0
    pad: float = 20.0
    tray_gap: float = 20.0
    tray_scale: float = 0.55
    tray_piece_gap: float = 10.0
    tray_row_min_height: float = 55.0
    tray_pad_y: float = 8.0
    # Space to the right of the grid reserved for the running sum.
    sum_gutter: float = 70.0


class Settings:
    GESTURE = GestureConfig()
    BOARD = BoardConfig()

    SHUFFLE_TRAY = True

    ROTATE_CLOCKWISE = "cw"
    ROTATE_COUNTER_CLOCKWISE = "ccw"

    # Oldest sessions are dropped once this many are live.
    MAX_SESSIONS = 64

    LOG_DIR = Path("static")


SETTINGS = Settings()
