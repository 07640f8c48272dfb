from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from flask import Flask, abort, jsonify, request, send_from_directory

from config import SETTINGS
from puzzle.controller import PuzzleController
from puzzle.levels import LEVELS
from puzzle.models import Level

app = Flask(__name__)

logger = logging.getLogger(__name__)


class SessionLogWriter:
    def __init__(self, path: Path, level: Optional[Level] = None):
        self.path = path
        self._lock = threading.Lock()
        self._summary_written = False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        header = self._build_header(level)
        with self._lock:
            with self.path.open("w", encoding="utf-8") as fh:
                for line in header:
                    fh.write(f"{line}\n")

    def _build_header(self, level: Optional[Level]) -> List[str]:
        timestamp = datetime.now().astimezone().isoformat(timespec="seconds")
        header: List[str] = [
            "TILE PUZZLE SESSION LOG",
            f"Generated at: {timestamp}",
            f"TURN_THRESHOLD={SETTINGS.GESTURE.turn_threshold:.4f}",
            f"COOLDOWN_MS={SETTINGS.GESTURE.cooldown_ms:g}",
            f"NOISE_FLOOR={SETTINGS.GESTURE.noise_floor:g}",
        ]
        header.extend(self._level_lines(level))
        header.extend(["", "Events:"])
        return header

    def _level_lines(self, level: Optional[Level]) -> List[str]:
        if level is None:
            return ["Level: none loaded"]
        lines = [
            f"Level {level.id}: {level.label}",
            f"  Grid: {level.grid_width} x {level.grid_height} ({level.area} cells)",
            f"  Pieces: {len(level.piece_shapes)} of size {level.piece_size}",
        ]
        counts: Dict[str, int] = {}
        for name in level.piece_shapes:
            counts[name] = counts.get(name, 0) + 1
        for name, count in counts.items():
            lines.append(f"  - {name}: {count}")
        return lines

    def handle_event(self, event: Mapping[str, object]) -> None:
        event_type = event.get("type")
        lines: List[str] = []
        piece_id = event.get("piece_id")
        if event_type == "level_loaded":
            size = event.get("grid_size") or (0, 0)
            lines.append(
                "Level {level_id} loaded ({label}, grid {w} x {h}, {count} pieces).".format(
                    level_id=event.get("level_id"),
                    label=event.get("label", "unknown"),
                    w=size[0],
                    h=size[1],
                    count=len(event.get("piece_ids") or []),
                )
            )
        elif event_type == "level_reset":
            lines.append(f"Level {event.get('level_id')} reset.")
        elif event_type == "piece_selected":
            lines.append(f"Piece {piece_id} selected.")
        elif event_type == "piece_rotated":
            direction = "clockwise" if event.get("direction") == SETTINGS.ROTATE_CLOCKWISE else "counter-clockwise"
            lines.append(f"Piece {piece_id} rotated {direction} (rotation {event.get('rotation')}).")
        elif event_type == "piece_placed":
            lines.append(
                "Piece {pid} placed at row {row}, col {col} (rotation {rotation}, sum {total}).".format(
                    pid=piece_id,
                    row=event.get("row"),
                    col=event.get("col"),
                    rotation=event.get("rotation"),
                    total=event.get("placed_sum"),
                )
            )
        elif event_type == "placement_rejected":
            lines.append(
                "Piece {pid} rejected at row {row}, col {col}: {reason}.".format(
                    pid=piece_id,
                    row=event.get("row"),
                    col=event.get("col"),
                    reason=str(event.get("reason", "unknown")).replace("_", " "),
                )
            )
        elif event_type == "piece_removed":
            lines.append(f"Piece {piece_id} returned to the tray (sum {event.get('placed_sum')}).")
        elif event_type == "drag_started":
            source = "grid" if event.get("from_grid") else "tray"
            lines.append(f"Drag started on piece {piece_id} from the {source}.")
        elif event_type == "drag_dropped":
            lines.append(
                f"Drag on piece {piece_id} dropped after {event.get('rotations', 0)} twist rotation(s)."
            )
        elif event_type in ("drag_returned", "drag_cancelled"):
            verb = "cancelled" if event_type == "drag_cancelled" else "released without a target"
            lines.append(f"Drag on piece {piece_id} {verb}; rotation restored to {event.get('rotation')}.")
        elif event_type == "solution_shown":
            lines.append(f"Solution {event.get('solution_index')} shown for level {event.get('level_id')}.")
        elif event_type == "level_completed":
            lines.append(f"Level {event.get('level_id')} completed (sum {event.get('placed_sum')}).")

        if lines:
            self._append_lines(lines)

    def log_error(self, message: str) -> None:
        self._append_lines([f"Error: {message}"])

    def append_summary(self, controller: PuzzleController) -> None:
        if self._summary_written:
            return
        lines: List[str] = ["", "Summary:"]
        lines.append(f"Level {controller.level.id}: {controller.level.label}")
        placed = [piece for piece in controller.pieces if piece.placed]
        lines.append(f"  Pieces placed: {len(placed)} of {len(controller.pieces)}")
        lines.append(f"  Running sum: {controller.placed_sum()}")
        lines.append(f"  Empty cells: {len(controller.grid.empty_cells())}")
        lines.append("  Grid (. = empty):")
        for row in controller.grid.rows_as_text():
            lines.append(f"    {row}")
        if controller.is_complete():
            lines.append("Session ended with the level solved.")
        else:
            lines.append("Session ended with the level unsolved.")
        self._append_lines(lines)
        self._summary_written = True

    def _append_lines(self, lines: List[str]) -> None:
        if not lines:
            return
        with self._lock:
            with self.path.open("a", encoding="utf-8") as fh:
                for line in lines:
                    fh.write(f"{line}\n")


@dataclass
class SessionState:
    controller: PuzzleController
    log_writer: Optional[SessionLogWriter] = None
    log_path: Optional[Path] = None
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionManager:
    def __init__(self, max_sessions: Optional[int] = None) -> None:
        self._sessions: "OrderedDict[str, SessionState]" = OrderedDict()
        self._lock = threading.Lock()
        self.max_sessions = max_sessions or SETTINGS.MAX_SESSIONS

    def start_session(self, level_index: int = 0) -> str:
        session_id = uuid.uuid4().hex
        log_path = SETTINGS.LOG_DIR / f"session_{session_id}.txt"
        controller = PuzzleController(LEVELS, level_index)
        log_writer = SessionLogWriter(log_path, controller.level)
        controller.event_callback = log_writer.handle_event
        state = SessionState(controller, log_writer=log_writer, log_path=log_path)
        with self._lock:
            self._sessions[session_id] = state
            while len(self._sessions) > self.max_sessions:
                stale_id, stale = self._sessions.popitem(last=False)
                logger.info("Dropping session %s", stale_id)
                if stale.log_writer:
                    stale.log_writer.append_summary(stale.controller)
        return session_id

    def get_state(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            return self._sessions.get(session_id)

    def end_session(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            state = self._sessions.pop(session_id, None)
        if state is not None and state.log_writer:
            state.log_writer.append_summary(state.controller)
        return state


session_manager = SessionManager()


def _payload() -> Dict[str, object]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _int_arg(data: Mapping[str, object], key: str, default: Optional[int] = None) -> int:
    value = data.get(key, default)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        abort(400, description=f"{key} must be an integer")


def _float_arg(data: Mapping[str, object], key: str, default: Optional[float] = None) -> float:
    value = data.get(key, default)
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        abort(400, description=f"{key} must be a number")


def _session_or_404(session_id: str) -> SessionState:
    state = session_manager.get_state(session_id)
    if state is None:
        abort(404)
    return state


def _result(state: SessionState, **extra: object):
    body: Dict[str, object] = dict(extra)
    body["state"] = state.controller.snapshot()
    return jsonify(body)


@app.errorhandler(400)
def bad_request(error):
    return jsonify({"error": getattr(error, "description", "bad request")}), 400


@app.errorhandler(404)
def not_found(error):
    return jsonify({"error": getattr(error, "description", "not found")}), 404


@app.route("/")
@app.route("/levels")
def list_levels():
    return jsonify(
        {
            "levels": [level.to_dict() for level in LEVELS],
            "max_grid_width": LEVELS.max_grid_width,
        }
    )


@app.route("/levels/<int:index>")
def level_detail(index: int):
    try:
        level = LEVELS.get(index)
    except IndexError as exc:
        abort(404, description=str(exc))
    body = level.to_dict()
    body["solutions"] = [solution.to_dict() for solution in level.solutions]
    return jsonify(body)


@app.route("/sessions", methods=["POST"])
def start_session():
    data = _payload()
    level_index = _int_arg(data, "level", 0)
    try:
        session_id = session_manager.start_session(level_index)
    except IndexError as exc:
        abort(404, description=str(exc))
    return jsonify({"session_id": session_id}), 201


@app.route("/sessions/<session_id>")
def session_state(session_id: str):
    state = _session_or_404(session_id)
    with state.lock:
        return _result(state)


@app.route("/sessions/<session_id>", methods=["DELETE"])
def end_session(session_id: str):
    state = session_manager.end_session(session_id)
    if state is None:
        abort(404)
    log_name = state.log_path.name if state.log_path else None
    return jsonify({"ended": True, "run_log": log_name})


@app.route("/sessions/<session_id>/level", methods=["POST"])
def change_level(session_id: str):
    state = _session_or_404(session_id)
    index = _int_arg(_payload(), "level")
    with state.lock:
        try:
            state.controller.go_to_level(index)
        except IndexError as exc:
            abort(404, description=str(exc))
        return _result(state)


@app.route("/sessions/<session_id>/reset", methods=["POST"])
def reset_level(session_id: str):
    state = _session_or_404(session_id)
    with state.lock:
        state.controller.reset_level()
        return _result(state)


@app.route("/sessions/<session_id>/solution", methods=["POST"])
def show_solution(session_id: str):
    state = _session_or_404(session_id)
    index = _int_arg(_payload(), "index", 0)
    with state.lock:
        shown = state.controller.show_solution(index)
        return _result(state, success=shown)


def _piece_command(session_id: str, piece_id: int, command):
    state = _session_or_404(session_id)
    with state.lock:
        try:
            success = command(state.controller)
        except KeyError:
            abort(404, description=f"No piece with id {piece_id}")
        except ValueError as exc:
            if state.log_writer:
                state.log_writer.log_error(str(exc))
            abort(400, description=str(exc))
        return _result(state, success=success)


@app.route("/sessions/<session_id>/pieces/<int:piece_id>/rotate", methods=["POST"])
def rotate_piece(session_id: str, piece_id: int):
    direction = str(_payload().get("direction") or SETTINGS.ROTATE_CLOCKWISE)
    return _piece_command(session_id, piece_id, lambda c: c.rotate(piece_id, direction))


@app.route("/sessions/<session_id>/pieces/<int:piece_id>/place", methods=["POST"])
def place_piece(session_id: str, piece_id: int):
    data = _payload()
    row = _int_arg(data, "row")
    col = _int_arg(data, "col")
    return _piece_command(session_id, piece_id, lambda c: c.try_place(piece_id, row, col))


@app.route("/sessions/<session_id>/pieces/<int:piece_id>/remove", methods=["POST"])
def remove_piece(session_id: str, piece_id: int):
    return _piece_command(session_id, piece_id, lambda c: c.remove(piece_id))


@app.route("/sessions/<session_id>/pieces/<int:piece_id>/tap", methods=["POST"])
def tap_piece(session_id: str, piece_id: int):
    return _piece_command(session_id, piece_id, lambda c: c.tap(piece_id))


def _now_ms() -> float:
    return time.time() * 1000.0


@app.route("/sessions/<session_id>/drag/start", methods=["POST"])
def drag_start(session_id: str):
    data = _payload()
    x = _float_arg(data, "x")
    y = _float_arg(data, "y")
    t = _float_arg(data, "t", _now_ms())
    if data.get("piece_id") is None:
        # Without an id the press picks up the placed piece under the pointer.
        state = _session_or_404(session_id)
        with state.lock:
            hit = state.controller.piece_at(x, y)
        if hit is None:
            abort(404, description=f"No placed piece at ({x:g}, {y:g})")
        piece_id = hit
    else:
        piece_id = _int_arg(data, "piece_id")
    return _piece_command(session_id, piece_id, lambda c: c.begin_drag(piece_id, x, y, t))


@app.route("/sessions/<session_id>/drag/sample", methods=["POST"])
def drag_sample(session_id: str):
    state = _session_or_404(session_id)
    data = _payload()
    x = _float_arg(data, "x")
    y = _float_arg(data, "y")
    t = _float_arg(data, "t", _now_ms())
    with state.lock:
        update = state.controller.feed_pointer_sample(x, y, t)
        return jsonify(update.to_dict())


@app.route("/sessions/<session_id>/drag/end", methods=["POST"])
def drag_end(session_id: str):
    state = _session_or_404(session_id)
    with state.lock:
        placed = state.controller.end_drag()
        return _result(state, success=placed)


@app.route("/sessions/<session_id>/drag/cancel", methods=["POST"])
def drag_cancel(session_id: str):
    state = _session_or_404(session_id)
    with state.lock:
        state.controller.cancel_drag()
        return _result(state, success=True)


@app.route("/logs/<path:filename>")
def serve_log(filename: str):
    return send_from_directory(SETTINGS.LOG_DIR, filename, as_attachment=True)


if __name__ == "__main__":
    app.run(debug=True)
