import random
from pathlib import Path

import pytest

from app import SessionLogWriter
from puzzle.controller import PuzzleController
from puzzle.levels import LEVELS


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "session.txt"


@pytest.fixture
def controller() -> PuzzleController:
    return PuzzleController(level_index=4, rng=random.Random(1), shuffle=False)


def test_header_includes_timestamp_and_level(log_path: Path) -> None:
    SessionLogWriter(log_path, LEVELS.get(4))

    content = log_path.read_text(encoding="utf-8")
    assert content.startswith("TILE PUZZLE SESSION LOG")
    assert "Generated at:" in content
    assert "COOLDOWN_MS=400" in content
    assert "Level 5: 3×3 L-shapes" in content
    assert "  Grid: 3 x 3 (9 cells)" in content
    assert "  - L3: 2" in content
    assert "  - bar3: 1" in content
    assert content.rstrip().endswith("Events:")


def test_header_without_level(log_path: Path) -> None:
    SessionLogWriter(log_path)
    assert "Level: none loaded" in log_path.read_text(encoding="utf-8")


def test_events_are_appended_as_they_happen(log_path: Path, controller: PuzzleController) -> None:
    writer = SessionLogWriter(log_path, controller.level)
    controller.event_callback = writer.handle_event

    controller.try_place(2, 2, 0)
    controller.try_place(0, 2, 0)
    controller.rotate(1)
    controller.remove(2)

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert "Piece 2 placed at row 2, col 0 (rotation 0, sum 3)." in lines
    assert "Piece 0 rejected at row 2, col 0: out of bounds." in lines
    assert "Piece 1 rotated clockwise (rotation 1)." in lines
    assert "Piece 2 returned to the tray (sum 0)." in lines


def test_unknown_events_are_ignored(log_path: Path) -> None:
    writer = SessionLogWriter(log_path)
    before = log_path.read_text(encoding="utf-8")
    writer.handle_event({"type": "something_else", "piece_id": 1})
    assert log_path.read_text(encoding="utf-8") == before


def test_summary_reports_solved_grid_once(log_path: Path, controller: PuzzleController) -> None:
    writer = SessionLogWriter(log_path, controller.level)
    controller.event_callback = writer.handle_event
    controller.show_solution()

    writer.append_summary(controller)
    writer.append_summary(controller)

    content = log_path.read_text(encoding="utf-8")
    assert "Level 5 completed (sum 9)." in content
    assert content.count("Summary:") == 1
    assert "  Pieces placed: 3 of 3" in content
    assert "  Empty cells: 0" in content
    assert "    ABB" in content
    assert "    AAB" in content
    assert "    CCC" in content
    assert "Session ended with the level solved." in content


def test_summary_for_unsolved_session(log_path: Path, controller: PuzzleController) -> None:
    writer = SessionLogWriter(log_path, controller.level)
    writer.log_error("Unknown rotation direction 'up'")
    writer.append_summary(controller)

    content = log_path.read_text(encoding="utf-8")
    assert "Error: Unknown rotation direction 'up'" in content
    assert "    ..." in content
    assert "  Empty cells: 9" in content
    assert "Session ended with the level unsolved." in content
