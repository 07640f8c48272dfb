from __future__ import annotations

import random
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .geometry import apply_rotation, normalize
from .grid import EMPTY, Grid, GridState, can_place, make_grid
from .models import Level, Piece, Solution, SolutionPlacement
from .shapes import SHAPES


class LevelConfigError(ValueError):
    pass


def _solution(*placements: Tuple[int, int, int, int]) -> Dict[str, object]:
    return {
        "placements": [
            {"piece_index": index, "row": row, "col": col, "rotation": rotation}
            for index, row, col, rotation in placements
        ]
    }


def _level(
    level_id: int,
    label: str,
    width: int,
    height: int,
    piece_size: int,
    difficulty: int,
    shapes: Sequence[str],
    *solutions: Dict[str, object],
) -> Dict[str, object]:
    return {
        "id": level_id,
        "label": label,
        "grid_width": width,
        "grid_height": height,
        "piece_size": piece_size,
        "difficulty": difficulty,
        "pieces": [{"shape": name} for name in shapes],
        "solutions": list(solutions),
    }


# Solutions are (piece_index, row, col, rotation). Diagrams show the solved grid.
LEVEL_DATA: List[Dict[str, object]] = [
    # AA / BB / CC
    _level(1, "2×3 Bars", 2, 3, 2, 1, ["bar2"] * 3,
           _solution((0, 0, 0, 0), (1, 1, 0, 0), (2, 2, 0, 0))),
    # AABB / CCDD
    _level(2, "2×4 Bars", 4, 2, 2, 1, ["bar2"] * 4,
           _solution((0, 0, 0, 0), (1, 0, 2, 0), (2, 1, 0, 0), (3, 1, 2, 0))),
    # AA / BB / CC / DD
    _level(3, "2×4 Tall", 2, 4, 2, 1, ["bar2"] * 4,
           _solution((0, 0, 0, 0), (1, 1, 0, 0), (2, 2, 0, 0), (3, 3, 0, 0))),
    # AAA / BBB
    _level(4, "3×2 Bars", 3, 2, 3, 2, ["bar3"] * 2,
           _solution((0, 0, 0, 0), (1, 1, 0, 0))),
    # ABB / AAB / CCC
    _level(5, "3×3 L-shapes", 3, 3, 3, 2, ["L3", "L3", "bar3"],
           _solution((0, 0, 0, 0), (1, 0, 1, 2), (2, 2, 0, 0))),
    # AAABBB / CCCDDD
    _level(6, "6×2 Bars", 6, 2, 3, 2, ["bar3"] * 4,
           _solution((0, 0, 0, 0), (1, 0, 3, 0), (2, 1, 0, 0), (3, 1, 3, 0))),
    # AAAA / BBBB
    _level(7, "4×2 Bars", 4, 2, 4, 3, ["bar4"] * 2,
           _solution((0, 0, 0, 0), (1, 1, 0, 0))),
    # AABB / AABB / CCCC
    _level(8, "4×3 Squares & Bars", 4, 3, 4, 3, ["sq4", "sq4", "bar4"],
           _solution((0, 0, 0, 0), (1, 0, 2, 0), (2, 2, 0, 0))),
    # ACCB / ACCB / AABB
    _level(9, "4×3 L-shapes", 4, 3, 4, 3, ["L4", "J4", "sq4"],
           _solution((0, 0, 0, 0), (1, 0, 2, 0), (2, 0, 1, 0))),
    # ACBB / ACCB / AACB / DDDD
    _level(10, "4×4 Mixed", 4, 4, 4, 4, ["L4", "L4", "S4", "bar4"],
           _solution((0, 0, 0, 0), (1, 0, 2, 2), (2, 0, 1, 1), (3, 3, 0, 0))),
    # AACDE / AACDE / BBCDE / BBCDE
    _level(11, "5×4 Tetrominoes", 5, 4, 4, 4, ["sq4", "sq4", "bar4", "bar4", "bar4"],
           _solution((0, 0, 0, 0), (1, 2, 0, 0), (2, 0, 2, 1), (3, 0, 3, 1), (4, 0, 4, 1))),
    # AABB / AABB / CCDD / CCDD / EEEE
    _level(12, "4×5 Challenge", 4, 5, 4, 5, ["sq4"] * 4 + ["bar4"],
           _solution((0, 0, 0, 0), (1, 0, 2, 0), (2, 2, 0, 0), (3, 2, 2, 0), (4, 4, 0, 0))),
    # AAAAA / BBBBB
    _level(13, "5×2 Bars", 5, 2, 5, 3, ["bar5"] * 2,
           _solution((0, 0, 0, 0), (1, 1, 0, 0))),
    # AAAAA / BBCCC / BBBCC
    _level(14, "5×3 Shapes", 5, 3, 5, 4, ["bar5", "P5", "P5"],
           _solution((0, 0, 0, 0), (1, 1, 0, 3), (2, 1, 2, 1))),
    # AAAAA / BBBBB / CCDDD / CCCDD
    _level(15, "5×4 Mixed", 5, 4, 5, 5, ["bar5", "bar5", "P5", "P5"],
           _solution((0, 0, 0, 0), (1, 1, 0, 0), (2, 2, 0, 3), (3, 2, 2, 1))),
    # ABCDEF in every row
    _level(16, "6×5 Bars", 6, 5, 5, 6, ["bar5"] * 6,
           _solution(*[(index, 0, index, 1) for index in range(6)])),
    # AAAAA / BBBBB / CCCCC / DDEEE / DDDEE
    _level(17, "5×5 Pentominoes", 5, 5, 5, 7, ["bar5", "bar5", "bar5", "P5", "P5"],
           _solution((0, 0, 0, 0), (1, 1, 0, 0), (2, 2, 0, 0), (3, 3, 0, 3), (4, 3, 2, 1))),
    # AAAAB / ABBBB / CCCCD / CDDDD / EEEEF / EFFFF
    _level(18, "5×6 Grand", 5, 6, 5, 8, ["L5"] * 6,
           _solution((0, 0, 0, 1), (1, 0, 1, 3), (2, 2, 0, 1),
                     (3, 2, 1, 3), (4, 4, 0, 1), (5, 4, 1, 3))),
]


def _require_int(raw: Mapping[str, object], key: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise LevelConfigError(f"Level field {key!r} must be an integer, got {value!r}")
    return value


def build_level(raw: Mapping[str, object]) -> Level:
    level_id = _require_int(raw, "id")
    width = _require_int(raw, "grid_width")
    height = _require_int(raw, "grid_height")
    if width <= 0 or height <= 0:
        raise LevelConfigError(f"Level {level_id} has a non-positive grid {width}x{height}")

    pieces = raw.get("pieces")
    if not isinstance(pieces, (list, tuple)) or not pieces:
        raise LevelConfigError(f"Level {level_id} lists no pieces")
    shape_names: List[str] = []
    for entry in pieces:
        name = entry.get("shape") if isinstance(entry, Mapping) else entry
        if not isinstance(name, str) or name not in SHAPES:
            raise LevelConfigError(f"Level {level_id} references unknown shape {name!r}")
        shape_names.append(name)

    solutions: List[Solution] = []
    for entry in raw.get("solutions") or []:
        try:
            placements = tuple(
                SolutionPlacement(
                    piece_index=int(p["piece_index"]),
                    row=int(p["row"]),
                    col=int(p["col"]),
                    rotation=int(p["rotation"]) % 4,
                )
                for p in entry.get("placements", [])
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise LevelConfigError(f"Level {level_id} has a malformed solution: {exc}") from exc
        solutions.append(Solution(placements))

    return Level(
        id=level_id,
        label=str(raw.get("label") or f"Level {level_id}"),
        grid_width=width,
        grid_height=height,
        piece_size=int(raw.get("piece_size") or SHAPES[shape_names[0]].size),
        difficulty=int(raw.get("difficulty") or 1),
        piece_shapes=tuple(shape_names),
        solutions=tuple(solutions),
    )


class LevelStore:
    """Read-only lookup of levels by index."""

    def __init__(self, levels: Optional[Sequence[Level]] = None) -> None:
        if levels is None:
            levels = [build_level(raw) for raw in LEVEL_DATA]
        self._levels: Tuple[Level, ...] = tuple(levels)

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[Level]:
        return iter(self._levels)

    def get(self, index: int) -> Level:
        if not 0 <= index < len(self._levels):
            raise IndexError(f"No level at index {index}; {len(self._levels)} levels available")
        return self._levels[index]

    @property
    def max_grid_width(self) -> int:
        return max((level.grid_width for level in self._levels), default=0)


def validate_level(level: Level) -> None:
    if level.grid_width <= 0 or level.grid_height <= 0:
        raise LevelConfigError(
            f"Level {level.id} has a non-positive grid {level.grid_width}x{level.grid_height}"
        )
    if not level.piece_shapes:
        raise LevelConfigError(f"Level {level.id} lists no pieces")
    for name in level.piece_shapes:
        shape = SHAPES.get(name)
        if shape is None:
            raise LevelConfigError(f"Level {level.id} references unknown shape {name!r}")
        if normalize(shape.cells) != shape.cells:
            raise LevelConfigError(f"Shape {name!r} is not normalised")


def shuffled_order(count: int, rng: random.Random) -> List[int]:
    order = list(range(count))
    for i in range(count - 1, 0, -1):
        j = rng.randint(0, i)
        order[i], order[j] = order[j], order[i]
    return order


def load_level(
    level: Level,
    rng: Optional[random.Random] = None,
    *,
    id_start: int = 0,
    shuffle: bool = True,
) -> Tuple[GridState, List[Piece]]:
    """Fresh grid and pieces for ``level``; raises ``LevelConfigError`` if malformed."""
    validate_level(level)
    rng = rng or random.Random()
    order = shuffled_order(len(level.piece_shapes), rng) if shuffle else list(
        range(len(level.piece_shapes))
    )
    pieces = [
        Piece(
            id=id_start + index,
            shape=SHAPES[name],
            tray_order=order.index(index),
        )
        for index, name in enumerate(level.piece_shapes)
    ]
    return GridState(level.grid_width, level.grid_height), pieces


def solution_grid(level: Level, index: int = 0) -> Optional[Grid]:
    """Lay out a shipped solution on an empty grid, ``None`` if it does not fit.

    Content-authoring check only; play never consults solutions for success.
    """
    solution = level.solutions[index]
    grid = make_grid(level.grid_width, level.grid_height)
    seen = set()
    for placement in solution.placements:
        if not 0 <= placement.piece_index < len(level.piece_shapes):
            return None
        if placement.piece_index in seen:
            return None
        seen.add(placement.piece_index)
        shape = SHAPES[level.piece_shapes[placement.piece_index]]
        cells = apply_rotation(shape.cells, placement.rotation)
        if not can_place(grid, cells, placement.row, placement.col):
            return None
        for r, c in cells:
            grid[placement.row + r][placement.col + c] = placement.piece_index
    return grid


def verify_solution(level: Level, index: int = 0) -> bool:
    grid = solution_grid(level, index)
    if grid is None:
        return False
    if len(level.solutions[index].placements) != len(level.piece_shapes):
        return False
    return all(cell is not EMPTY for row in grid for cell in row)


LEVELS = LevelStore()
