import math
import random
import unittest
from typing import Dict, List

from puzzle.controller import PuzzleController
from puzzle.gesture import CLOCKWISE
from puzzle.levels import LevelStore
from puzzle.models import Level, Solution, SolutionPlacement


def single_piece_level(level_id: int, width: int, height: int) -> Level:
    return Level(
        id=level_id,
        label=f"{width}×{height} Domino",
        grid_width=width,
        grid_height=height,
        piece_size=2,
        difficulty=1,
        piece_shapes=("bar2",),
        solutions=(Solution((SolutionPlacement(0, 0, 0, 0 if width == 2 else 1),)),),
    )


DOMINO = single_piece_level(101, 2, 1)
TALL_DOMINO = single_piece_level(102, 1, 2)


class ControllerTestCase(unittest.TestCase):
    def build(self, store=None, level_index=0, **kwargs) -> PuzzleController:
        self.events: List[Dict[str, object]] = []
        kwargs.setdefault("rng", random.Random(3))
        return PuzzleController(
            store,
            level_index,
            event_callback=self.events.append,
            **kwargs,
        )

    def event_types(self) -> List[str]:
        return [event["type"] for event in self.events]


class DominoScenarioTests(ControllerTestCase):
    def setUp(self):
        self.controller = self.build(LevelStore([DOMINO]))

    def test_place_remove_rotate_cycle(self):
        c = self.controller
        self.assertFalse(c.is_complete())
        self.assertTrue(c.try_place(0, 0, 0))
        self.assertTrue(c.is_complete())
        self.assertEqual(["AA"], c.grid.rows_as_text())
        self.assertEqual(2, c.placed_sum())

        self.assertTrue(c.remove(0))
        self.assertFalse(c.is_complete())
        self.assertEqual(0, c.placed_sum())

        self.assertTrue(c.rotate(0, CLOCKWISE))
        self.assertEqual(1, c.piece(0).rotation)
        self.assertFalse(c.try_place(0, 0, 0))
        self.assertEqual("out_of_bounds", self.events[-1]["reason"])
        self.assertEqual([[None, None]], c.grid.occupancy())

    def test_placed_piece_cannot_rotate_or_place_twice(self):
        c = self.controller
        c.try_place(0, 0, 0)
        self.assertFalse(c.rotate(0))
        self.assertEqual(0, c.piece(0).rotation)
        self.assertFalse(c.try_place(0, 0, 0))

    def test_remove_of_tray_piece_is_a_no_op(self):
        self.assertFalse(self.controller.remove(0))
        self.assertNotIn("piece_removed", self.event_types())

    def test_bad_direction_and_unknown_piece(self):
        with self.assertRaises(ValueError):
            self.controller.rotate(0, "sideways")
        with self.assertRaises(KeyError):
            self.controller.piece(99)

    def test_tap_selects_then_rotates(self):
        c = self.controller
        self.assertTrue(c.tap(0))
        self.assertEqual(0, c.selected_id)
        self.assertEqual(0, c.piece(0).rotation)
        self.assertTrue(c.tap(0))
        self.assertEqual(1, c.piece(0).rotation)

    def test_tap_on_grid_piece_returns_it(self):
        c = self.controller
        c.try_place(0, 0, 0)
        self.assertTrue(c.tap(0))
        self.assertFalse(c.piece(0).placed)
        self.assertEqual([[None, None]], c.grid.occupancy())

    def test_completion_is_reported_on_the_edge(self):
        c = self.controller
        c.try_place(0, 0, 0)
        c.remove(0)
        c.try_place(0, 0, 0)
        self.assertEqual(2, self.event_types().count("level_completed"))

    def test_snapshot_describes_board(self):
        self.controller.try_place(0, 0, 0)
        snapshot = self.controller.snapshot()
        self.assertTrue(snapshot["complete"])
        self.assertEqual(["AA"], snapshot["grid_rows"])
        self.assertEqual(1, snapshot["level_count"])
        self.assertEqual([], snapshot["tray"]["slots"])
        self.assertEqual(20, snapshot["board"]["grid_left"])
        self.assertIsNone(snapshot["drag"])


class DragTests(ControllerTestCase):
    def test_straight_drag_drops_on_snap_target(self):
        c = self.build(LevelStore([DOMINO]))
        self.assertTrue(c.begin_drag(0, 60.0, 200.0, 0.0))
        update = None
        for step in range(1, 12):
            update = c.feed_pointer_sample(60.0, 200.0 - 10 * step, 16.0 * step)
            self.assertIsNone(update.rotate)
        update = c.feed_pointer_sample(60.0, 85.0, 200.0)
        self.assertEqual((0, 0), update.snap_target)
        self.assertEqual(40.0, update.drag_y)

        self.assertTrue(c.end_drag())
        self.assertIsNone(c.drag)
        self.assertTrue(c.is_complete())
        self.assertIn("drag_dropped", self.event_types())
        self.assertIn("level_completed", self.event_types())

    def test_small_wobble_counts_as_a_tap(self):
        c = self.build(LevelStore([DOMINO]))
        c.begin_drag(0, 60.0, 200.0, 0.0)
        c.feed_pointer_sample(62.0, 202.0, 30.0)
        self.assertIsNone(c.drag.snap_target)
        self.assertFalse(c.end_drag())
        self.assertEqual(0, c.selected_id)

    def test_twist_rotates_and_drop_keeps_rotation(self):
        c = self.build(LevelStore([TALL_DOMINO]))
        cx, cy, radius = 300.0, 300.0, 50.0

        def point(i: int):
            angle = 2 * math.pi * i / 12
            return cx + radius * math.cos(angle), cy + radius * math.sin(angle)

        c.begin_drag(0, *point(0), t=0.0)
        rotations = []
        for i in range(1, 11):
            x, y = point(i)
            update = c.feed_pointer_sample(x, y, i * 10.0)
            self.assertIsNone(update.snap_target)
            if update.rotate:
                rotations.append(update.rotate)
        self.assertEqual([CLOCKWISE], rotations)
        self.assertEqual(1, c.piece(0).rotation)

        update = c.feed_pointer_sample(40.0, 105.0, 200.0)
        self.assertEqual((0, 0), update.snap_target)
        self.assertTrue(c.end_drag())
        self.assertEqual(1, c.piece(0).rotation)
        self.assertTrue(c.is_complete())

    def test_invalid_drop_reverts_rotation(self):
        c = self.build(LevelStore([DOMINO]))
        c.begin_drag(0, 60.0, 300.0, 0.0)
        c.feed_pointer_sample(60.0, 280.0, 16.0)
        c.rotate(0)
        self.assertEqual(1, c.piece(0).rotation)
        self.assertIsNone(c.drag.snap_target)
        self.assertFalse(c.end_drag())
        self.assertEqual(0, c.piece(0).rotation)
        self.assertFalse(c.piece(0).placed)
        self.assertEqual("drag_returned", self.events[-1]["type"])

    def test_cancel_reverts_rotation(self):
        c = self.build(LevelStore([DOMINO]))
        c.begin_drag(0, 60.0, 300.0, 0.0)
        c.feed_pointer_sample(60.0, 85.0, 16.0)
        c.rotate(0)
        c.cancel_drag()
        self.assertIsNone(c.drag)
        self.assertEqual(0, c.piece(0).rotation)
        self.assertFalse(c.piece(0).placed)
        self.assertEqual("drag_cancelled", self.events[-1]["type"])

    def test_grid_piece_is_lifted_when_dragged(self):
        c = self.build(LevelStore([DOMINO]))
        c.try_place(0, 0, 0)
        c.begin_drag(0, 60.0, 40.0, 0.0)
        self.assertFalse(c.piece(0).placed)
        self.assertTrue(c.drag.from_grid)
        self.assertEqual([[None, None]], c.grid.occupancy())
        self.assertFalse(c.end_drag())
        self.assertFalse(c.piece(0).placed)
        self.assertIsNone(c.selected_id)

    def test_second_drag_is_ignored(self):
        c = self.build(level_index=0)
        self.assertTrue(c.begin_drag(0, 10.0, 10.0))
        self.assertFalse(c.begin_drag(1, 20.0, 20.0))
        self.assertEqual(0, c.drag.piece_id)

    def test_samples_without_a_drag_do_nothing(self):
        c = self.build(LevelStore([DOMINO]))
        self.assertEqual({}, c.feed_pointer_sample(10.0, 10.0, 0.0).to_dict())
        self.assertFalse(c.end_drag())

    def twist_in_place(self, c: PuzzleController, samples: int = 7) -> List[str]:
        # Radius 2.4 keeps every sample inside the tap threshold while each
        # step still clears the noise floor.
        cx, cy, radius = 200.0, 300.0, 2.4

        def point(i: int):
            angle = 2 * math.pi * i / 6
            return cx + radius * math.cos(angle), cy + radius * math.sin(angle)

        c.begin_drag(0, *point(0), t=0.0)
        fired = []
        for i in range(1, samples + 1):
            update = c.feed_pointer_sample(*point(i), t=i * 10.0)
            if update.rotate:
                fired.append(update.rotate)
        return fired

    def test_twist_without_travel_is_undone_on_release(self):
        c = self.build(LevelStore([DOMINO]))
        self.assertEqual([CLOCKWISE], self.twist_in_place(c))
        self.assertFalse(c.drag.moved)
        self.assertEqual(1, c.piece(0).rotation)

        self.assertFalse(c.end_drag())
        self.assertEqual(0, c.piece(0).rotation)
        self.assertFalse(c.piece(0).placed)
        self.assertIsNone(c.selected_id)
        self.assertEqual("drag_returned", self.events[-1]["type"])

    def test_twist_on_selected_piece_does_not_turn_it_again(self):
        c = self.build(LevelStore([DOMINO]))
        c.tap(0)
        self.twist_in_place(c)
        c.end_drag()
        self.assertEqual(0, c.piece(0).rotation)

    def test_piece_at_finds_placed_pieces(self):
        c = self.build(LevelStore([DOMINO]))
        self.assertIsNone(c.piece_at(30.0, 30.0))
        c.try_place(0, 0, 0)
        self.assertEqual(0, c.piece_at(30.0, 30.0))
        self.assertEqual(0, c.piece_at(95.0, 55.0))
        self.assertIsNone(c.piece_at(5.0, 30.0))
        self.assertIsNone(c.piece_at(30.0, 65.0))


class ShippedLevelControllerTests(ControllerTestCase):
    def test_three_by_three_solved_by_hand(self):
        c = self.build(level_index=4, shuffle=False)
        c.rotate(1)
        c.rotate(1)
        self.assertTrue(c.try_place(0, 0, 0))
        self.assertTrue(c.try_place(1, 0, 1))
        self.assertTrue(c.try_place(2, 2, 0))
        self.assertTrue(c.is_complete())
        self.assertEqual(9, c.placed_sum())
        self.assertEqual([], c.tray_layout().slots)

        for piece_id in (0, 1, 2):
            with self.subTest(removed=piece_id):
                c.remove(piece_id)
                self.assertFalse(c.is_complete())
                origin = {0: (0, 0), 1: (0, 1), 2: (2, 0)}[piece_id]
                self.assertTrue(c.try_place(piece_id, *origin))
                self.assertTrue(c.is_complete())

    def test_tray_slots_do_not_move_when_rotating(self):
        c = self.build(level_index=10)
        before = c.tray_layout().slots
        c.rotate(2)
        c.rotate(4)
        self.assertEqual(before, c.tray_layout().slots)

    def test_placed_piece_leaves_the_tray(self):
        c = self.build(level_index=10, shuffle=False)
        self.assertTrue(c.try_place(0, 0, 0))
        layout = c.tray_layout()
        self.assertIsNone(layout.slot_for(0))
        self.assertEqual(4, len(layout.slots))

    def test_piece_ids_are_not_reused_across_levels(self):
        c = self.build(level_index=0)
        self.assertEqual([0, 1, 2], [p.id for p in c.pieces])
        c.go_to_level(1)
        self.assertEqual([3, 4, 5, 6], [p.id for p in c.pieces])
        c.reset_level()
        self.assertEqual(1, c.level_index)
        self.assertEqual([7, 8, 9, 10], [p.id for p in c.pieces])
        self.assertEqual(["level_loaded", "level_reset"], self.event_types()[-2:])

    def test_unknown_level_index(self):
        c = self.build(level_index=0)
        with self.assertRaises(IndexError):
            c.go_to_level(99)
        self.assertEqual(0, c.level_index)

    def test_show_solution_completes_grid(self):
        c = self.build(level_index=17)
        c.try_place(0, 0, 0)
        self.assertTrue(c.show_solution(0))
        self.assertTrue(c.is_complete())
        self.assertEqual(30, c.placed_sum())
        self.assertIn("solution_shown", self.event_types())
        self.assertFalse(c.show_solution(3))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
