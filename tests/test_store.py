import random
import unittest

from pipeline import (
    Board,
    BoardStateStore,
    Column,
    InvariantViolation,
    Item,
    MutationRecord,
    NotFound,
    Stage,
    apply_move,
    check_invariants,
    revert_move,
)


def make_board(layout):
    stages = [Stage(sid, sid.upper(), i) for i, (sid, _) in enumerate(layout)]
    items = [Item(iid, sid, {"title": iid}) for sid, ids in layout for iid in ids]
    return Board.build(stages, items)


class TestBoardModel(unittest.TestCase):
    def test_given_layout_when_building_then_columns_and_lookups_match(self):
        board = make_board([("a", ["x", "y"]), ("b", [])])
        self.assertEqual(board.stage_ids(), ("a", "b"))
        self.assertEqual(board.item_ids(), ["x", "y"])
        self.assertEqual(board.locate("y"), (0, 1))
        self.assertEqual(board.stage_of("x"), "a")
        self.assertIsNone(board.find_item("zzz"))
        self.assertIn("A [2]: x, y", board.pretty())
        self.assertIn("B [0]: (empty)", board.pretty())

    def test_given_item_with_unknown_stage_when_building_then_not_found(self):
        with self.assertRaises(NotFound):
            Board.build([Stage("a", "A")], [Item("x", "b")])

    def test_given_item_in_wrong_column_when_checking_then_violation(self):
        board = Board((Column(Stage("a", "A"), (Item("x", "b"),)), Column(Stage("b", "B"))))
        with self.assertRaises(InvariantViolation):
            check_invariants(board)

    def test_given_duplicate_item_when_checking_then_violation(self):
        a, b = Stage("a", "A"), Stage("b", "B")
        board = Board((Column(a, (Item("x", "a"),)), Column(b, (Item("x", "b"),))))
        with self.assertRaises(InvariantViolation):
            check_invariants(board)
        with self.assertRaises(InvariantViolation):
            BoardStateStore(board)


class TestApplyAndRevert(unittest.TestCase):
    def test_given_move_when_applied_then_item_appended_with_new_stage(self):
        board = make_board([("a", ["x", "y"]), ("b", ["z"])])
        out = apply_move(board, "x", "b")
        self.assertEqual(out.layout(), {"a": ("y",), "b": ("z", "x")})
        self.assertEqual(out.find_item("x").stage_id, "b")
        check_invariants(out)
        # input untouched
        self.assertEqual(board.layout(), {"a": ("x", "y"), "b": ("z",)})

    def test_given_same_stage_when_applied_then_board_unchanged(self):
        board = make_board([("a", ["x", "y"]), ("b", [])])
        self.assertIs(apply_move(board, "x", "a"), board)

    def test_given_record_when_reverting_then_original_position_restored(self):
        board = make_board([("a", ["w", "x", "y"]), ("b", [])])
        moved = apply_move(board, "x", "b")
        rec = MutationRecord("x", "a", "b", board, 1)
        self.assertEqual(revert_move(moved, rec), board)

    def test_given_interleaved_move_when_reverting_then_other_move_kept(self):
        board = make_board([("a", ["w", "x", "y"]), ("b", []), ("c", [])])
        after_x = apply_move(board, "x", "b")
        rec = MutationRecord("x", "a", "b", board, 1)
        after_y = apply_move(after_x, "y", "c")
        out = revert_move(after_y, rec)
        self.assertEqual(out.layout(), {"a": ("w", "x"), "b": (), "c": ("y",)})
        check_invariants(out)


class TestBoardStateStore(unittest.TestCase):
    def setUp(self):
        self.board = make_board([("a", ["x", "y"]), ("b", [])])
        self.store = BoardStateStore(self.board)
        self.seen = []
        self.unsubscribe = self.store.subscribe(self.seen.append)

    def test_given_move_when_applied_then_listener_notified_once(self):
        out = self.store.move_item("x", "b")
        self.assertEqual(out.layout(), {"a": ("y",), "b": ("x",)})
        self.assertIs(self.store.board, out)
        self.assertEqual(self.seen, [out])

    def test_given_noop_move_repeated_then_board_and_listeners_untouched(self):
        for _ in range(3):
            self.assertIs(self.store.move_item("x", "a"), self.board)
        self.assertEqual(self.store.board.layout(), {"a": ("x", "y"), "b": ()})
        self.assertEqual(self.seen, [])

    def test_given_unknown_ids_when_moving_then_not_found_and_no_mutation(self):
        with self.assertRaises(NotFound):
            self.store.move_item("nope", "b")
        with self.assertRaises(NotFound):
            self.store.move_item("x", "nope")
        self.assertIs(self.store.board, self.board)
        self.assertEqual(self.seen, [])

    def test_given_snapshot_when_restored_after_move_then_structurally_identical(self):
        snap = self.store.snapshot()
        self.store.move_item("x", "b")
        self.store.restore(snap)
        self.assertEqual(self.store.board, self.board)
        self.assertEqual(self.store.board.layout(), {"a": ("x", "y"), "b": ()})
        self.assertEqual(len(self.seen), 2)

    def test_given_unsubscribed_when_mutating_then_listener_silent(self):
        self.unsubscribe()
        self.unsubscribe()  # second call is harmless
        self.store.move_item("x", "b")
        self.assertEqual(self.seen, [])

    def test_given_failing_listener_when_mutating_then_others_still_called(self):
        def boom(_board):
            raise RuntimeError("listener bug")

        self.store.subscribe(boom)
        later = []
        self.store.subscribe(later.append)
        with self.assertLogs("pipeline_core.store", level="ERROR"):
            self.store.move_item("x", "b")
        self.assertEqual(len(self.seen), 1)
        self.assertEqual(len(later), 1)

    def test_given_random_moves_and_restores_then_partition_always_holds(self):
        rng = random.Random(7)
        board = make_board([("a", ["i1", "i2", "i3"]), ("b", ["i4"]), ("c", []), ("d", ["i5", "i6"])])
        store = BoardStateStore(board)
        all_items = sorted(board.item_ids())
        snaps = [store.snapshot()]
        for _ in range(200):
            if rng.random() < 0.2:
                store.restore(rng.choice(snaps))
            else:
                store.move_item(rng.choice(all_items), rng.choice(board.stage_ids()))
                snaps.append(store.snapshot())
            check_invariants(store.board)
            self.assertEqual(sorted(store.board.item_ids()), all_items)
            for col in store.board.columns:
                for it in col.items:
                    self.assertEqual(it.stage_id, col.stage.id)


if __name__ == "__main__":
    unittest.main()
