import asyncio
import unittest

from pipeline import (
    Board,
    BoardStateStore,
    ConcurrentMutationRejected,
    DragSessionController,
    DragState,
    DropTargetRegistry,
    Item,
    LEVEL_BUSY,
    LEVEL_ERROR,
    MoveStatus,
    Notifier,
    Rect,
    RemoteSyncClient,
    Stage,
    StageMutationService,
    SyncResult,
)


class FakeSyncClient(RemoteSyncClient):
    def __init__(self):
        self.calls = []
        self.gates = {}
        self.outcome = SyncResult(ok=True)

    async def update_stage(self, item_id, to_stage_id, from_stage_id):
        self.calls.append({"item": item_id, "to": to_stage_id, "from": from_stage_id})
        if item_id in self.gates:
            return await self.gates[item_id]
        return self.outcome


class TestDragSessionController(unittest.IsolatedAsyncioTestCase):
    """Board A:[x, y], B:[] laid out as two side-by-side columns."""

    def setUp(self):
        self.board = Board.build(
            [Stage("A", "Stage A", 0), Stage("B", "Stage B", 1)],
            [Item("x", "A"), Item("y", "A")],
        )
        self.store = BoardStateStore(self.board)
        self.board_updates = []
        self.store.subscribe(self.board_updates.append)
        self.client = FakeSyncClient()
        self.notifier = Notifier()
        self.service = StageMutationService(self.store, self.client, self.notifier, timeout=1.0)

        self.targets = DropTargetRegistry()
        self.targets.register_stage("A", Rect(0, 0, 200, 400))
        self.targets.register_stage("B", Rect(220, 0, 200, 400))
        self.targets.register_item("x", "A", Rect(10, 10, 180, 50))
        self.targets.register_item("y", "A", Rect(10, 70, 180, 50))

        self.ctl = DragSessionController(self.store, self.service, self.targets, activation_distance=8)
        self.transitions = []
        self.ctl.subscribe(lambda old, new: self.transitions.append((old, new)))

    def _drag(self, item_id, start, end):
        session = self.ctl.pointer_down(item_id, start)
        self.assertIsNotNone(session)
        self.ctl.pointer_move(end)
        return self.ctl.pointer_up(end)

    async def test_given_drop_into_empty_stage_then_optimistic_move_and_remote_call(self):
        pending = self._drag("x", (50, 30), (300, 200))
        self.assertIsNotNone(pending)
        self.assertEqual(self.ctl.state, DragState.IDLE)
        self.assertIsNone(self.ctl.session)
        self.assertEqual(self.store.board.layout(), {"A": ("y",), "B": ("x",)})
        res = await pending
        self.assertEqual(res.status, MoveStatus.COMMITTED)
        self.assertEqual(self.client.calls, [{"item": "x", "to": "B", "from": "A"}])
        self.assertEqual(self.store.board.layout(), {"A": ("y",), "B": ("x",)})
        self.assertEqual(len(self.board_updates), 1)
        self.assertEqual(self.transitions, [
            (DragState.IDLE, DragState.DRAGGING),
            (DragState.DRAGGING, DragState.DROPPED),
            (DragState.DROPPED, DragState.IDLE),
        ])

    async def test_given_remote_failure_then_board_reverts_to_original_order(self):
        self.client.outcome = SyncResult(ok=False, message="server said no")
        res = await self._drag("x", (50, 30), (300, 200))
        self.assertEqual(res.status, MoveStatus.REVERTED)
        self.assertEqual(self.store.board, self.board)
        self.assertEqual(self.store.board.layout(), {"A": ("x", "y"), "B": ()})
        errors = [n for n in self.notifier.pending() if n.level == LEVEL_ERROR]
        self.assertEqual(len(errors), 1)

    async def test_given_drop_back_on_source_stage_then_nothing_happens(self):
        pending = self._drag("x", (50, 30), (100, 300))
        self.assertIsNone(pending)
        await asyncio.sleep(0)
        self.assertIs(self.store.board, self.board)
        self.assertEqual(self.board_updates, [])
        self.assertEqual(self.client.calls, [])

    async def test_given_pending_move_when_dragging_same_item_again_then_refused(self):
        gate = asyncio.get_running_loop().create_future()
        self.client.gates["x"] = gate
        pending = self._drag("x", (50, 30), (300, 200))

        second = self.ctl.pointer_down("x", (300, 20))
        self.assertIsNone(second)
        self.assertEqual(self.ctl.state, DragState.IDLE)
        busy = [n for n in self.notifier.pending() if n.level == LEVEL_BUSY]
        self.assertEqual(len(busy), 1)
        self.assertIsInstance(busy[0].error, ConcurrentMutationRejected)
        self.assertEqual(self.store.board.layout(), {"A": ("y",), "B": ("x",)})

        # other items are not blocked
        self.assertIsNotNone(self.ctl.pointer_down("y", (50, 90)))
        self.ctl.cancel("escape")

        gate.set_result(SyncResult(ok=True))
        self.assertEqual((await pending).status, MoveStatus.COMMITTED)
        self.assertEqual(len(self.client.calls), 1)

    async def test_given_blur_mid_drag_then_cancelled_without_mutation(self):
        self.ctl.pointer_down("x", (50, 30))
        self.assertEqual(self.ctl.pointer_move((300, 200)), "B")
        self.ctl.cancel("blur")
        self.assertEqual(self.transitions, [
            (DragState.IDLE, DragState.DRAGGING),
            (DragState.DRAGGING, DragState.CANCELLED),
            (DragState.CANCELLED, DragState.IDLE),
        ])
        self.assertIs(self.store.board, self.board)
        self.assertEqual(self.client.calls, [])
        self.assertIsNone(self.ctl.pointer_up((300, 200)))

    async def test_given_press_without_travel_then_treated_as_click(self):
        self.ctl.pointer_down("x", (50, 30))
        self.assertIsNone(self.ctl.pointer_move((53, 33)))
        self.assertIsNone(self.ctl.pointer_up((54, 34)))
        self.assertEqual(self.transitions[-2:], [
            (DragState.DRAGGING, DragState.CANCELLED),
            (DragState.CANCELLED, DragState.IDLE),
        ])
        self.assertIs(self.store.board, self.board)

    async def test_given_release_far_away_without_move_events_then_dropped(self):
        self.ctl.pointer_down("x", (50, 30))
        pending = self.ctl.pointer_up((300, 200))
        self.assertIsNotNone(pending)
        self.assertEqual((await pending).status, MoveStatus.COMMITTED)
        self.assertEqual(self.store.board.layout(), {"A": ("y",), "B": ("x",)})

    async def test_given_failing_listener_when_cancelling_then_still_back_to_idle(self):
        def explode(old, new):
            if new is DragState.CANCELLED:
                raise ValueError("listener bug")

        self.ctl.subscribe(explode)
        self.ctl.pointer_down("x", (50, 30))
        with self.assertLogs("pipeline_core.drag", level="ERROR"):
            self.ctl.cancel("blur")
        self.assertEqual(self.ctl.state, DragState.IDLE)
        self.assertEqual(self.transitions[-1], (DragState.CANCELLED, DragState.IDLE))
        self.assertIsNotNone(self.ctl.pointer_down("y", (50, 90)))

    async def test_given_active_drag_when_second_pointer_down_then_rejected(self):
        first = self.ctl.pointer_down("x", (50, 30))
        self.assertIsNotNone(first)
        with self.assertLogs("pipeline_core.drag", level="WARNING"):
            self.assertIsNone(self.ctl.pointer_down("y", (50, 90)))
        self.assertIs(self.ctl.session, first)
        self.assertEqual(first.source_stage_id, "A")

    async def test_given_hover_then_highlight_only(self):
        self.ctl.pointer_down("y", (50, 90))
        self.assertEqual(self.ctl.pointer_move((300, 10)), "B")
        self.assertEqual(self.ctl.session.over_stage_id, "B")
        self.assertEqual(self.ctl.pointer_move((100, 100)), "A")
        self.assertIs(self.store.board, self.board)
        self.ctl.cancel()
        self.ctl.cancel()  # idle: nothing to cancel
        self.assertEqual(self.ctl.state, DragState.IDLE)

    def test_given_unknown_item_when_pointer_down_then_stays_idle(self):
        with self.assertLogs("pipeline_core.drag", level="ERROR"):
            self.assertIsNone(self.ctl.pointer_down("ghost", (0, 0)))
        self.assertEqual(self.ctl.state, DragState.IDLE)
        self.assertEqual(self.transitions, [])


if __name__ == "__main__":
    unittest.main()
