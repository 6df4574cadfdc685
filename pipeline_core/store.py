from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Set

from .errors import InvariantViolation, NotFound
from .model import Board, Column

logger = logging.getLogger(__name__)

BoardListener = Callable[[Board], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class MutationRecord:
    """Everything needed to undo one optimistic move."""
    item_id: str
    from_stage_id: str
    to_stage_id: str
    board_snapshot_before_move: Board
    from_position: int


def check_invariants(board: Board) -> None:
    """Raises InvariantViolation unless every item sits in exactly one column that matches its stage_id."""
    seen_stages: Set[str] = set()
    seen_items: Set[str] = set()
    for col in board.columns:
        if col.stage.id in seen_stages:
            raise InvariantViolation(f"duplicate stage {col.stage.id!r}")
        seen_stages.add(col.stage.id)
        for it in col.items:
            if it.id in seen_items:
                raise InvariantViolation(f"item {it.id!r} appears in more than one place")
            seen_items.add(it.id)
            if it.stage_id != col.stage.id:
                raise InvariantViolation(
                    f"item {it.id!r} says stage {it.stage_id!r} but sits in {col.stage.id!r}"
                )


def apply_move(board: Board, item_id: str, to_stage_id: str) -> Board:
    """Returns a new board with the item appended to the end of the target stage."""
    src_idx, pos = board.locate(item_id)
    dst_idx = board.column_index(to_stage_id)
    if src_idx == dst_idx:
        return board
    src = board.columns[src_idx]
    dst = board.columns[dst_idx]
    moved = src.items[pos].with_stage(to_stage_id)
    out = board.replace_column(src_idx, Column(src.stage, src.items[:pos] + src.items[pos + 1:]))
    return out.replace_column(dst_idx, Column(dst.stage, dst.items + (moved,)))


def revert_move(board: Board, record: MutationRecord) -> Board:
    """
    Puts the item back at its original stage and position.

    Other items may have moved while the call was in flight, so the item is
    reinserted just before the first item that followed it in the snapshot and
    is still in that stage. With no interleaved moves the result equals the
    snapshot exactly.
    """
    snap_col = record.board_snapshot_before_move.column(record.from_stage_id)
    followers = [it.id for it in snap_col.items[record.from_position + 1:]]

    cur_idx, cur_pos = board.locate(record.item_id)
    cur = board.columns[cur_idx]
    item = cur.items[cur_pos].with_stage(record.from_stage_id)
    out = board.replace_column(cur_idx, Column(cur.stage, cur.items[:cur_pos] + cur.items[cur_pos + 1:]))

    home_idx = out.column_index(record.from_stage_id)
    home = out.columns[home_idx]
    ids = home.item_ids()
    insert_at = len(home.items)
    for follower in followers:
        if follower in ids:
            insert_at = ids.index(follower)
            break
    items = home.items[:insert_at] + (item,) + home.items[insert_at:]
    return out.replace_column(home_idx, Column(home.stage, items))


class BoardStateStore:
    """Owns the current Board. Only move_item and restore change it."""

    def __init__(self, board: Board) -> None:
        check_invariants(board)
        self._board = board
        self._listeners: List[BoardListener] = []

    @property
    def board(self) -> Board:
        return self._board

    def snapshot(self) -> Board:
        # Boards are immutable values, so the current one is already a snapshot.
        return self._board

    def subscribe(self, listener: BoardListener) -> Unsubscribe:
        self._listeners.append(listener)
        active = [True]

        def unsubscribe() -> None:
            if active[0]:
                active[0] = False
                self._listeners.remove(listener)

        return unsubscribe

    def move_item(self, item_id: str, to_stage_id: str) -> Board:
        if not self._board.has_stage(to_stage_id):
            raise NotFound("stage", to_stage_id)
        new_board = apply_move(self._board, item_id, to_stage_id)
        if new_board is self._board:
            return self._board
        self._install(new_board)
        logger.debug("moved %s -> %s", item_id, to_stage_id)
        return new_board

    def restore(self, snapshot: Board) -> None:
        self._install(snapshot)
        logger.debug("board restored from snapshot")

    def _install(self, board: Board) -> None:
        check_invariants(board)
        self._board = board
        for listener in list(self._listeners):
            try:
                listener(board)
            except Exception:
                logger.exception("board listener %r failed", listener)
