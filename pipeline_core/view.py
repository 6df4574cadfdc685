from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from .model import Board, Column, Item

ItemPredicate = Callable[[Item], bool]


def item_matches(item: Item, search: str) -> bool:
    """Case-insensitive substring match over the id and string attributes."""
    needle = search.strip().lower()
    if not needle:
        return True
    if needle in item.id.lower():
        return True
    return any(isinstance(v, str) and needle in v.lower() for v in item.attrs.values())


def filter_board(board: Board, search: str = "", predicate: Optional[ItemPredicate] = None) -> Board:
    """
    Display-only copy of the board narrowed by search text and/or a predicate.

    Every column survives (possibly empty) so the result still lines up with
    the real board; the input board is not touched.
    """
    def keep(it: Item) -> bool:
        return item_matches(it, search) and (predicate is None or predicate(it))

    return Board(tuple(Column(c.stage, tuple(it for it in c.items if keep(it))) for c in board.columns))


def board_to_json(board: Board) -> Dict[str, Any]:
    return {
        "stages": [
            {
                "id": c.stage.id,
                "title": c.stage.title,
                "orderIndex": c.stage.order_index,
                "color": c.stage.color_hint,
                "items": [{"id": it.id, "stageId": it.stage_id, "attrs": dict(it.attrs)} for it in c.items],
            }
            for c in board.columns
        ]
    }
