from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .model import Board, Column, DEFAULT_COLOR, Item, Stage, UNASSIGNED_STAGE_ID, unassigned_stage


def stage_from_record(rec: Mapping[str, Any]) -> Stage:
    return Stage(
        id=str(rec["id"]),
        title=str(rec.get("title") or rec["id"]),
        order_index=int(rec.get("orderIndex", 0) or 0),
        color_hint=str(rec.get("color") or DEFAULT_COLOR),
    )


def item_from_record(rec: Mapping[str, Any], stage_id: str) -> Item:
    attrs: Dict[str, Any] = dict(rec.get("attrs") or {})
    if rec.get("title") is not None:
        attrs.setdefault("title", rec["title"])
    return Item(id=str(rec["id"]), stage_id=stage_id, attrs=attrs)


def board_from_records(stages: Iterable[Mapping[str, Any]], items: Iterable[Mapping[str, Any]]) -> Board:
    """
    Builds the initial Board from remote rows.

    Inactive stages are dropped and the rest ordered by orderIndex. Items keep
    the remote order. Items without a stage, or pointing at a stage that is not
    on the board, land in the synthetic unassigned stage, which is only added
    (as the first column) when it holds something.
    """
    active = [s for s in stages if s.get("isActive", True)]
    stage_list = sorted((stage_from_record(s) for s in active), key=lambda s: (s.order_index, s.id))
    known = {s.id for s in stage_list}

    buckets: Dict[str, List[Item]] = {s.id: [] for s in stage_list}
    orphans: List[Item] = []
    for rec in items:
        sid: Optional[str] = rec.get("stageId")
        if sid is not None and str(sid) in known:
            buckets[str(sid)].append(item_from_record(rec, str(sid)))
        else:
            orphans.append(item_from_record(rec, UNASSIGNED_STAGE_ID))

    columns = [Column(s, tuple(buckets[s.id])) for s in stage_list]
    if orphans:
        columns.insert(0, Column(unassigned_stage(), tuple(orphans)))
    return Board(tuple(columns))


def remote_stage_id(stage_id: str) -> Optional[str]:
    """The unassigned sentinel is stored remotely as null."""
    return None if stage_id == UNASSIGNED_STAGE_ID else stage_id
