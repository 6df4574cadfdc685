from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import NotFound

UNASSIGNED_STAGE_ID = "unassigned"
UNASSIGNED_TITLE = "Unassigned"
UNASSIGNED_COLOR = "#6B7280"
DEFAULT_COLOR = "#3B82F6"


@dataclass(frozen=True)
class Stage:
    """A named, ordered bucket of the pipeline."""
    id: str
    title: str
    order_index: int = 0
    color_hint: str = DEFAULT_COLOR

    @property
    def is_unassigned(self) -> bool:
        return self.id == UNASSIGNED_STAGE_ID


def unassigned_stage() -> Stage:
    """The synthetic stage that holds items with no stage."""
    return Stage(id=UNASSIGNED_STAGE_ID, title=UNASSIGNED_TITLE, order_index=-1, color_hint=UNASSIGNED_COLOR)


@dataclass(frozen=True)
class Item:
    """A record on the board. Only id and stage_id matter to the engine."""
    id: str
    stage_id: str
    attrs: Dict[str, Any] = field(default_factory=dict, compare=False)

    def with_stage(self, stage_id: str) -> 'Item':
        return Item(self.id, stage_id, self.attrs)

    @property
    def title(self) -> str:
        return str(self.attrs.get("title") or self.id)


@dataclass(frozen=True)
class Column:
    stage: Stage
    items: Tuple[Item, ...] = ()

    @property
    def stage_id(self) -> str:
        return self.stage.id

    def item_ids(self) -> Tuple[str, ...]:
        return tuple(it.id for it in self.items)


@dataclass(frozen=True)
class Board:
    """Immutable partition of items into ordered stage columns.

    Invariants (checked by store.check_invariants):
    - every item appears in exactly one column.
    - item.stage_id equals the id of the column holding it.
    """
    columns: Tuple[Column, ...] = ()

    @classmethod
    def build(cls, stages: Iterable[Stage], items: Iterable[Item] = ()) -> 'Board':
        """Builds a board by placing items (in order) into the column named by their stage_id."""
        stage_list = list(stages)
        buckets: Dict[str, List[Item]] = {s.id: [] for s in stage_list}
        for it in items:
            if it.stage_id not in buckets:
                raise NotFound("stage", it.stage_id)
            buckets[it.stage_id].append(it)
        return cls(tuple(Column(s, tuple(buckets[s.id])) for s in stage_list))

    def stages(self) -> Tuple[Stage, ...]:
        return tuple(c.stage for c in self.columns)

    def stage_ids(self) -> Tuple[str, ...]:
        return tuple(c.stage.id for c in self.columns)

    def has_stage(self, stage_id: str) -> bool:
        return any(c.stage.id == stage_id for c in self.columns)

    def column_index(self, stage_id: str) -> int:
        for i, c in enumerate(self.columns):
            if c.stage.id == stage_id:
                return i
        raise NotFound("stage", stage_id)

    def column(self, stage_id: str) -> Column:
        return self.columns[self.column_index(stage_id)]

    def items(self) -> List[Item]:
        return [it for c in self.columns for it in c.items]

    def item_ids(self) -> List[str]:
        return [it.id for it in self.items()]

    def locate(self, item_id: str) -> Tuple[int, int]:
        """Returns (column index, position in column) of an item."""
        for ci, c in enumerate(self.columns):
            for pos, it in enumerate(c.items):
                if it.id == item_id:
                    return ci, pos
        raise NotFound("item", item_id)

    def find_item(self, item_id: str) -> Optional[Item]:
        for c in self.columns:
            for it in c.items:
                if it.id == item_id:
                    return it
        return None

    def stage_of(self, item_id: str) -> str:
        ci, _ = self.locate(item_id)
        return self.columns[ci].stage.id

    def replace_column(self, index: int, column: Column) -> 'Board':
        cols = list(self.columns)
        cols[index] = column
        return Board(tuple(cols))

    def layout(self) -> Dict[str, Tuple[str, ...]]:
        """Stage id -> ordered item ids; handy for comparisons and logging."""
        return {c.stage.id: c.item_ids() for c in self.columns}

    def pretty(self) -> str:
        """Generates a human-readable string representation of the board."""
        lines: List[str] = []
        for c in self.columns:
            names = ", ".join(it.title for it in c.items) or "(empty)"
            lines.append(f"{c.stage.title} [{len(c.items)}]: {names}")
        return "\n".join(lines)
