from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

Point = Tuple[float, float]

KIND_STAGE = "stage"
KIND_ITEM = "item"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned bounding box in screen coordinates (y grows downwards)."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def at(cls, p: Point) -> 'Rect':
        """A zero-size box at a point."""
        return cls(p[0], p[1], 0.0, 0.0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, p: Point) -> bool:
        px, py = p
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def corners(self) -> Tuple[Point, Point, Point, Point]:
        return (
            (self.x, self.y),
            (self.right, self.y),
            (self.x, self.bottom),
            (self.right, self.bottom),
        )

    def centered_on(self, p: Point) -> 'Rect':
        return Rect(p[0] - self.width / 2.0, p[1] - self.height / 2.0, self.width, self.height)


@dataclass(frozen=True)
class DropTarget:
    """A region that can receive a drop; either a stage container or an item card."""
    id: str
    stage_id: str
    rect: Rect
    kind: str = KIND_STAGE


def pointer_within(pointer: Point, targets: Iterable[DropTarget]) -> List[DropTarget]:
    """All targets whose rect contains the pointer, in registration order."""
    return [t for t in targets if t.rect.contains(pointer)]


def corner_distance(a: Rect, b: Rect) -> float:
    """Mean distance between corresponding corners of two boxes."""
    total = 0.0
    for (ax, ay), (bx, by) in zip(a.corners(), b.corners()):
        total += math.hypot(ax - bx, ay - by)
    return total / 4.0


def closest_corners(probe: Rect, targets: Iterable[DropTarget]) -> Optional[DropTarget]:
    """The target whose corners are nearest the probe's; ties keep the first registered."""
    best: Optional[DropTarget] = None
    best_d = math.inf
    for t in targets:
        d = corner_distance(probe, t.rect)
        if d < best_d:
            best, best_d = t, d
    return best


def resolve(pointer: Point, targets: Sequence[DropTarget], active_rect: Optional[Rect] = None) -> Optional[str]:
    """
    Maps a pointer position to exactly one stage id, or None.

    1. Pointer containment: first registered target containing the pointer.
    2. Closest corners: catches columns with no content height to hit.
    3. No targets: None.
    """
    if not targets:
        return None
    hits = pointer_within(pointer, targets)
    if hits:
        return hits[0].stage_id
    probe = active_rect.centered_on(pointer) if active_rect is not None else Rect.at(pointer)
    nearest = closest_corners(probe, targets)
    return nearest.stage_id if nearest is not None else None


class DropTargetRegistry:
    """Keeps the current drop targets in registration order."""

    def __init__(self) -> None:
        self._targets: Dict[str, DropTarget] = {}

    def register(self, target: DropTarget) -> None:
        # dicts keep insertion order; re-registering only updates geometry
        self._targets[target.id] = target

    def register_stage(self, stage_id: str, rect: Rect) -> None:
        self.register(DropTarget(id=f"stage:{stage_id}", stage_id=stage_id, rect=rect, kind=KIND_STAGE))

    def register_item(self, item_id: str, stage_id: str, rect: Rect) -> None:
        self.register(DropTarget(id=f"item:{item_id}", stage_id=stage_id, rect=rect, kind=KIND_ITEM))

    def unregister(self, target_id: str) -> None:
        self._targets.pop(target_id, None)

    def unregister_stage(self, stage_id: str) -> None:
        for key in [k for k, t in self._targets.items() if t.stage_id == stage_id]:
            del self._targets[key]

    def clear(self) -> None:
        self._targets.clear()

    def targets(self) -> List[DropTarget]:
        return list(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

    def resolve(self, pointer: Point, active_rect: Optional[Rect] = None) -> Optional[str]:
        return resolve(pointer, self.targets(), active_rect)
