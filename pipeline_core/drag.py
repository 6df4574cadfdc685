from __future__ import annotations

import asyncio
import enum
import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import DRAG_ACTIVATION_PX
from .errors import NotFound
from .hittest import DropTargetRegistry, Point, Rect
from .mutation import MoveResult, StageMutationService
from .store import BoardStateStore

logger = logging.getLogger(__name__)


class DragState(str, enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


@dataclass
class DragSession:
    """One drag gesture; lives from pointer-down to pointer-up or cancel."""
    active_item_id: str
    source_stage_id: str
    origin: Point
    pointer: Point
    active_rect: Optional[Rect] = None
    over_stage_id: Optional[str] = None
    activated: bool = False


TransitionListener = Callable[[DragState, DragState], None]


class DragSessionController:
    """
    State machine for a single pointer drag.

    IDLE -> DRAGGING -> DROPPED | CANCELLED -> IDLE. The two end states are
    transient and published to listeners before falling back to IDLE.
    """

    def __init__(self, store: BoardStateStore, service: StageMutationService,
                 targets: DropTargetRegistry, activation_distance: float = DRAG_ACTIVATION_PX) -> None:
        self.store = store
        self.service = service
        self.targets = targets
        self.activation_distance = activation_distance
        self._state = DragState.IDLE
        self._session: Optional[DragSession] = None
        self._listeners: List[TransitionListener] = []

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _go(self, new_state: DragState) -> None:
        old, self._state = self._state, new_state
        for listener in list(self._listeners):
            try:
                listener(old, new_state)
            except Exception:
                logger.exception("drag listener %r failed on %s -> %s", listener, old.value, new_state.value)

    def _finish(self, end_state: DragState) -> None:
        self._session = None
        self._go(end_state)
        self._go(DragState.IDLE)

    def pointer_down(self, item_id: str, pos: Point, active_rect: Optional[Rect] = None) -> Optional[DragSession]:
        if self._state is not DragState.IDLE:
            logger.warning("pointer down on %s ignored: a drag is already active", item_id)
            return None
        if self.service.is_in_flight(item_id):
            self.service.reject_busy(item_id)
            return None
        try:
            source = self.store.board.stage_of(item_id)
        except NotFound:
            logger.error("pointer down on unknown item %s", item_id)
            return None
        self._session = DragSession(item_id, source, pos, pos, active_rect)
        if self.activation_distance <= 0:
            self._session.activated = True
        self._go(DragState.DRAGGING)
        return self._session

    def _track(self, s: DragSession, pos: Point) -> bool:
        """Records the pointer; activates the session once it has travelled far enough."""
        s.pointer = pos
        if not s.activated:
            s.activated = math.hypot(pos[0] - s.origin[0], pos[1] - s.origin[1]) >= self.activation_distance
        return s.activated

    def pointer_move(self, pos: Point) -> Optional[str]:
        """Tracks the pointer and returns the stage to highlight, if any."""
        s = self._session
        if self._state is not DragState.DRAGGING or s is None:
            return None
        if not self._track(s, pos):
            return None
        s.over_stage_id = self.targets.resolve(pos, s.active_rect)
        return s.over_stage_id

    def pointer_up(self, pos: Point) -> Optional['asyncio.Future[MoveResult]']:
        s = self._session
        if self._state is not DragState.DRAGGING or s is None:
            return None
        if not self._track(s, pos):
            # press and release without travel is a click, not a drop
            self._finish(DragState.CANCELLED)
            return None
        target = self.targets.resolve(pos, s.active_rect)
        pending: Optional['asyncio.Future[MoveResult]'] = None
        try:
            if target is None or target == s.source_stage_id:
                logger.debug("drop of %s is a no-op (target %s)", s.active_item_id, target)
            else:
                pending = self.service.dispatch(s.active_item_id, s.source_stage_id, target)
        finally:
            self._finish(DragState.DROPPED)
        return pending

    def cancel(self, reason: str = "cancel") -> None:
        """Pointer capture lost (blur, Escape, ...). Discards the session."""
        if self._state is not DragState.DRAGGING:
            return
        logger.debug("drag of %s cancelled: %s", self._session.active_item_id if self._session else None, reason)
        self._finish(DragState.CANCELLED)
