from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from .config import SYNC_TIMEOUT_S
from .errors import BoardError, ConcurrentMutationRejected, NotFound, TransportFailure
from .loader import remote_stage_id
from .notifications import LEVEL_BUSY, LEVEL_ERROR, Notifier
from .store import BoardStateStore, MutationRecord, revert_move
from .sync_client import RemoteSyncClient

logger = logging.getLogger(__name__)


class MoveStatus(str, enum.Enum):
    COMMITTED = "committed"
    REVERTED = "reverted"
    REJECTED = "rejected"
    INVALID = "invalid"
    NOOP = "noop"


@dataclass(frozen=True)
class MoveResult:
    item_id: str
    from_stage_id: str
    to_stage_id: str
    status: MoveStatus
    error: Optional[BoardError] = None
    record: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in (MoveStatus.COMMITTED, MoveStatus.NOOP)


class StageMutationService:
    """
    Optimistic stage changes reconciled with the remote store.

    The board is updated before the remote call starts; if the call fails the
    item goes back to exactly where it was. At most one mutation per item is in
    flight; different items do not wait on each other.
    """

    def __init__(self, store: BoardStateStore, client: RemoteSyncClient,
                 notifier: Optional[Notifier] = None, timeout: float = SYNC_TIMEOUT_S) -> None:
        self.store = store
        self.client = client
        self.notifier = notifier if notifier is not None else Notifier()
        self.timeout = timeout
        self._in_flight: Dict[str, MutationRecord] = {}

    def is_in_flight(self, item_id: str) -> bool:
        return item_id in self._in_flight

    def in_flight(self) -> FrozenSet[str]:
        return frozenset(self._in_flight)

    def reject_busy(self, item_id: str) -> ConcurrentMutationRejected:
        err = ConcurrentMutationRejected(item_id)
        logger.info("refusing %s: mutation already in flight", item_id)
        self.notifier.notify(LEVEL_BUSY, str(err), item_id=item_id, error=err)
        return err

    def dispatch(self, item_id: str, from_stage_id: str, to_stage_id: str) -> 'asyncio.Future[MoveResult]':
        """
        Applies the optimistic move now and returns a future for the remote outcome.

        Must be called from within the running event loop.
        """
        loop = asyncio.get_running_loop()

        def done(status: MoveStatus, error: Optional[BoardError] = None) -> 'asyncio.Future[MoveResult]':
            fut: 'asyncio.Future[MoveResult]' = loop.create_future()
            fut.set_result(MoveResult(item_id, from_stage_id, to_stage_id, status, error))
            return fut

        if item_id in self._in_flight:
            return done(MoveStatus.REJECTED, self.reject_busy(item_id))

        snapshot = self.store.snapshot()
        try:
            ci, pos = snapshot.locate(item_id)
            current = snapshot.columns[ci].stage.id
            if current != from_stage_id:
                raise NotFound("item", f"{item_id} in stage {from_stage_id}")
            if to_stage_id == from_stage_id:
                return done(MoveStatus.NOOP)
            self.store.move_item(item_id, to_stage_id)
        except NotFound as e:
            logger.error("invalid move %s %s -> %s: %s", item_id, from_stage_id, to_stage_id, e)
            return done(MoveStatus.INVALID, e)

        record = MutationRecord(item_id, from_stage_id, to_stage_id, snapshot, pos)
        self._in_flight[item_id] = record
        logger.info("moved %s %s -> %s (pending)", item_id, from_stage_id, to_stage_id)
        task = loop.create_task(self._reconcile(record))
        task.add_done_callback(lambda t: self._on_done(t, record))
        return task

    async def move(self, item_id: str, from_stage_id: str, to_stage_id: str) -> MoveResult:
        return await self.dispatch(item_id, from_stage_id, to_stage_id)

    async def _reconcile(self, record: MutationRecord) -> MoveResult:
        try:
            try:
                res = await asyncio.wait_for(
                    self.client.update_stage(
                        record.item_id,
                        remote_stage_id(record.to_stage_id),
                        remote_stage_id(record.from_stage_id),
                    ),
                    timeout=self.timeout,
                )
                if not res.ok:
                    raise TransportFailure(res.message or "remote store rejected the update")
            except asyncio.TimeoutError:
                err = TransportFailure(f"remote update timed out after {self.timeout:g}s")
                return self._revert(record, err)
            except TransportFailure as e:
                return self._revert(record, e)
            except asyncio.CancelledError:
                self._revert(record, TransportFailure("update cancelled"), notify=False)
                raise
            except Exception as e:
                logger.exception("remote update of %s raised", record.item_id)
                return self._revert(record, TransportFailure(f"remote update failed: {e}"))
            logger.info("committed %s -> %s", record.item_id, record.to_stage_id)
            return MoveResult(record.item_id, record.from_stage_id, record.to_stage_id,
                              MoveStatus.COMMITTED, record=dict(res.record))
        finally:
            self._in_flight.pop(record.item_id, None)

    def _on_done(self, task: 'asyncio.Task[MoveResult]', record: MutationRecord) -> None:
        # a task cancelled before its first step never reaches _reconcile's handlers
        if task.cancelled() and self._in_flight.get(record.item_id) is record:
            self._in_flight.pop(record.item_id, None)
            self._revert(record, TransportFailure("update cancelled"), notify=False)

    def _revert(self, record: MutationRecord, err: TransportFailure, notify: bool = True) -> MoveResult:
        self.store.restore(revert_move(self.store.snapshot(), record))
        logger.warning("reverted %s to %s: %s", record.item_id, record.from_stage_id, err)
        if notify:
            self.notifier.notify(LEVEL_ERROR, f"Could not move item: {err}", item_id=record.item_id, error=err)
        return MoveResult(record.item_id, record.from_stage_id, record.to_stage_id, MoveStatus.REVERTED, err)
