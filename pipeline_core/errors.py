from __future__ import annotations

from typing import Optional


class BoardError(Exception):
    """Base class for every error raised by the board engine."""


class NotFound(BoardError):
    """An unknown item or stage was referenced."""

    def __init__(self, kind: str, ident: Optional[str]) -> None:
        super().__init__(f"{kind} not found: {ident!r}")
        self.kind = kind
        self.ident = ident


class InvariantViolation(BoardError):
    """A board failed the partition or stage-consistency check."""


class TransportFailure(BoardError):
    """The remote sync call did not complete successfully."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ConcurrentMutationRejected(BoardError):
    """A drag or move was attempted on an item that already has a mutation in flight."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id!r} is still being updated")
        self.item_id = item_id
