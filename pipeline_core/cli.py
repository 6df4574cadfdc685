from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from . import db
from .config import DEFAULT_DB, LOG_LEVEL, REMOTE_BASE, SYNC_TIMEOUT_S
from .errors import NotFound, TransportFailure
from .logging_config import setup_logging
from .mutation import MoveResult, MoveStatus, StageMutationService
from .notifications import Notification, Notifier
from .store import BoardStateStore
from .sync_client import HttpSyncClient, RemoteSyncClient, SqliteSyncClient
from .view import filter_board

logger = logging.getLogger(__name__)


async def run_move(store: BoardStateStore, client: RemoteSyncClient, item_id: str, to_stage_id: str,
                   notifier: Notifier, timeout: float = SYNC_TIMEOUT_S) -> MoveResult:
    service = StageMutationService(store, client, notifier, timeout=timeout)
    from_stage = store.board.stage_of(item_id)
    return await service.move(item_id, from_stage, to_stage_id)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Pipeline board: inspect a board and move items between stages')
    parser.add_argument('--db', default=DEFAULT_DB, help='SQLite store file path')
    parser.add_argument('--remote', default=REMOTE_BASE, help='Remote store base URL (default: use --db directly)')
    parser.add_argument('--seed-demo', action='store_true', help='Fill an empty store with demo data')
    parser.add_argument('--show', action='store_true', help='Print the board')
    parser.add_argument('--search', default='', help='Only show items matching this text')
    parser.add_argument('--move', nargs=2, metavar=('ITEM', 'STAGE'), help='Move ITEM to STAGE')
    parser.add_argument('--log-level', default=LOG_LEVEL, help='Logging level')
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    if args.seed_demo:
        added = db.seed_demo(args.db)
        print(f"Seeded {added} items." if added else "Store already has data; nothing seeded.")

    client = HttpSyncClient(args.remote) if args.remote else SqliteSyncClient(args.db)
    try:
        board = client.fetch_board()
    except TransportFailure as e:
        print(f"error: could not load board: {e}")
        return 1
    store = BoardStateStore(board)
    logger.info("loaded board: %d stages, %d items", len(board.columns), len(board.item_ids()))

    code = 0
    if args.move:
        item_id, to_stage = args.move
        notifier = Notifier()

        def show_note(note: Notification) -> None:
            print(f"[{note.level}] {note.message}")

        notifier.subscribe(show_note)
        try:
            result = asyncio.run(run_move(store, client, item_id, to_stage, notifier))
        except NotFound as e:
            print(f"error: {e}")
            return 2
        print(f"{result.item_id}: {result.from_stage_id} -> {result.to_stage_id} [{result.status.value}]")
        if result.status is MoveStatus.INVALID:
            print(f"error: {result.error}")
        code = 0 if result.ok else 3

    if args.show or args.move or not args.seed_demo:
        print(filter_board(store.board, args.search).pretty())
    return code


if __name__ == '__main__':
    raise SystemExit(main())
