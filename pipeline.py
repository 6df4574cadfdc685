from __future__ import annotations

# Facade module that re-exports the board engine.
# Single-responsibility modules live under pipeline_core/*.

from pipeline_core.model import (  # noqa: F401
    Board,
    Column,
    Item,
    Stage,
    UNASSIGNED_STAGE_ID,
    unassigned_stage,
)
from pipeline_core.errors import (  # noqa: F401
    BoardError,
    ConcurrentMutationRejected,
    InvariantViolation,
    NotFound,
    TransportFailure,
)
from pipeline_core.store import (  # noqa: F401
    BoardStateStore,
    MutationRecord,
    apply_move,
    check_invariants,
    revert_move,
)
from pipeline_core.hittest import (  # noqa: F401
    DropTarget,
    DropTargetRegistry,
    KIND_ITEM,
    KIND_STAGE,
    Rect,
    closest_corners,
    corner_distance,
    pointer_within,
    resolve,
)
from pipeline_core.notifications import LEVEL_BUSY, LEVEL_ERROR, Notification, Notifier  # noqa: F401
from pipeline_core.sync_client import HttpSyncClient, RemoteSyncClient, SqliteSyncClient, SyncResult  # noqa: F401
from pipeline_core.mutation import MoveResult, MoveStatus, StageMutationService  # noqa: F401
from pipeline_core.drag import DragSession, DragSessionController, DragState  # noqa: F401
from pipeline_core.loader import board_from_records, remote_stage_id  # noqa: F401
from pipeline_core.view import board_to_json, filter_board, item_matches  # noqa: F401
