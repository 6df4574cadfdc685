#!/usr/bin/env python3
"""
Check a pipeline SQLite store for consistency and summarize it.

- Checks:
  * every item points at an existing stage (or is unassigned)
  * items pointing at inactive stages (they show up as unassigned on the board)
  * the board built from the store satisfies the partition and stage invariants
- Prints a JSON summary with counts and samples

Usage:
  python tools/check_board_db.py data/pipeline.db
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List

# Ensure we can import the package from the repo root
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from pipeline_core import db  # noqa: E402
from pipeline_core.errors import InvariantViolation  # noqa: E402
from pipeline_core.loader import board_from_records  # noqa: E402
from pipeline_core.store import check_invariants  # noqa: E402


def check(db_path: str) -> Dict[str, Any]:
    stages_all = db.load_stages(db_path, include_inactive=True)
    items = db.load_items(db_path)
    active = {s["id"] for s in stages_all if s["isActive"]}
    known = {s["id"] for s in stages_all}

    dangling: List[str] = []
    inactive: List[str] = []
    unassigned = 0
    for it in items:
        sid = it["stageId"]
        if sid is None:
            unassigned += 1
        elif sid not in known:
            dangling.append(it["id"])
        elif sid not in active:
            inactive.append(it["id"])

    board = board_from_records(stages_all, items)
    invariant_error = None
    try:
        check_invariants(board)
    except InvariantViolation as e:
        invariant_error = str(e)

    return {
        "db": db_path,
        "stages": len(stages_all),
        "activeStages": len(active),
        "items": len(items),
        "boardItems": len(board.item_ids()),
        "unassigned": unassigned,
        "danglingCount": len(dangling),
        "danglingSample": dangling[:10],
        "inactiveStageCount": len(inactive),
        "inactiveStageSample": inactive[:10],
        "invariantError": invariant_error,
        "ok": invariant_error is None and not dangling and len(board.item_ids()) == len(items),
    }


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    path = sys.argv[1]
    if not os.path.isfile(path):
        print(json.dumps({"ok": False, "error": f"not found: {path}"}))
        sys.exit(1)
    summary = check(path)
    print(json.dumps(summary, indent=2))
    sys.exit(0 if summary["ok"] else 1)


if __name__ == "__main__":
    main()
