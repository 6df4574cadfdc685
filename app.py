from __future__ import annotations

import os
import sys
from typing import Any

from flask import Flask, jsonify, request

# Ensure package imports work when executed directly from the repo root
if __package__ in (None, ""):
    sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from pipeline_core import db as store_db
from pipeline_core.config import DEFAULT_DB
from pipeline_core.errors import NotFound
from pipeline_core.loader import board_from_records
from pipeline_core.view import board_to_json

app = Flask(__name__)
app.config.setdefault("PIPELINE_DB", DEFAULT_DB)


def _db_path() -> str:
    return str(app.config["PIPELINE_DB"])


# ---------- Remote store API (consumed by HttpSyncClient) ----------

@app.get("/api/board")
def api_board() -> Any:
    path = _db_path()
    return jsonify({
        "ok": True,
        "stages": store_db.load_stages(path),
        "items": store_db.load_items(path),
    })


@app.get("/api/board/view")
def api_board_view() -> Any:
    # Same data grouped into columns the way the engine sees it
    path = _db_path()
    board = board_from_records(store_db.load_stages(path), store_db.load_items(path))
    return jsonify({"ok": True, **board_to_json(board)})


@app.put("/api/items/<item_id>")
def api_update_item_stage(item_id: str) -> Any:
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict) or "stageId" not in body:
        return jsonify({"ok": False, "error": "stageId required"}), 400
    to_stage = body.get("stageId")
    old_stage = body.get("oldStageId")
    if to_stage is not None and not isinstance(to_stage, str):
        return jsonify({"ok": False, "error": "stageId must be a string or null"}), 400
    try:
        item = store_db.update_item_stage(_db_path(), item_id, to_stage, old_stage)
    except NotFound as e:
        if e.kind == "item":
            return jsonify({"ok": False, "error": f"Item {item_id} not found"}), 404
        return jsonify({"ok": False, "error": f"Invalid stage: {to_stage}"}), 400
    return jsonify({"ok": True, "item": item})


@app.get("/api/items/<item_id>/history")
def api_item_history(item_id: str) -> Any:
    return jsonify({"ok": True, "history": store_db.stage_history(_db_path(), item_id)})


if __name__ == "__main__":
    store_db.init_db(_db_path())
    app.run(host="127.0.0.1", port=int(os.getenv("PORT", "5000")), debug=False)
