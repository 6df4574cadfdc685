from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import NotFound
from .config import DB_DIR

DEMO_STAGES = [
    ("new", "New", 0, "#3B82F6"),
    ("contacted", "Contacted", 1, "#8B5CF6"),
    ("qualified", "Qualified", 2, "#F59E0B"),
    ("proposal", "Proposal", 3, "#EC4899"),
    ("won", "Won", 4, "#10B981"),
    ("lost", "Lost", 5, "#EF4444"),
]

DEMO_ITEMS = [
    ("lead-1", "new", "Ana Torres", "high"),
    ("lead-2", "new", "Studio Norte", "medium"),
    ("lead-3", "contacted", "Luis Pardo", "low"),
    ("lead-4", "qualified", "Foto Arte", "high"),
    ("lead-5", None, "Marina Vela", "medium"),
    ("lead-6", "won", "Casa Lumen", "low"),
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


def _ensure_db_dir(db_path: str) -> None:
    """Ensures the directory for the SQLite DB exists before connecting."""
    directory = os.path.dirname(db_path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


def _resolve_db_path(db_path: str) -> str:
    """Resolves a potentially unwritable DB path to a writable one, creating the directory if needed."""
    try:
        _ensure_db_dir(db_path)
        return db_path
    except PermissionError:
        pass
    candidates = [
        DB_DIR,
        os.path.join(os.getcwd(), 'data'),
        '/tmp',
    ]
    base = os.path.basename(db_path) or 'pipeline.db'
    for d in candidates:
        if not d:
            continue
        try:
            os.makedirs(d, exist_ok=True)
            return os.path.join(d, base)
        except OSError:
            continue
    return base


def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(db_path))
    conn.row_factory = sqlite3.Row
    _ensure_db(conn)
    return conn


def _ensure_db(conn: sqlite3.Connection) -> None:
    """Creates the stage, item and audit tables if missing."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS stages (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            order_index INTEGER NOT NULL DEFAULT 0,
            color TEXT,
            is_active INTEGER NOT NULL DEFAULT 1
        );
        CREATE TABLE IF NOT EXISTS items (
            id TEXT PRIMARY KEY,
            stage_id TEXT REFERENCES stages(id),
            title TEXT NOT NULL,
            attrs TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_items_stage ON items(stage_id);
        CREATE TABLE IF NOT EXISTS stage_changes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            item_id TEXT NOT NULL,
            from_stage_id TEXT,
            to_stage_id TEXT,
            changed_at TEXT NOT NULL
        );
        """
    )
    conn.commit()


def _stage_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "title": row["title"],
        "orderIndex": int(row["order_index"]),
        "color": row["color"],
        "isActive": bool(row["is_active"]),
    }


def _item_row(row: sqlite3.Row) -> Dict[str, Any]:
    try:
        attrs = json.loads(row["attrs"] or "{}")
    except ValueError:
        attrs = {}
    return {
        "id": row["id"],
        "stageId": row["stage_id"],
        "title": row["title"],
        "attrs": attrs,
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def init_db(db_path: str) -> None:
    conn = _connect(db_path)
    conn.close()


def add_stage(db_path: str, stage_id: str, title: str, order_index: int,
              color: Optional[str] = None, active: bool = True) -> None:
    conn = _connect(db_path)
    try:
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO stages (id, title, order_index, color, is_active) VALUES (?, ?, ?, ?, ?)",
                (stage_id, title, order_index, color, 1 if active else 0),
            )
    finally:
        conn.close()


def add_item(db_path: str, item_id: str, stage_id: Optional[str], title: str,
             attrs: Optional[Dict[str, Any]] = None, created_at: Optional[str] = None) -> None:
    ts = created_at or _now()
    conn = _connect(db_path)
    try:
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO items (id, stage_id, title, attrs, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                (item_id, stage_id, title, json.dumps(attrs or {}, ensure_ascii=False), ts, ts),
            )
    finally:
        conn.close()


def seed_demo(db_path: str) -> int:
    """Fills an empty store with demo stages and items. Returns the number of items added."""
    conn = _connect(db_path)
    try:
        if conn.execute("SELECT COUNT(*) FROM stages").fetchone()[0]:
            return 0
    finally:
        conn.close()
    for stage_id, title, order_index, color in DEMO_STAGES:
        add_stage(db_path, stage_id, title, order_index, color)
    # created_at descending order is display order, so stamp oldest last
    for n, (item_id, stage_id, title, priority) in enumerate(DEMO_ITEMS):
        stamp = f"2024-01-{len(DEMO_ITEMS) - n:02d}T09:00:00+00:00"
        add_item(db_path, item_id, stage_id, title, {"title": title, "priority": priority}, created_at=stamp)
    return len(DEMO_ITEMS)


def load_stages(db_path: str, include_inactive: bool = False) -> List[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        sql = "SELECT * FROM stages"
        if not include_inactive:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY order_index, id"
        return [_stage_row(r) for r in conn.execute(sql).fetchall()]
    finally:
        conn.close()


def load_items(db_path: str) -> List[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        rows = conn.execute("SELECT * FROM items ORDER BY created_at DESC, id").fetchall()
        return [_item_row(r) for r in rows]
    finally:
        conn.close()


def update_item_stage(db_path: str, item_id: str, to_stage_id: Optional[str],
                      from_stage_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Persists a stage change and records it in the audit table.

    to_stage_id None means unassigned. from_stage_id is only recorded.
    Raises NotFound for an unknown item or an unknown/inactive stage.
    """
    conn = _connect(db_path)
    try:
        if conn.execute("SELECT 1 FROM items WHERE id = ?", (item_id,)).fetchone() is None:
            raise NotFound("item", item_id)
        if to_stage_id is not None:
            row = conn.execute("SELECT 1 FROM stages WHERE id = ? AND is_active = 1", (to_stage_id,)).fetchone()
            if row is None:
                raise NotFound("stage", to_stage_id)
        ts = _now()
        with conn:
            conn.execute("UPDATE items SET stage_id = ?, updated_at = ? WHERE id = ?", (to_stage_id, ts, item_id))
            conn.execute(
                "INSERT INTO stage_changes (item_id, from_stage_id, to_stage_id, changed_at) VALUES (?, ?, ?, ?)",
                (item_id, from_stage_id, to_stage_id, ts),
            )
        return _item_row(conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone())
    finally:
        conn.close()


def stage_history(db_path: str, item_id: str) -> List[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            "SELECT from_stage_id, to_stage_id, changed_at FROM stage_changes WHERE item_id = ? ORDER BY id",
            (item_id,),
        ).fetchall()
        return [{"from": r["from_stage_id"], "to": r["to_stage_id"], "at": r["changed_at"]} for r in rows]
    finally:
        conn.close()
