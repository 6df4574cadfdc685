from __future__ import annotations

import asyncio
import http.client
import json
import logging
import sqlite3
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from . import db
from .config import SYNC_TIMEOUT_S
from .errors import NotFound, TransportFailure
from .loader import board_from_records
from .model import Board

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one remote stage update."""
    ok: bool
    record: Dict[str, Any] = field(default_factory=dict)
    message: str = ""


class RemoteSyncClient:
    """
    Interface of the remote persistence call.

    update_stage takes remote stage ids (None = unassigned). It returns a
    SyncResult, or raises TransportFailure when the call could not complete.
    """

    async def update_stage(self, item_id: str, to_stage_id: Optional[str],
                           from_stage_id: Optional[str]) -> SyncResult:
        raise NotImplementedError


class HttpSyncClient(RemoteSyncClient):
    """Talks JSON to the remote store API (see app.py)."""

    def __init__(self, base_url: str, timeout: float = SYNC_TIMEOUT_S) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        logger.debug("%s %s%s", method, self.base_url, path)
        data = json.dumps(payload).encode() if payload is not None else None
        req = urllib.request.Request(
            self.base_url + path,
            data=data,
            method=method,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode()
        except urllib.error.HTTPError as e:
            body = e.read().decode(errors="replace") if e.fp is not None else ""
            try:
                parsed = json.loads(body)
            except ValueError:
                parsed = None
            err = parsed.get("error") if isinstance(parsed, dict) else None
            return {"ok": False, "error": err or f"HTTP {e.code}", "status": e.code}
        except (urllib.error.URLError, OSError, http.client.HTTPException, UnicodeDecodeError) as e:
            raise TransportFailure(f"{method} {path} failed: {e}")
        try:
            out = json.loads(raw)
        except ValueError:
            raise TransportFailure(f"Non-JSON response from {path}: {raw[:200]}")
        if not isinstance(out, dict):
            raise TransportFailure(f"Unexpected response from {path}")
        return out

    def update_stage_blocking(self, item_id: str, to_stage_id: Optional[str],
                              from_stage_id: Optional[str]) -> SyncResult:
        path = "/api/items/" + urllib.parse.quote(item_id, safe="")
        out = self._request("PUT", path, {"stageId": to_stage_id, "oldStageId": from_stage_id})
        if not out.get("ok"):
            return SyncResult(ok=False, message=str(out.get("error") or "update failed"))
        return SyncResult(ok=True, record=dict(out.get("item") or {}))

    async def update_stage(self, item_id: str, to_stage_id: Optional[str],
                           from_stage_id: Optional[str]) -> SyncResult:
        return await asyncio.to_thread(self.update_stage_blocking, item_id, to_stage_id, from_stage_id)

    def fetch_board(self) -> Board:
        out = self._request("GET", "/api/board")
        if not out.get("ok"):
            raise TransportFailure(str(out.get("error") or "could not load board"), out.get("status"))
        return board_from_records(out.get("stages") or [], out.get("items") or [])


class SqliteSyncClient(RemoteSyncClient):
    """Writes stage changes straight into the SQLite store."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def update_stage_blocking(self, item_id: str, to_stage_id: Optional[str],
                              from_stage_id: Optional[str]) -> SyncResult:
        try:
            rec = db.update_item_stage(self.db_path, item_id, to_stage_id, from_stage_id)
        except NotFound as e:
            return SyncResult(ok=False, message=str(e))
        except sqlite3.Error as e:
            raise TransportFailure(f"store update failed: {e}")
        return SyncResult(ok=True, record=rec)

    async def update_stage(self, item_id: str, to_stage_id: Optional[str],
                           from_stage_id: Optional[str]) -> SyncResult:
        return await asyncio.to_thread(self.update_stage_blocking, item_id, to_stage_id, from_stage_id)

    def fetch_board(self) -> Board:
        return board_from_records(db.load_stages(self.db_path), db.load_items(self.db_path))
