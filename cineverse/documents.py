# cineverse/documents.py
"""
Per-user document store standing in for the cloud backend.

Documents are JSON objects keyed by owner key (the identity uid). `upsert`
merges: only the fields passed in are replaced, every other field of the
stored document is kept.
"""
import asyncio
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)

WATCHLIST_FIELD = "watchlist"

# --- Exceptions ---
class RemoteStoreError(Exception):
    """Network, permission or storage failure talking to the document store."""
    pass

# --- SQLite-backed store ---
class SqliteDocumentStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with self.conn() as c:
            c.execute("CREATE TABLE IF NOT EXISTS documents ("
                      "owner_key TEXT PRIMARY KEY, body TEXT NOT NULL)")

    @contextmanager
    def conn(self):
        try:
            con = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise RemoteStoreError(str(e)) from e
        try:
            yield con
            con.commit()
        except sqlite3.Error as e:
            raise RemoteStoreError(str(e)) from e
        finally:
            con.close()

    def _get(self, owner_key: str) -> Optional[dict]:
        with self.conn() as c:
            r = c.execute("SELECT body FROM documents WHERE owner_key = ?", (owner_key,)).fetchone()
        if not r:
            return None
        try:
            return json.loads(r[0])
        except ValueError as e:
            raise RemoteStoreError(f"corrupt document for {owner_key}: {e}") from e

    def _upsert(self, owner_key: str, fields: dict) -> None:
        with self.conn() as c:
            r = c.execute("SELECT body FROM documents WHERE owner_key = ?", (owner_key,)).fetchone()
            try:
                doc = json.loads(r[0]) if r else {}
            except ValueError as e:
                raise RemoteStoreError(f"corrupt document for {owner_key}: {e}") from e
            doc.update(fields)
            c.execute("INSERT INTO documents (owner_key, body) VALUES (?, ?) "
                      "ON CONFLICT(owner_key) DO UPDATE SET body = excluded.body",
                      (owner_key, json.dumps(doc, ensure_ascii=False)))

    async def get(self, owner_key: str) -> Optional[dict]:
        return await asyncio.to_thread(self._get, owner_key)

    async def upsert(self, owner_key: str, fields: dict) -> None:
        await asyncio.to_thread(self._upsert, owner_key, fields)
        logger.debug("Upserted fields %s for %s", sorted(fields), owner_key)

# --- In-memory store (used for unit tests) ---
class InMemoryDocumentStore:
    def __init__(self):
        self.documents: Dict[str, dict] = {}
        self.failing: Set[str] = set()  # "get" and/or "upsert" raise RemoteStoreError
        self.upserts = []  # (owner_key, fields) in arrival order

    async def get(self, owner_key: str) -> Optional[dict]:
        await asyncio.sleep(0)
        if "get" in self.failing:
            raise RemoteStoreError("network unavailable")
        doc = self.documents.get(owner_key)
        return json.loads(json.dumps(doc)) if doc is not None else None

    async def upsert(self, owner_key: str, fields: dict) -> None:
        await asyncio.sleep(0)
        if "upsert" in self.failing:
            raise RemoteStoreError("permission denied")
        fields = json.loads(json.dumps(fields))
        self.documents.setdefault(owner_key, {}).update(fields)
        self.upserts.append((owner_key, fields))
