# cineverse/storage.py
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from cineverse.models import WatchlistEntry

logger = logging.getLogger(__name__)

WATCHLIST_KEY = "movie-watchlist"

# --- Exceptions ---
class LocalStoreError(Exception):
    """Durable local storage is broken. Nothing upstream can recover from this."""
    pass

# --- SQLite key-value store (durable, one row per key) ---
class SqliteLocalStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        self.ensure_schema()

    @contextmanager
    def conn(self):
        try:
            con = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise LocalStoreError(str(e)) from e
        try:
            yield con
            con.commit()
        except sqlite3.Error as e:
            raise LocalStoreError(str(e)) from e
        finally:
            con.close()

    def ensure_schema(self) -> None:
        with self.conn() as c:
            c.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")

    def get_item(self, key: str) -> Optional[str]:
        with self.conn() as c:
            r = c.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return r[0] if r else None

    def set_item(self, key: str, value: str) -> None:
        with self.conn() as c:
            c.execute("INSERT INTO kv (key, value) VALUES (?, ?) "
                      "ON CONFLICT(key) DO UPDATE SET value = excluded.value", (key, value))

    def remove_item(self, key: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM kv WHERE key = ?", (key,))

# --- In-memory store (used for unit tests) ---
class InMemoryLocalStore:
    def __init__(self):
        self._items: Dict[str, str] = {}
        self.writes: List[Tuple[str, str]] = []  # (key, value) in write order

    def get_item(self, key: str) -> Optional[str]: return self._items.get(key)
    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self.writes.append((key, value))
    def remove_item(self, key: str) -> None: self._items.pop(key, None)

# --- Watchlist blob ---
def entries_from_rows(rows) -> List[WatchlistEntry]:
    """
    Parse a JSON array of entry objects. Later duplicates of an id are dropped.
    Raises ValueError when the shape is wrong.
    """
    if not isinstance(rows, list):
        raise ValueError("watchlist must be a list")
    seen = set()
    out = []
    for r in rows:
        e = WatchlistEntry.from_dict(r)
        if e.id in seen:
            logger.debug("dropping duplicate watchlist entry id=%s", e.id)
            continue
        seen.add(e.id)
        out.append(e)
    return out

def entries_to_rows(entries) -> List[dict]:
    return [e.to_dict() for e in entries]

def load_watchlist(store, key: str = WATCHLIST_KEY) -> List[WatchlistEntry]:
    """Read the persisted watchlist; absent or unparsable blobs read as empty."""
    raw = store.get_item(key)
    if raw is None:
        return []
    try:
        return entries_from_rows(json.loads(raw))
    except ValueError as e:  # json.JSONDecodeError is a ValueError
        logger.warning("Stored watchlist under %r is unreadable, starting empty: %s", key, e)
        return []

def save_watchlist(store, entries, key: str = WATCHLIST_KEY) -> None:
    store.set_item(key, json.dumps(entries_to_rows(entries), ensure_ascii=False))
