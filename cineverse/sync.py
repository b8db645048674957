# cineverse/sync.py
"""
Offline-first watchlist with cloud mirroring.

The synchronizer owns the in-memory watchlist. Every mutation is applied in
memory and written to the local store synchronously, then the full list is
pushed to the signed-in user's document as a background task the caller does
not wait for. When the identity changes to a signed-in user, the local list
and the remote copy are merged (local entries win on id collisions) and the
result is written back to both stores.

All methods must be called from the thread running the event loop. Mutations
never suspend before the in-memory write completes, so they are atomic with
respect to each other.
"""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Set

from cineverse.documents import RemoteStoreError, WATCHLIST_FIELD
from cineverse.models import CatalogItem, Identity, Mutation, PushResult, WatchlistEntry, now_ms
from cineverse.storage import WATCHLIST_KEY, entries_from_rows, load_watchlist, save_watchlist

logger = logging.getLogger(__name__)

def sort_entries(entries: Iterable[WatchlistEntry]) -> List[WatchlistEntry]:
    """Newest first; entries with equal timestamps keep their relative order."""
    return sorted(entries, key=lambda e: e.added_at, reverse=True)

def merge_watchlists(local: Iterable[WatchlistEntry], remote: Iterable[WatchlistEntry]) -> List[WatchlistEntry]:
    """
    Union of both lists keyed by id. The local copy of an id wins over the
    remote one; the result is sorted by added_at descending.
    """
    merged = {}
    for e in local:
        merged.setdefault(e.id, e)
    for e in remote:
        if e.id not in merged:
            merged[e.id] = e
    return sort_entries(merged.values())

class WatchlistSynchronizer:
    def __init__(self, local_store, remote_store, clock: Callable[[], int] = now_ms,
                 key: str = WATCHLIST_KEY):
        self.local_store = local_store
        self.remote_store = remote_store
        self.clock = clock
        self.key = key
        self.identity: Optional[Identity] = None
        self.syncing = False
        self.synced = False
        self._entries: List[WatchlistEntry] = sort_entries(load_watchlist(local_store, key))
        self._listeners: List[Callable] = []
        self._pending: Set[asyncio.Task] = set()
        logger.debug("WatchlistSynchronizer loaded %d local entries", len(self._entries))

    # ---- State ----
    @property
    def watchlist(self) -> List[WatchlistEntry]:
        return list(self._entries)

    @property
    def count(self) -> int:
        return len(self._entries)

    def is_present(self, item_id: int) -> bool:
        return any(e.id == item_id for e in self._entries)

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        """listener(entries, syncing) is called after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        entries = self.watchlist
        for listener in list(self._listeners):
            listener(entries, self.syncing)

    def _commit(self, entries: List[WatchlistEntry]) -> None:
        # local write first: a failing store leaves memory at the last good value
        entries = sort_entries(entries)
        save_watchlist(self.local_store, entries, self.key)
        self._entries = entries
        self._notify()

    # ---- Remote ----
    def _schedule_push(self) -> Optional[asyncio.Task]:
        if self.identity is None or self.syncing:
            # an in-flight sync writes back the local list it reads after the fetch
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, watchlist push deferred to next sync")
            self.synced = False
            return None
        task = loop.create_task(self._push(self.identity.uid, list(self._entries)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _push(self, owner_key: str, entries: List[WatchlistEntry]) -> PushResult:
        try:
            await self.remote_store.upsert(owner_key, {WATCHLIST_FIELD: [e.to_dict() for e in entries]})
        except RemoteStoreError as e:
            logger.warning("Watchlist push for %s failed, kept locally: %s", owner_key, e)
            self.synced = False
            return PushResult(owner_key, len(entries), ok=False, error=str(e))
        logger.debug("Pushed %d watchlist entries for %s", len(entries), owner_key)
        self.synced = True
        return PushResult(owner_key, len(entries), ok=True)

    async def drain(self) -> List[PushResult]:
        """Wait for every push issued so far."""
        if not self._pending:
            return []
        return list(await asyncio.gather(*list(self._pending)))

    async def _fetch_remote(self, owner_key: str) -> Optional[List[WatchlistEntry]]:
        """Remote entries, [] for a missing document, None when the read failed."""
        try:
            doc = await self.remote_store.get(owner_key)
        except RemoteStoreError as e:
            logger.warning("Could not read remote watchlist for %s: %s", owner_key, e)
            return None
        if not doc:
            return []
        try:
            return entries_from_rows(doc.get(WATCHLIST_FIELD) or [])
        except ValueError as e:
            logger.warning("Remote watchlist for %s is malformed, ignoring it: %s", owner_key, e)
            return []

    # ---- Identity ----
    async def on_identity_change(self, identity: Optional[Identity]) -> None:
        self.identity = identity
        if identity is None:
            self.synced = False
            return
        owner_key = identity.uid
        self.syncing = True
        try:
            self._notify()
            remote = await self._fetch_remote(owner_key)
            # read local again after the await: the store is the source, not memory
            local = load_watchlist(self.local_store, self.key)
            merged = merge_watchlists(local, remote or [])
            self._commit(merged)
            if remote is None:
                # the remote copy is unknown; overwriting it could drop entries
                self.synced = False
                return
            result = await self._push(owner_key, merged)
            if result.ok and self._entries != merged:
                # mutated while the write-back was in flight
                result = await self._push(owner_key, list(self._entries))
            if result.ok:
                logger.info("Synced watchlist for %s: %d entries", owner_key, len(merged))
        finally:
            self.syncing = False
            self._notify()

    # ---- Mutations ----
    def add(self, item: CatalogItem) -> Mutation:
        if self.is_present(item.id):
            logger.debug("add: item %s already in watchlist", item.id)
            return Mutation("unchanged")
        self._commit(self._entries + [WatchlistEntry(item=item, added_at=self.clock())])
        logger.info("Added item %s to watchlist", item.id)
        return Mutation("added", self._schedule_push())

    def remove(self, item_id: int) -> Mutation:
        if not self.is_present(item_id):
            logger.debug("remove: item %s not in watchlist", item_id)
            return Mutation("unchanged")
        self._commit([e for e in self._entries if e.id != item_id])
        logger.info("Removed item %s from watchlist", item_id)
        return Mutation("removed", self._schedule_push())

    def toggle(self, item: CatalogItem) -> Mutation:
        """Mutation.action reports "added" or "removed"."""
        if self.is_present(item.id):
            return self.remove(item.id)
        return self.add(item)

    def clear(self) -> Mutation:
        self._commit([])
        logger.info("Cleared watchlist")
        return Mutation("cleared", self._schedule_push())

    def replace(self, entries: Iterable[WatchlistEntry]) -> Mutation:
        """Overwrite the whole list (deduplicated by id, first occurrence kept)."""
        self._commit(merge_watchlists(entries, []))
        logger.info("Replaced watchlist with %d entries", len(self._entries))
        return Mutation("replaced", self._schedule_push())
