# cineverse/service.py
from typing import List, Optional, Tuple
import logging
import math

from cineverse import recommendation
from cineverse.catalog import as_catalog_item, find_movie
from cineverse.identity import IdentityProvider
from cineverse.loop import EventLoopThread
from cineverse.models import (CatalogItem, Identity, Movie, RecommendationFilters,
                              ScoredCandidate, WatchlistEntry, current_year, now_ms)
from cineverse.sync import WatchlistSynchronizer, merge_watchlists

logger = logging.getLogger(__name__)

RUNTIME_BUCKETS = ("short", "long", "any")

# Exceptions
class ValidationError(Exception):
    """Raised when input or business validation fails."""
    pass

class NotFoundError(Exception):
    """Raised when an entity is not found."""
    pass

class DiscoveryService:
    """
    Business layer behind the HTTP routes.
    Watchlist and identity calls are executed on the event loop thread so the
    synchronizer only ever runs on one thread; recommendation calls are pure
    and run on the caller's thread.
    """

    def __init__(self, sync: WatchlistSynchronizer, identity: IdentityProvider,
                 catalog: List[Movie], loop: Optional[EventLoopThread] = None):
        self.sync = sync
        self.identity = identity
        self.catalog = catalog
        self.loop = loop or EventLoopThread()
        self._unsubscribe = identity.subscribe(sync.on_identity_change)
        self._started = False
        logger.debug("DiscoveryService initialized with %d catalog movies", len(catalog))

    def start(self) -> "DiscoveryService":
        """Start the loop thread and run the initial identity resolution + sync."""
        if self._started:
            return self
        self.loop.start()
        self.loop.run(self._resolve_identity())
        self._started = True
        return self

    async def _resolve_identity(self) -> None:
        current = await self.identity.current_identity()
        await self.sync.on_identity_change(current)

    def close(self) -> None:
        self._unsubscribe()
        self.loop.stop()

    # ---- Watchlist ----
    def get_watchlist(self) -> dict:
        def snapshot():
            ident = self.sync.identity
            return {
                "entries": [e.to_dict() for e in self.sync.watchlist],
                "count": self.sync.count,
                "syncing": self.sync.syncing,
                "synced": self.sync.synced,
                "identity": ident.uid if ident else None,
            }
        return self.loop.call(snapshot)

    def is_in_watchlist(self, item_id: int) -> bool:
        return self.loop.call(self.sync.is_present, item_id)

    @staticmethod
    def parse_item(payload) -> CatalogItem:
        try:
            return CatalogItem.from_dict(payload)
        except ValueError as e:
            logger.warning("parse_item: rejected payload: %s", e)
            raise ValidationError(str(e))

    def add_to_watchlist(self, payload: dict) -> str:
        item = self.parse_item(payload)
        return self.loop.call(self.sync.add, item).action

    def add_movie_to_watchlist(self, movie_id: int) -> str:
        """Add a title from the static catalog, converted to the catalog item shape."""
        movie = self.get_movie(movie_id)
        return self.loop.call(self.sync.add, as_catalog_item(movie)).action

    def remove_from_watchlist(self, item_id: int) -> str:
        return self.loop.call(self.sync.remove, item_id).action

    def toggle_watchlist(self, payload: dict) -> str:
        item = self.parse_item(payload)
        return self.loop.call(self.sync.toggle, item).action

    def clear_watchlist(self) -> None:
        self.loop.call(self.sync.clear)

    def wait_for_sync(self) -> list:
        """Block until every issued remote push has finished; returns their PushResults."""
        return self.loop.run(self.sync.drain())

    # ---- Import / Export ----
    def export_watchlist(self) -> List[dict]:
        """
        Export the watchlist as a list of dicts ready for JSON or CSV.
        Each dict: id, title, release_date, vote_average, addedAt
        """
        entries = self.loop.call(lambda: self.sync.watchlist)
        out = [{
            "id": e.id,
            "title": e.item.title,
            "release_date": e.item.release_date,
            "vote_average": e.item.vote_average,
            "addedAt": e.added_at,
        } for e in entries]
        logger.info("Exported %d watchlist entries", len(out))
        return out

    def import_watchlist_from_rows(self, rows: List[dict]) -> Tuple[int, List[str]]:
        """
        Merge rows (catalog item dicts, addedAt optional) into the watchlist.
        Entries already present are kept as they are.
        Returns (created_count, errors)
        """
        if not isinstance(rows, list):
            raise ValidationError("import must be a list of objects")
        imported: List[WatchlistEntry] = []
        errors: List[str] = []
        for i, r in enumerate(rows):
            try:
                item = CatalogItem.from_dict(r)
                added_at = int(r.get("addedAt") or now_ms())
                imported.append(WatchlistEntry(item=item, added_at=added_at))
            except (ValueError, TypeError, OverflowError) as e:
                msg = f"row {i+1}: {str(e)}"
                logger.warning("import row failed: %s", msg)
                errors.append(msg)

        def apply() -> int:
            before = {e.id for e in self.sync.watchlist}
            merged = merge_watchlists(self.sync.watchlist, imported)
            created = len([e for e in merged if e.id not in before])
            if created:
                self.sync.replace(merged)
            return created

        created = self.loop.call(apply)
        logger.info("Import completed: created=%s errors=%d", created, len(errors))
        return created, errors

    # ---- Identity ----
    def current_identity(self) -> Optional[Identity]:
        return self.loop.run(self.identity.current_identity())

    def sign_up(self, email: str, secret: str) -> Identity:
        return self.loop.run(self.identity.sign_up(email, secret))

    def sign_in(self, email: str, secret: str) -> Identity:
        return self.loop.run(self.identity.sign_in(email, secret))

    def sign_out(self) -> None:
        self.loop.run(self.identity.sign_out())

    # ---- Catalog ----
    def list_movies(self) -> List[Movie]:
        return list(self.catalog)

    def get_movie(self, movie_id: int) -> Movie:
        m = find_movie(self.catalog, movie_id)
        if not m:
            logger.debug("get_movie: movie %s not found", movie_id)
            raise NotFoundError("movie not found")
        return m

    def similar_movies(self, movie_id: int) -> List[Movie]:
        return recommendation.get_similar_movies(self.catalog, self.get_movie(movie_id))

    # ---- Recommendations ----
    def build_filters(self, genres=None, moods=None, min_rating=None, language=None,
                      year_min=None, year_max=None, runtime=None, q=None) -> RecommendationFilters:
        """Validate raw (string or typed) values into RecommendationFilters."""
        try:
            rating = float(min_rating) if min_rating not in (None, "") else 0.0
            lo = int(year_min) if year_min not in (None, "") else 1900
            hi = int(year_max) if year_max not in (None, "") else current_year()
        except ValueError as e:
            raise ValidationError(f"invalid number: {e}")
        if math.isnan(rating) or rating < 0 or rating > 9 or (rating * 2) != int(rating * 2):
            raise ValidationError("min_rating must be between 0 and 9 in steps of 0.5")
        if lo > hi:
            raise ValidationError("year_min must not exceed year_max")
        runtime = runtime or "any"
        if runtime not in RUNTIME_BUCKETS:
            raise ValidationError(f"runtime must be one of {', '.join(RUNTIME_BUCKETS)}")
        return RecommendationFilters(
            genres=[g.strip().lower() for g in genres or [] if g.strip()],
            moods=[m.strip().lower() for m in moods or [] if m.strip()],
            min_rating=rating,
            language=(language or "all").strip() or "all",
            year_range=(lo, hi),
            runtime=runtime,
            search_query=(q or "").strip(),
        )

    def recommend(self, filters: RecommendationFilters) -> List[ScoredCandidate]:
        results = recommendation.get_recommendations(self.catalog, filters)
        logger.info("Recommended %d movies (genres=%s moods=%s)", len(results), filters.genres, filters.moods)
        return results
