# cineverse/models.py
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple
import time

def now_ms() -> int:
    return int(time.time() * 1000)

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def current_year() -> int:
    return date.today().year

@dataclass(frozen=True)
class CatalogItem:
    """A title as the external catalog describes it (TMDB field names)."""
    id: int
    title: str
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    overview: str = ""
    release_date: str = ""
    vote_average: float = 0.0
    genre_ids: Tuple[int, ...] = ()
    original_language: str = ""
    popularity: float = 0.0
    kind: str = field(default="catalog", init=False)

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("kind")
        d["genre_ids"] = list(self.genre_ids)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "CatalogItem":
        """Build from a JSON object. Raises ValueError on a bad shape."""
        if not isinstance(d, dict):
            raise ValueError("catalog item must be an object")
        if "id" not in d or "title" not in d:
            raise ValueError("catalog item requires id and title")
        try:
            return cls(
                id=int(d["id"]),
                title=str(d["title"]),
                poster_path=d.get("poster_path"),
                backdrop_path=d.get("backdrop_path"),
                overview=d.get("overview") or "",
                release_date=d.get("release_date") or "",
                vote_average=float(d.get("vote_average") or 0.0),
                genre_ids=tuple(int(g) for g in d.get("genre_ids") or ()),
                original_language=d.get("original_language") or "",
                popularity=float(d.get("popularity") or 0.0),
            )
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"invalid catalog item: {e}") from e

@dataclass(frozen=True)
class WatchlistEntry:
    item: CatalogItem
    added_at: int  # epoch milliseconds

    @property
    def id(self) -> int:
        return self.item.id

    def to_dict(self) -> dict:
        d = self.item.to_dict()
        d["addedAt"] = self.added_at
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "WatchlistEntry":
        item = CatalogItem.from_dict(d)
        try:
            added_at = int(d["addedAt"])
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ValueError("watchlist entry requires integer addedAt") from e
        return cls(item=item, added_at=added_at)

@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None

@dataclass
class Account:
    uid: str
    email: str
    password_hash: str
    created_at: str = field(default_factory=now_iso)

@dataclass(frozen=True)
class Movie:
    """Entry of the bundled static catalog (richer schema than CatalogItem)."""
    id: int
    title: str
    genre: Tuple[str, ...]
    mood_tags: Tuple[str, ...]
    rating: float
    release_year: int
    runtime: int
    language: str
    director: str
    actors: Tuple[str, ...] = ()
    awards: Tuple[str, ...] = ()
    description: str = ""
    poster_url: str = ""
    backdrop_url: Optional[str] = None
    kind: str = field(default="local", init=False)

    def to_dict(self) -> dict:
        d = asdict(self)
        for k in ("genre", "mood_tags", "actors", "awards"):
            d[k] = list(d[k])
        return d

@dataclass
class RecommendationFilters:
    genres: List[str] = field(default_factory=list)
    moods: List[str] = field(default_factory=list)
    min_rating: float = 0.0
    language: str = "all"
    year_range: Tuple[int, int] = field(default_factory=lambda: (1900, current_year()))
    runtime: str = "any"  # "short" (< 120 min), "long", "any"
    search_query: str = ""

@dataclass(frozen=True)
class ScoredCandidate:
    movie: Movie
    score: float
    match_reasons: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        d = self.movie.to_dict()
        d["score"] = round(self.score, 4)
        d["match_reasons"] = list(self.match_reasons)
        return d

@dataclass(frozen=True)
class PushResult:
    owner_key: str
    count: int
    ok: bool
    error: Optional[str] = None

@dataclass(frozen=True)
class Mutation:
    """Outcome of a local watchlist mutation. push is None when nothing was scheduled."""
    action: str  # "added", "removed", "cleared", "replaced", "unchanged"
    push: Optional[object] = None  # asyncio.Task resolving to PushResult

    @property
    def changed(self) -> bool:
        return self.action != "unchanged"
