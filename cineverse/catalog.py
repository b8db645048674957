# cineverse/catalog.py
"""
Static movie catalog and the boundary between the two record shapes.

`Movie` comes from the bundled dataset, `CatalogItem` from the external
catalog (TMDB field names). Both carry a `kind` discriminant; code that needs
a watchlist-ready record calls `as_catalog_item` instead of sniffing fields.
"""
import json
import logging
import os
from typing import Dict, List, Optional

from cineverse.models import CatalogItem, Movie

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = os.path.join(os.path.dirname(__file__), "data", "movies.json")

IMAGE_BASE = "https://image.tmdb.org/t/p"
POSTER_SIZE = "w500"
PLACEHOLDER_IMAGE = "/placeholder.svg"

GENRE_MAP: Dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}

_GENRE_ALIASES = {"sci-fi": "science fiction", "anime": "animation"}

def genre_id(name: str) -> Optional[int]:
    wanted = (name or "").strip().lower()
    wanted = _GENRE_ALIASES.get(wanted, wanted)
    for gid, gname in GENRE_MAP.items():
        if gname.lower() == wanted:
            return gid
    return None

def image_url(path: Optional[str], size: str = POSTER_SIZE) -> str:
    if not path:
        return PLACEHOLDER_IMAGE
    return f"{IMAGE_BASE}/{size}{path}"

def movie_from_dict(d: dict) -> Movie:
    return Movie(
        id=int(d["id"]),
        title=d["title"],
        genre=tuple(d.get("genre", [])),
        mood_tags=tuple(d.get("mood_tags", [])),
        rating=float(d.get("rating", 0.0)),
        release_year=int(d.get("release_year", 0)),
        runtime=int(d.get("runtime", 0)),
        language=d.get("language", ""),
        director=d.get("director", ""),
        actors=tuple(d.get("actors", [])),
        awards=tuple(d.get("awards", [])),
        description=d.get("description", ""),
        poster_url=d.get("poster_url", ""),
        backdrop_url=d.get("backdrop_url"),
    )

def load_catalog(path: str = DEFAULT_CATALOG_PATH) -> List[Movie]:
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    movies = [movie_from_dict(r) for r in rows]
    logger.info("Loaded %d movies from %s", len(movies), path)
    return movies

def find_movie(catalog: List[Movie], movie_id: int) -> Optional[Movie]:
    return next((m for m in catalog if m.id == movie_id), None)

def _path_from_url(url: Optional[str]) -> Optional[str]:
    # ".../t/p/<size>/abc.jpg" -> "/abc.jpg"
    if not url:
        return None
    if url.startswith(IMAGE_BASE + "/"):
        rest = url[len(IMAGE_BASE) + 1:]
        return rest[rest.find("/"):] if "/" in rest else None
    return None

def as_catalog_item(record) -> CatalogItem:
    """Convert either record shape into a CatalogItem, dispatching on record.kind."""
    kind = getattr(record, "kind", None)
    if kind == "catalog":
        return record
    if kind == "local":
        ids = [genre_id(g) for g in record.genre]
        return CatalogItem(
            id=record.id,
            title=record.title,
            poster_path=_path_from_url(record.poster_url),
            backdrop_path=_path_from_url(record.backdrop_url),
            overview=record.description,
            release_date=f"{record.release_year:04d}-01-01" if record.release_year else "",
            vote_average=record.rating,
            genre_ids=tuple(g for g in ids if g is not None),
            original_language=record.language,
        )
    raise TypeError(f"unsupported record kind: {kind!r}")

def movie_from_catalog_item(item: CatalogItem) -> Movie:
    """Partial Movie for an external title: no moods, cast, awards or runtime."""
    genres = [GENRE_MAP[g].lower() for g in item.genre_ids if g in GENRE_MAP]
    year = item.release_date.split("-")[0] if item.release_date else ""
    return Movie(
        id=item.id,
        title=item.title,
        genre=tuple(genres),
        mood_tags=(),
        rating=round(item.vote_average * 10) / 10,
        release_year=int(year) if year.isdigit() else 0,
        runtime=0,
        language=item.original_language,
        director="",
        description=item.overview,
        poster_url=image_url(item.poster_path) if item.poster_path else "",
        backdrop_url=image_url(item.backdrop_path, "original") if item.backdrop_path else None,
    )
