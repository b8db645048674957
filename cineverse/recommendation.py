# cineverse/recommendation.py
"""
Filter-and-score recommendations over the static catalog.

Hard filters narrow the catalog, each survivor gets a weighted score

    0.30 * genre match + 0.25 * mood match + 0.25 * rating/10
    + 0.10 * recency + 0.10 * awards

and the ten best are returned with short labels explaining the score.
Everything here is a pure function of its arguments.
"""
from typing import List, Optional, Sequence

from cineverse.models import Movie, RecommendationFilters, ScoredCandidate, current_year

GENRE_WEIGHT = 0.30
MOOD_WEIGHT = 0.25
RATING_WEIGHT = 0.25
RECENCY_WEIGHT = 0.10
AWARDS_WEIGHT = 0.10

MAX_RECOMMENDATIONS = 10
MAX_SIMILAR = 6
SHORT_RUNTIME = 120
RECENCY_SPAN_YEARS = 50

def _lower(values: Sequence[str]) -> List[str]:
    return [v.lower() for v in values]

def genre_score(movie: Movie, selected: Sequence[str]) -> float:
    if not selected:
        return 1.0
    genres = _lower(movie.genre)
    return sum(1 for g in _lower(selected) if g in genres) / len(selected)

def mood_score(movie: Movie, selected: Sequence[str]) -> float:
    if not selected:
        return 1.0
    moods = _lower(movie.mood_tags)
    return sum(1 for m in _lower(selected) if m in moods) / len(selected)

def recency_score(year: int, this_year: int) -> float:
    return max(0.0, 1 - (this_year - year) / RECENCY_SPAN_YEARS)

def awards_score(awards: Sequence[str]) -> float:
    n = len(awards)
    if n >= 3:
        return 1.0
    if n == 2:
        return 0.8
    if n == 1:
        return 0.6
    return 0.3

def apply_filters(catalog: Sequence[Movie], filters: RecommendationFilters) -> List[Movie]:
    movies = list(catalog)
    if filters.genres:
        wanted = _lower(filters.genres)
        movies = [m for m in movies if any(g in wanted for g in _lower(m.genre))]
    if filters.min_rating > 0:
        movies = [m for m in movies if m.rating >= filters.min_rating]
    if filters.language and filters.language.lower() != "all":
        lang = filters.language.lower()
        movies = [m for m in movies if m.language.lower() == lang]
    if filters.year_range:
        lo, hi = filters.year_range
        movies = [m for m in movies if lo <= m.release_year <= hi]
    if filters.runtime == "short":
        movies = [m for m in movies if m.runtime < SHORT_RUNTIME]
    elif filters.runtime == "long":
        movies = [m for m in movies if m.runtime >= SHORT_RUNTIME]
    if filters.search_query:
        q = filters.search_query.lower()
        movies = [m for m in movies
                  if q in m.title.lower()
                  or any(q in a.lower() for a in m.actors)
                  or q in m.director.lower()]
    return movies

def score_movie(movie: Movie, filters: RecommendationFilters, this_year: int) -> ScoredCandidate:
    genre = genre_score(movie, filters.genres) * GENRE_WEIGHT
    mood = mood_score(movie, filters.moods) * MOOD_WEIGHT
    rating = movie.rating / 10 * RATING_WEIGHT
    recency = recency_score(movie.release_year, this_year) * RECENCY_WEIGHT
    awards = awards_score(movie.awards) * AWARDS_WEIGHT

    # thresholds apply to the weighted values
    reasons = []
    if genre > 0.15:
        reasons.append("Genre match")
    if mood > 0.12:
        reasons.append("Mood match")
    if movie.rating >= 8.5:
        reasons.append("Highly rated")
    if movie.awards:
        reasons.append("Award winning")
    if movie.release_year >= 2020:
        reasons.append("Recent release")
    return ScoredCandidate(movie, genre + mood + rating + recency + awards, tuple(reasons))

def get_recommendations(catalog: Sequence[Movie], filters: RecommendationFilters,
                        this_year: Optional[int] = None,
                        limit: int = MAX_RECOMMENDATIONS) -> List[ScoredCandidate]:
    this_year = this_year or current_year()
    scored = [score_movie(m, filters, this_year) for m in apply_filters(catalog, filters)]
    scored.sort(key=lambda c: c.score, reverse=True)
    return scored[:min(limit, MAX_RECOMMENDATIONS)]

def similarity_score(candidate: Movie, movie: Movie) -> float:
    score = 2 * sum(1 for g in candidate.genre if g in movie.genre)
    score += 1.5 * sum(1 for t in candidate.mood_tags if t in movie.mood_tags)
    if movie.director and candidate.director == movie.director:
        score += 3
    if abs(candidate.rating - movie.rating) < 0.5:
        score += 1
    return score

def get_similar_movies(catalog: Sequence[Movie], movie: Movie) -> List[Movie]:
    pool = [m for m in catalog
            if m.id != movie.id
            and (any(g in movie.genre for g in m.genre)
                 or any(t in movie.mood_tags for t in m.mood_tags)
                 or (movie.director and m.director == movie.director))]
    pool.sort(key=lambda m: similarity_score(m, movie), reverse=True)
    return pool[:MAX_SIMILAR]
