from __future__ import annotations

from collections import Counter
from datetime import datetime

from watchlyst_core import config
from watchlyst_core.timeutils import parse_release_date, utcnow
from watchlyst_core.types import FeatureVector, ItemRecord

from .dimensions import GENRE_ID_MAPPING, empty_vector

_DAYS_PER_YEAR = 365.0


def _clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else x


def genre_strengths(genre_ids: list[int]) -> dict[str, float]:
    """Relative genre strength: occurrences per dimension over all genre ids on the item."""
    if not genre_ids:
        return {}
    counts = Counter(GENRE_ID_MAPPING[g] for g in genre_ids if g in GENRE_ID_MAPPING)
    total = len(genre_ids)
    return {dim: n / total for dim, n in counts.items()}


def norm_popularity(popularity: float | None) -> float:
    return _clamp01(float(popularity or 0.0) / config.POPULARITY_CEILING)


def norm_recency(release_date: str | None, now: datetime) -> float:
    """
    Linear decay from 1.0 (released now) to 0.0 over RECENCY_WINDOW_YEARS.

    Future releases count as 0 years old; missing or unparsable dates score 0.
    """
    rd = parse_release_date(release_date)
    if rd is None:
        return 0.0
    years = max(0.0, (now - rd).total_seconds() / 86400.0 / _DAYS_PER_YEAR)
    return _clamp01(1.0 - years / config.RECENCY_WINDOW_YEARS)


def norm_rating(vote_average: float | None) -> float:
    return _clamp01(float(vote_average or 0.0) / config.RATING_SCALE)


def item_to_feature_vector(item: ItemRecord, *, now: datetime | None = None) -> FeatureVector:
    """
    Map a catalog item to its 9-dimensional feature vector.

    Deterministic for a given item and `now`; callers that cache the result
    should pass a stable clock in tests.
    """
    now = now or utcnow()

    features = empty_vector()
    features.update(genre_strengths(item.genre_ids))
    features["popularity_normalized"] = norm_popularity(item.popularity)
    features["recency_score"] = norm_recency(item.release_date, now)
    features["rating_normalized"] = norm_rating(item.vote_average)
    return features
