from __future__ import annotations

from typing import Mapping

import numpy as np

GENRE_DIMENSIONS: tuple[str, ...] = (
    "genre_action",
    "genre_comedy",
    "genre_drama",
    "genre_horror",
    "genre_romance",
    "genre_scifi",
)
CONTENT_DIMENSIONS: tuple[str, ...] = (
    "popularity_normalized",
    "recency_score",
    "rating_normalized",
)
# Order is fixed; arrays built by to_array() follow it.
FEATURE_DIMENSIONS: tuple[str, ...] = GENRE_DIMENSIONS + CONTENT_DIMENSIONS
DIMENSION_COUNT = len(FEATURE_DIMENSIONS)

# TMDB genre id -> genre dimension (many-to-one)
GENRE_ID_MAPPING: dict[int, str] = {
    28: "genre_action",  # Action
    12: "genre_action",  # Adventure
    53: "genre_action",  # Thriller
    80: "genre_action",  # Crime
    10752: "genre_action",  # War
    37: "genre_action",  # Western
    35: "genre_comedy",  # Comedy
    10751: "genre_comedy",  # Family
    16: "genre_comedy",  # Animation
    18: "genre_drama",  # Drama
    9648: "genre_drama",  # Mystery
    36: "genre_drama",  # History
    10402: "genre_drama",  # Music
    99: "genre_drama",  # Documentary
    10770: "genre_drama",  # TV Movie
    27: "genre_horror",  # Horror
    10749: "genre_romance",  # Romance
    878: "genre_scifi",  # Science Fiction
    14: "genre_scifi",  # Fantasy
}

CATEGORY_ALIASES: dict[str, str] = {
    "sci-fi": "scifi",
    "sci fi": "scifi",
    "science fiction": "scifi",
    "science-fiction": "scifi",
    "romcom": "romance",
}


def normalize_category(category: str) -> str:
    c = category.strip().lower()
    return CATEGORY_ALIASES.get(c, c)


def category_dimension(category: str) -> str | None:
    """Genre dimension for an onboarding category, or None when it has none."""
    key = f"genre_{normalize_category(category)}"
    return key if key in GENRE_DIMENSIONS else None


def empty_vector() -> dict[str, float]:
    return {d: 0.0 for d in FEATURE_DIMENSIONS}


def complete_vector(v: Mapping[str, float] | None) -> dict[str, float]:
    """All nine dimensions present; missing ones read as 0, unknown keys dropped."""
    v = v or {}
    return {d: float(v.get(d) or 0.0) for d in FEATURE_DIMENSIONS}


def to_array(v: Mapping[str, float] | None) -> np.ndarray:
    v = v or {}
    return np.array([float(v.get(d) or 0.0) for d in FEATURE_DIMENSIONS], dtype=np.float64)


def from_array(arr: np.ndarray) -> dict[str, float]:
    return {d: float(x) for d, x in zip(FEATURE_DIMENSIONS, arr)}
