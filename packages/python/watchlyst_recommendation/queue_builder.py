from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

import numpy as np

from watchlyst_core.types import FeatureVector, ItemId, ItemRecord
from watchlyst_scoring.dimensions import GENRE_ID_MAPPING, category_dimension, normalize_category
from watchlyst_scoring.scoring import ScoreResult, score

from .types import QueueEntry, RecommendationReason

VectorFn = Callable[[ItemRecord], FeatureVector]

# quota fill order for initial queues
QUOTA_ORDER: tuple[RecommendationReason, ...] = (
    RecommendationReason.CATEGORY_MATCH,
    RecommendationReason.TRENDING,
    RecommendationReason.EXPLORATION,
)


@dataclass(frozen=True)
class ScoredCandidate:
    item_id: ItemId
    score: float
    reason: RecommendationReason
    result: ScoreResult


# ---- classification ----
def is_trending(item: ItemRecord, *, min_popularity: float, min_rating: float) -> bool:
    return item.popularity > min_popularity and item.vote_average > min_rating


def matches_categories(item: ItemRecord, categories: Iterable[str]) -> bool:
    """Genre name contains a selected category, or a genre id maps to its dimension."""
    cats = [normalize_category(c) for c in categories if c and c.strip()]
    if not cats:
        return False
    names = [g.lower() for g in item.genres]
    if any(cat in name for name in names for cat in cats):
        return True
    item_dims = {GENRE_ID_MAPPING[g] for g in item.genre_ids if g in GENRE_ID_MAPPING}
    return any(category_dimension(cat) in item_dims for cat in cats)


def classify_initial(
    item: ItemRecord,
    categories: Sequence[str],
    *,
    trending_popularity: float,
    trending_rating: float,
) -> RecommendationReason:
    if matches_categories(item, categories):
        return RecommendationReason.CATEGORY_MATCH
    if is_trending(item, min_popularity=trending_popularity, min_rating=trending_rating):
        return RecommendationReason.TRENDING
    return RecommendationReason.EXPLORATION


def _sort_desc(scored: list[ScoredCandidate]) -> list[ScoredCandidate]:
    # stable: ties keep pool (popularity) order
    return sorted(scored, key=lambda c: c.score, reverse=True)


# ---- initial generation ----
def score_initial_candidates(
    pool: Sequence[ItemRecord],
    vector_for: VectorFn,
    preferences: Mapping[str, float],
    categories: Sequence[str],
    *,
    trending_popularity: float,
    trending_rating: float,
    reason_bonus: Mapping[str, float] | None = None,
) -> list[ScoredCandidate]:
    """Score against seeded preferences with exploration off; highest first."""
    reason_bonus = reason_bonus or {}
    out: list[ScoredCandidate] = []
    for item in pool:
        result = score(preferences, vector_for(item))
        reason = classify_initial(
            item,
            categories,
            trending_popularity=trending_popularity,
            trending_rating=trending_rating,
        )
        bonus = float(reason_bonus.get(reason.value, 0.0))
        out.append(ScoredCandidate(item.item_id, result.final_score + bonus, reason, result))
    return _sort_desc(out)


def quota_targets(queue_size: int, quotas: Mapping[str, float]) -> dict[RecommendationReason, int]:
    return {r: math.floor(queue_size * float(quotas.get(r.value, 0.0))) for r in QUOTA_ORDER}


def build_initial_queue(
    scored: Sequence[ScoredCandidate],
    *,
    queue_size: int,
    quotas: Mapping[str, float],
) -> list[QueueEntry]:
    """
    Fill per-reason quotas in priority order with the best untaken candidates,
    then top up with the best remaining ones tagged preference_match.
    `scored` must be sorted by score, highest first.
    """
    queue: list[QueueEntry] = []
    added: set[ItemId] = set()

    def _push(c: ScoredCandidate, reason: RecommendationReason) -> None:
        queue.append(QueueEntry(item_id=c.item_id, score=c.score, reason=reason, position=len(queue)))
        added.add(c.item_id)

    for reason, target in quota_targets(queue_size, quotas).items():
        taken = 0
        for c in scored:
            if taken >= target or len(queue) >= queue_size:
                break
            if c.reason is reason and c.item_id not in added:
                _push(c, reason)
                taken += 1

    for c in scored:
        if len(queue) >= queue_size:
            break
        if c.item_id not in added:
            _push(c, RecommendationReason.PREFERENCE_MATCH)
    return queue


# ---- refresh ----
def score_refresh_candidates(
    pool: Sequence[ItemRecord],
    vector_for: VectorFn,
    preferences: Mapping[str, float],
    *,
    exclude: set[ItemId],
    exploration_rate: float,
    rng: np.random.Generator,
    trending_popularity: float,
    trending_rating: float,
) -> list[ScoredCandidate]:
    """
    Score unseen candidates with live preferences. Each candidate is drawn as
    an exploration candidate with probability `exploration_rate` before scoring.
    """
    out: list[ScoredCandidate] = []
    taken: set[ItemId] = set()
    for item in pool:
        if item.item_id in exclude or item.item_id in taken:
            continue
        taken.add(item.item_id)
        explore = bool(rng.random() < exploration_rate)
        result = score(preferences, vector_for(item), exploration_rate, explore, rng=rng)
        if explore:
            reason = RecommendationReason.EXPLORATION
        elif is_trending(item, min_popularity=trending_popularity, min_rating=trending_rating):
            reason = RecommendationReason.TRENDING
        else:
            reason = RecommendationReason.PREFERENCE_MATCH
        out.append(ScoredCandidate(item.item_id, result.final_score, reason, result))
    return _sort_desc(out)


def build_refresh_queue(scored: Sequence[ScoredCandidate], *, queue_size: int) -> list[QueueEntry]:
    return [
        QueueEntry(item_id=c.item_id, score=c.score, reason=c.reason, position=i)
        for i, c in enumerate(scored[:queue_size])
    ]


def average_score(entries: Sequence[QueueEntry] | Sequence[ScoredCandidate]) -> float:
    if not entries:
        return 0.0
    return sum(e.score for e in entries) / len(entries)
