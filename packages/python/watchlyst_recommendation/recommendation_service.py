from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

import numpy as np

from watchlyst_catalog.catalog_service import CatalogService
from watchlyst_core.settings import EngineSettings
from watchlyst_core.timeutils import utcnow
from watchlyst_core.types import ItemId
from watchlyst_scoring.exploration import exploration_rate
from watchlyst_user.interactions.interactions_repo import InteractionsRepo
from watchlyst_user.preferences.preference_service import PreferenceLearningService
from watchlyst_user.stats.user_stats_repo import UserStatsRepo

from .queue_builder import (
    average_score,
    build_initial_queue,
    build_refresh_queue,
    score_initial_candidates,
    score_refresh_candidates,
)
from .recommendation_repo import RecommendationRepo
from .types import NextRefresh, QueueEntry, QueueMetadata, RecommendationQueue

log = logging.getLogger(__name__)

PendingFn = Callable[[str], set[ItemId]]


class RecommendationService:
    """
    Builds and publishes recommendation queues.

    Everything is read and scored before the first write, so a failed read
    leaves the previously published queue untouched.
    """

    def __init__(
        self,
        *,
        catalog: CatalogService,
        learning: PreferenceLearningService,
        stats: UserStatsRepo,
        interactions: InteractionsRepo,
        repo: RecommendationRepo,
        settings: EngineSettings,
        rng: np.random.Generator,
        pending_item_ids: PendingFn | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.catalog = catalog
        self.learning = learning
        self.stats = stats
        self.interactions = interactions
        self.repo = repo
        self.settings = settings
        self.rng = rng
        self.pending_item_ids = pending_item_ids or (lambda _user_id: set())
        self.clock = clock

    def _queue_document(
        self,
        user_id: str,
        entries: list[QueueEntry],
        *,
        total_scored: int,
        avg: float,
        rate: float,
    ) -> RecommendationQueue:
        now = self.clock()
        return RecommendationQueue(
            user_id=user_id,
            queue=entries,
            metadata=QueueMetadata(
                generated_at=now,
                total_scored=total_scored,
                average_score=avg,
                exploration_rate=rate,
            ),
            next_refresh=NextRefresh(after_swipes=self.settings.refresh_every),
            updated_at=now,
        )

    async def generate_initial_queue(
        self, user_id: str, categories: Sequence[str]
    ) -> RecommendationQueue:
        s = self.settings
        state = self.learning.default_state(user_id, list(categories))
        pool = await self.catalog.candidate_pool(s.initial_pool_size)

        scored = score_initial_candidates(
            pool,
            self.catalog.peek_feature_vector,
            state.preference_vector,
            categories,
            trending_popularity=s.initial_trending_popularity,
            trending_rating=s.initial_trending_rating,
            reason_bonus=s.reason_bonus,
        )
        entries = build_initial_queue(scored, queue_size=s.queue_size, quotas=s.reason_quotas)
        doc = self._queue_document(
            user_id,
            entries,
            total_scored=len(scored),
            avg=average_score(scored),
            rate=s.base_exploration_rate,
        )

        await self.learning.save(state)
        await self.repo.put_recommendation_queue(doc)
        log.info(
            "generated %d initial recommendations for user %s (categories=%s)",
            len(entries),
            user_id,
            ", ".join(categories),
        )
        return doc

    async def refresh_queue(self, user_id: str) -> RecommendationQueue:
        s = self.settings
        # snapshot taken up front; later writes land in the next refresh
        state = await self.learning.get_state(user_id)
        stats = await self.stats.get_user_stats(user_id)
        seen = await self.interactions.seen_item_ids(user_id)
        seen |= self.pending_item_ids(user_id)

        like_ratio = stats.like_ratio if stats.total_swipes else 0.5
        rate = exploration_rate(stats.total_swipes, like_ratio, s.base_exploration_rate)
        pool = await self.catalog.candidate_pool(s.refresh_pool_size)

        scored = score_refresh_candidates(
            pool,
            self.catalog.peek_feature_vector,
            state.preference_vector,
            exclude=seen,
            exploration_rate=rate,
            rng=self.rng,
            trending_popularity=s.refresh_trending_popularity,
            trending_rating=s.refresh_trending_rating,
        )
        entries = build_refresh_queue(scored, queue_size=s.queue_size)
        doc = self._queue_document(
            user_id,
            entries,
            total_scored=len(scored),
            avg=average_score(entries),
            rate=rate,
        )
        await self.repo.put_recommendation_queue(doc)
        log.info(
            "refreshed recommendations for user %s: %d movies (exploration_rate=%.3f)",
            user_id,
            len(entries),
            rate,
        )
        return doc
