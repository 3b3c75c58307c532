from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Sequence

import numpy as np

from watchlyst_cache.batch_processor import BatchProcessor
from watchlyst_cache.engine_caches import CachePressureMonitor, EngineCaches
from watchlyst_catalog.catalog_service import CatalogService
from watchlyst_catalog.item_repo import ItemRepo, SupabaseItemRepo
from watchlyst_core.errors import DomainError
from watchlyst_core.locks import KeyedLock
from watchlyst_core.settings import EngineSettings
from watchlyst_core.timeutils import utcnow
from watchlyst_core.types import POSITIVE_GESTURES, Gesture, ItemId
from watchlyst_scoring.learning import parse_gesture
from watchlyst_user.interactions.interactions_repo import (
    InteractionsRepo,
    SupabaseInteractionsRepo,
)
from watchlyst_user.interactions.schemas import (
    InteractionRecord,
    InteractionResult,
    ScoringSnapshot,
)
from watchlyst_user.preferences.preference_service import PreferenceLearningService
from watchlyst_user.preferences.preferences_repo import (
    PreferencesRepo,
    SupabasePreferencesRepo,
)
from watchlyst_user.stats.user_stats_repo import SupabaseUserStatsRepo, UserStatsRepo

from .recommendation_repo import RecommendationRepo, SupabaseRecommendationRepo
from .recommendation_service import RecommendationService
from .types import RecommendationQueue, ScoringDetails

log = logging.getLogger(__name__)


class RecommendationEngine:
    """
    Entry point for the four collaborator operations.

    Owns its caches, batch processor and per-user locks. Use as an async
    context manager (or call start()/aclose()) so timers are tied to the
    running event loop and pending writes are drained on shutdown.
    """

    def __init__(
        self,
        *,
        items: ItemRepo,
        preferences: PreferencesRepo,
        stats: UserStatsRepo,
        interactions: InteractionsRepo,
        recommendations: RecommendationRepo,
        settings: EngineSettings | None = None,
        rng: np.random.Generator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or EngineSettings()
        self.clock = clock
        self.rng = rng if rng is not None else np.random.default_rng()

        self.preferences_repo = preferences
        self.stats = stats
        self.interactions = interactions

        self.caches = EngineCaches.from_settings(self.settings)
        self.catalog = CatalogService(items, self.caches, clock=clock)
        self.learning = PreferenceLearningService(preferences, self.settings, clock=clock)
        self.recommendations = RecommendationService(
            catalog=self.catalog,
            learning=self.learning,
            stats=stats,
            interactions=interactions,
            repo=recommendations,
            settings=self.settings,
            rng=self.rng,
            pending_item_ids=self.pending_item_ids,
            clock=clock,
        )

        self.batch: BatchProcessor[InteractionRecord] | None = None
        if self.settings.batch_interaction_writes:
            self.batch = BatchProcessor(
                interactions.bulk_upsert,
                max_size=self.settings.batch_max_size,
                interval_sec=self.settings.batch_interval_sec,
                retry_base_sec=self.settings.batch_retry_base_sec,
                retry_cap_sec=self.settings.batch_retry_cap_sec,
                name="interactions",
            )
        self.monitor = CachePressureMonitor(
            self.caches,
            max_entries=self.settings.max_cache_entries,
            interval_sec=self.settings.cache_check_interval_sec,
        )
        self._locks = KeyedLock()

    @classmethod
    def from_supabase(cls, client, settings: EngineSettings | None = None, **kwargs) -> "RecommendationEngine":
        return cls(
            items=SupabaseItemRepo(client),
            preferences=SupabasePreferencesRepo(client),
            stats=SupabaseUserStatsRepo(client),
            interactions=SupabaseInteractionsRepo(client),
            recommendations=SupabaseRecommendationRepo(client),
            settings=settings,
            **kwargs,
        )

    # ---------- Lifecycle ----------
    def start(self) -> None:
        if self.settings.cache_check_interval_sec > 0:
            self.monitor.start()

    async def aclose(self) -> None:
        await self.monitor.aclose()
        if self.batch is not None:
            await self.batch.aclose()

    async def __aenter__(self) -> "RecommendationEngine":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ---------- Operations ----------
    async def record_interaction(
        self,
        user_id: str,
        item_id: ItemId,
        gesture: str | Gesture,
        *,
        interaction_id: str | None = None,
    ) -> InteractionResult:
        """
        Learn from one gesture and persist the result.

        Raises InvalidGesture before anything is written, NotFound for an
        unknown item, and UpstreamPersistenceFailure when a store write fails
        (redeliver with the same interaction_id).

        The preference write commits the learning step. A redelivered event
        whose id matches the last applied update is not learned again; only
        the writes that follow the commit are retried.
        """
        g = parse_gesture(gesture)
        interaction_id = interaction_id or str(uuid.uuid4())

        async with self._locks.hold(user_id):
            item = await self.catalog.get_item(item_id)
            item_vector = await self.catalog.feature_vector(item)
            state = await self.learning.get_state(user_id)

            replayed = self.learning.already_applied(state, interaction_id)
            if replayed:
                log.info("interaction %s for user %s already applied", interaction_id, user_id)
                meta = state.learning_metadata
                snapshot = await self._applied_snapshot(user_id, interaction_id)
            else:
                outcome = self.learning.learn(state, item_vector, g, interaction_id)
                meta = outcome.state.learning_metadata
                snapshot = outcome.snapshot
                record = InteractionRecord(
                    interaction_id=interaction_id,
                    user_id=user_id,
                    item_id=item_id,
                    gesture=g,
                    created_at=self.clock(),
                )
                if self.batch is None:
                    await self.interactions.append_interaction(record)
                    await self.interactions.update_interaction(interaction_id, snapshot)
                await self.learning.save(outcome.state)
                if self.batch is not None:
                    record.scoring_data = snapshot
                    await self.batch.add_item(record)

            stats = await self.stats.increment_user_stats(user_id, g, interaction_id)
            if not replayed:
                try:
                    await self.catalog.record_item_interaction(
                        item_id, positive=g in POSITIVE_GESTURES
                    )
                except DomainError as exc:
                    log.warning("could not update interaction counters for %s: %s", item_id, exc)

        log.info(
            "processed %s from user %s on item %s (update %d, confidence %.3f)",
            g.value,
            user_id,
            item_id,
            meta.total_updates,
            meta.model_confidence,
        )

        refreshed = False
        if stats.total_swipes % self.settings.refresh_every == 0:
            try:
                await self.recommendations.refresh_queue(user_id)
                refreshed = True
            except DomainError:
                log.exception("queue refresh for user %s failed", user_id)

        return InteractionResult(
            interaction_id=interaction_id,
            user_id=user_id,
            item_id=item_id,
            gesture=g,
            scoring_data=snapshot,
            total_updates=meta.total_updates,
            model_confidence=meta.model_confidence,
            total_swipes=stats.total_swipes,
            queue_refreshed=refreshed,
        )

    async def generate_initial_queue(
        self, user_id: str, categories: Sequence[str]
    ) -> RecommendationQueue:
        async with self._locks.hold(user_id):
            return await self.recommendations.generate_initial_queue(user_id, categories)

    async def refresh_queue(self, user_id: str) -> RecommendationQueue:
        return await self.recommendations.refresh_queue(user_id)

    async def get_scoring_details(self, user_id: str) -> ScoringDetails:
        last = await self.interactions.last_interaction(user_id)
        buffered = [r for r in self._pending_records() if r.user_id == user_id]
        if buffered:
            newest = max(buffered, key=lambda r: r.created_at)
            if last is None or newest.created_at >= last.created_at:
                last = newest
        if last is None:
            return ScoringDetails(has_data=False)
        return ScoringDetails(
            has_data=True,
            last_interaction=last,
            preferences=await self.preferences_repo.get_preferences(user_id),
            stats=await self.stats.get_user_stats(user_id),
        )

    def pending_item_ids(self, user_id: str) -> set[ItemId]:
        """Items with interactions still buffered for the store."""
        return {r.item_id for r in self._pending_records() if r.user_id == user_id}

    def _pending_records(self) -> list[InteractionRecord]:
        return self.batch.pending() if self.batch is not None else []

    async def _applied_snapshot(self, user_id: str, interaction_id: str) -> ScoringSnapshot | None:
        for r in self._pending_records():
            if r.interaction_id == interaction_id:
                return r.scoring_data
        last = await self.interactions.last_interaction(user_id)
        if last is not None and last.interaction_id == interaction_id:
            return last.scoring_data
        return None
