from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from watchlyst_cache.engine_caches import EngineCaches
from watchlyst_core.errors import CatalogUnavailable, NotFound, UpstreamPersistenceFailure
from watchlyst_core.timeutils import utcnow
from watchlyst_core.types import FeatureVector, ItemId, ItemRecord
from watchlyst_scoring.dimensions import complete_vector
from watchlyst_scoring.features import item_to_feature_vector

from .item_repo import ItemRepo

log = logging.getLogger(__name__)


class CatalogService:
    """Item reads for the engine, through the feature-vector and query caches."""

    def __init__(
        self,
        repo: ItemRepo,
        caches: EngineCaches,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.caches = caches
        self.clock = clock

    async def get_item(self, item_id: ItemId) -> ItemRecord:
        item = await self.repo.get_item(item_id)
        if item is None:
            raise NotFound(f"item {item_id} not found")
        return item

    async def feature_vector(self, item: ItemRecord) -> FeatureVector:
        """
        Cached vector, else the stored one, else computed now and persisted.

        A failed write-back is logged; the computed vector is still used.
        """
        cached = self.caches.features.get(item.item_id)
        if cached is not None:
            return cached
        if item.feature_vector:
            vec = complete_vector(item.feature_vector)
        else:
            vec = item_to_feature_vector(item, now=self.clock())
            log.debug("computed feature vector for item %s", item.item_id)
            try:
                await self.repo.upsert_item(item.item_id, feature_vector=vec)
            except UpstreamPersistenceFailure as exc:
                log.warning("could not persist feature vector for %s: %s", item.item_id, exc)
        self.caches.features.set(item.item_id, vec)
        return vec

    def peek_feature_vector(self, item: ItemRecord) -> FeatureVector:
        """Feature vector for scoring a candidate pool; never writes to the store."""
        cached = self.caches.features.get(item.item_id)
        if cached is not None:
            return cached
        if item.feature_vector:
            vec = complete_vector(item.feature_vector)
        else:
            vec = item_to_feature_vector(item, now=self.clock())
        self.caches.features.set(item.item_id, vec)
        return vec

    async def candidate_pool(self, limit: int) -> list[ItemRecord]:
        key = f"movies_popularity_{limit}"
        cached = self.caches.queries.get(key)
        if cached is not None:
            return cached
        try:
            items = await self.repo.top_by_popularity(limit)
        except UpstreamPersistenceFailure as exc:
            raise CatalogUnavailable(f"candidate pool unavailable: {exc}") from exc
        self.caches.queries.set(key, items)
        return items

    async def record_item_interaction(self, item_id: ItemId, *, positive: bool) -> None:
        await self.repo.record_item_interaction(item_id, positive=positive)

    async def backfill_feature_vectors(self, limit: int = 100) -> int:
        """Compute and store vectors for items that lack one. Returns the count."""
        items = await self.repo.missing_feature_vectors(limit)
        if not items:
            log.info("no movies need feature vector updates")
            return 0
        now = self.clock()
        for item in items:
            vec = item_to_feature_vector(item, now=now)
            await self.repo.upsert_item(item.item_id, feature_vector=vec)
            self.caches.features.set(item.item_id, vec)
        log.info("updated feature vectors for %d movies", len(items))
        return len(items)
