from __future__ import annotations

from typing import Protocol

from watchlyst_core.config import TABLE_RECOMMENDATIONS
from watchlyst_core.pgrest import run_store_call

from .types import RecommendationQueue


class RecommendationRepo(Protocol):
    async def put_recommendation_queue(self, queue: RecommendationQueue) -> None: ...

    async def get_recommendation_queue(self, user_id: str) -> RecommendationQueue | None: ...


class SupabaseRecommendationRepo:
    """One row per user; every write replaces the whole queue document."""

    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def put_recommendation_queue(self, queue: RecommendationQueue) -> None:
        await run_store_call(self._put_sync, queue)

    async def get_recommendation_queue(self, user_id: str) -> RecommendationQueue | None:
        return await run_store_call(self._get_sync, user_id)

    # ---------- Private sync impls ----------
    def _put_sync(self, queue: RecommendationQueue) -> None:
        payload = queue.model_dump(mode="json")
        self.client.table(TABLE_RECOMMENDATIONS).upsert(payload, on_conflict="user_id").execute()

    def _get_sync(self, user_id: str) -> RecommendationQueue | None:
        res = (
            self.client.table(TABLE_RECOMMENDATIONS)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return RecommendationQueue.model_validate(rows[0]) if rows else None
