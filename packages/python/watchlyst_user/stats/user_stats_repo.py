from __future__ import annotations

from datetime import datetime
from typing import Protocol

from watchlyst_core.config import TABLE_USER_STATS
from watchlyst_core.pgrest import run_store_call
from watchlyst_core.timeutils import utcnow
from watchlyst_core.types import POSITIVE_GESTURES, Gesture, UserStats


def bump_stats(
    stats: UserStats,
    gesture: Gesture,
    now: datetime,
    interaction_id: str | None = None,
) -> UserStats:
    """
    Stats after one more swipe of `gesture`.

    A repeat of the interaction that was counted last returns `stats`
    unchanged, so a redelivered event is counted once.
    """
    if interaction_id is not None and stats.last_interaction_id == interaction_id:
        return stats
    by_action = dict(stats.swipes_by_action)
    by_action[gesture.value] = by_action.get(gesture.value, 0) + 1
    total = stats.total_swipes + 1
    positive = sum(by_action.get(g.value, 0) for g in POSITIVE_GESTURES)
    return UserStats(
        total_swipes=total,
        like_ratio=positive / total,
        swipes_by_action=by_action,
        last_swipe_at=now,
        last_interaction_id=interaction_id,
    )


class UserStatsRepo(Protocol):
    async def get_user_stats(self, user_id: str) -> UserStats: ...

    async def increment_user_stats(
        self, user_id: str, gesture: Gesture, interaction_id: str | None = None
    ) -> UserStats: ...


class SupabaseUserStatsRepo:
    """
    Per-user swipe counters. increment_user_stats is a read-modify-write;
    callers serialize it per user.
    """

    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get_user_stats(self, user_id: str) -> UserStats:
        return await run_store_call(self._get_user_stats_sync, user_id)

    async def increment_user_stats(
        self, user_id: str, gesture: Gesture, interaction_id: str | None = None
    ) -> UserStats:
        return await run_store_call(
            self._increment_user_stats_sync, user_id, gesture, interaction_id
        )

    # ---------- Private sync impls ----------
    def _get_user_stats_sync(self, user_id: str) -> UserStats:
        res = (
            self.client.table(TABLE_USER_STATS)
            .select("total_swipes, like_ratio, swipes_by_action, last_swipe_at, last_interaction_id")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return UserStats.model_validate(rows[0]) if rows else UserStats()

    def _increment_user_stats_sync(
        self, user_id: str, gesture: Gesture, interaction_id: str | None
    ) -> UserStats:
        current = self._get_user_stats_sync(user_id)
        updated = bump_stats(current, gesture, utcnow(), interaction_id)
        if updated is current:
            return current
        payload = {"user_id": user_id, **updated.model_dump(mode="json")}
        self.client.table(TABLE_USER_STATS).upsert(payload, on_conflict="user_id").execute()
        return updated
