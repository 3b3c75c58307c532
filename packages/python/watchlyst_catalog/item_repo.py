from __future__ import annotations

from typing import Protocol

from watchlyst_core.config import TABLE_MOVIES
from watchlyst_core.pgrest import run_store_call
from watchlyst_core.timeutils import utcnow
from watchlyst_core.types import FeatureVector, ItemId, ItemRecord

ITEM_COLUMNS = "item_id, title, genre_ids, genres, popularity, release_date, vote_average, feature_vector"


class ItemRepo(Protocol):
    async def get_item(self, item_id: ItemId) -> ItemRecord | None: ...

    async def upsert_item(self, item_id: ItemId, *, feature_vector: FeatureVector) -> None: ...

    async def top_by_popularity(self, limit: int) -> list[ItemRecord]: ...

    async def missing_feature_vectors(self, limit: int) -> list[ItemRecord]: ...

    async def record_item_interaction(self, item_id: ItemId, *, positive: bool) -> None: ...


class SupabaseItemRepo:
    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get_item(self, item_id: ItemId) -> ItemRecord | None:
        return await run_store_call(self._get_item_sync, item_id)

    async def upsert_item(self, item_id: ItemId, *, feature_vector: FeatureVector) -> None:
        await run_store_call(self._upsert_item_sync, item_id, feature_vector)

    async def top_by_popularity(self, limit: int) -> list[ItemRecord]:
        return await run_store_call(self._top_by_popularity_sync, limit)

    async def missing_feature_vectors(self, limit: int) -> list[ItemRecord]:
        return await run_store_call(self._missing_feature_vectors_sync, limit)

    async def record_item_interaction(self, item_id: ItemId, *, positive: bool) -> None:
        await run_store_call(self._record_item_interaction_sync, item_id, positive)

    # ---------- Private sync impls ----------
    def _get_item_sync(self, item_id: ItemId) -> ItemRecord | None:
        res = (
            self.client.table(TABLE_MOVIES)
            .select(ITEM_COLUMNS)
            .eq("item_id", item_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return ItemRecord.model_validate(rows[0]) if rows else None

    def _upsert_item_sync(self, item_id: ItemId, feature_vector: FeatureVector) -> None:
        payload = {
            "item_id": item_id,
            "feature_vector": feature_vector,
            "updated_at": utcnow().isoformat(),
        }
        self.client.table(TABLE_MOVIES).upsert(payload, on_conflict="item_id").execute()

    def _top_by_popularity_sync(self, limit: int) -> list[ItemRecord]:
        res = (
            self.client.table(TABLE_MOVIES)
            .select(ITEM_COLUMNS)
            .order("popularity", desc=True)
            .limit(limit)
            .execute()
        )
        return [ItemRecord.model_validate(r) for r in (res.data or [])]

    def _missing_feature_vectors_sync(self, limit: int) -> list[ItemRecord]:
        res = (
            self.client.table(TABLE_MOVIES)
            .select(ITEM_COLUMNS)
            .is_("feature_vector", None)
            .limit(limit)
            .execute()
        )
        return [ItemRecord.model_validate(r) for r in (res.data or [])]

    def _record_item_interaction_sync(self, item_id: ItemId, positive: bool) -> None:
        # Counters are informational; read-modify-write is acceptable here.
        res = (
            self.client.table(TABLE_MOVIES)
            .select("total_interactions, positive_interactions")
            .eq("item_id", item_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows:
            return
        row = rows[0]
        updates = {
            "total_interactions": int(row.get("total_interactions") or 0) + 1,
            "positive_interactions": int(row.get("positive_interactions") or 0) + int(positive),
            "last_interaction_at": utcnow().isoformat(),
        }
        self.client.table(TABLE_MOVIES).update(updates).eq("item_id", item_id).execute()
