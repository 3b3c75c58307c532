from __future__ import annotations

from typing import Protocol, Sequence

from watchlyst_core.config import TABLE_INTERACTIONS
from watchlyst_core.errors import NotFound
from watchlyst_core.pgrest import run_store_call
from watchlyst_core.types import ItemId

from .schemas import InteractionRecord, ScoringSnapshot

MAX_HISTORY = 5000  # safety cap for seen-item reads


class InteractionsRepo(Protocol):
    async def append_interaction(self, record: InteractionRecord) -> str: ...

    async def update_interaction(self, interaction_id: str, snapshot: ScoringSnapshot) -> None: ...

    async def bulk_upsert(self, records: Sequence[InteractionRecord]) -> None: ...

    async def seen_item_ids(self, user_id: str) -> set[ItemId]: ...

    async def last_interaction(self, user_id: str) -> InteractionRecord | None: ...


class SupabaseInteractionsRepo:
    """Append-only interaction log; writes upsert on interaction_id."""

    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def append_interaction(self, record: InteractionRecord) -> str:
        return await run_store_call(self._append_sync, record)

    async def update_interaction(self, interaction_id: str, snapshot: ScoringSnapshot) -> None:
        await run_store_call(self._update_sync, interaction_id, snapshot)

    async def bulk_upsert(self, records: Sequence[InteractionRecord]) -> None:
        await run_store_call(self._bulk_upsert_sync, list(records))

    async def seen_item_ids(self, user_id: str) -> set[ItemId]:
        return await run_store_call(self._seen_item_ids_sync, user_id)

    async def last_interaction(self, user_id: str) -> InteractionRecord | None:
        return await run_store_call(self._last_interaction_sync, user_id)

    # ---------- Private sync impls ----------
    def _append_sync(self, record: InteractionRecord) -> str:
        res = (
            self.client.table(TABLE_INTERACTIONS)
            .upsert(record.to_row(), on_conflict="interaction_id")
            .execute()
        )
        rows = res.data or []
        return str(rows[0]["interaction_id"]) if rows else record.interaction_id

    def _update_sync(self, interaction_id: str, snapshot: ScoringSnapshot) -> None:
        res = (
            self.client.table(TABLE_INTERACTIONS)
            .update({"scoring_data": snapshot.model_dump(mode="json")})
            .eq("interaction_id", interaction_id)
            .execute()
        )
        if not (res.data or []):
            raise NotFound(f"interaction {interaction_id} not found")

    def _bulk_upsert_sync(self, records: list[InteractionRecord]) -> None:
        if not records:
            return
        # one row per interaction_id; a later copy wins
        by_id = {r.interaction_id: r for r in records}
        rows = [r.to_row() for r in by_id.values()]
        self.client.table(TABLE_INTERACTIONS).upsert(rows, on_conflict="interaction_id").execute()

    def _seen_item_ids_sync(self, user_id: str) -> set[ItemId]:
        res = (
            self.client.table(TABLE_INTERACTIONS)
            .select("item_id")
            .eq("user_id", user_id)
            .limit(MAX_HISTORY)
            .execute()
        )
        return {str(r["item_id"]) for r in (res.data or [])}

    def _last_interaction_sync(self, user_id: str) -> InteractionRecord | None:
        res = (
            self.client.table(TABLE_INTERACTIONS)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return InteractionRecord.model_validate(rows[0]) if rows else None
