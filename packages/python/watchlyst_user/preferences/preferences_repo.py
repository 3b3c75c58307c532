from __future__ import annotations

from typing import Protocol

from watchlyst_core.config import TABLE_PREFERENCES
from watchlyst_core.pgrest import run_store_call
from watchlyst_core.timeutils import ensure_ts, utcnow
from watchlyst_core.types import LearningMetadata, PreferenceState, PreferenceVector


class PreferencesRepo(Protocol):
    async def get_preferences(self, user_id: str) -> PreferenceState | None: ...

    async def upsert_preferences(
        self,
        user_id: str,
        *,
        preference_vector: PreferenceVector | None = None,
        learning_metadata: LearningMetadata | None = None,
    ) -> None: ...


class SupabasePreferencesRepo:
    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get_preferences(self, user_id: str) -> PreferenceState | None:
        return await run_store_call(self._get_preferences_sync, user_id)

    async def upsert_preferences(
        self,
        user_id: str,
        *,
        preference_vector: PreferenceVector | None = None,
        learning_metadata: LearningMetadata | None = None,
    ) -> None:
        await run_store_call(
            self._upsert_preferences_sync, user_id, preference_vector, learning_metadata
        )

    # ---------- Private sync impls ----------
    def _get_preferences_sync(self, user_id: str) -> PreferenceState | None:
        res = (
            self.client.table(TABLE_PREFERENCES)
            .select("user_id, preference_vector, learning_metadata, updated_at")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows:
            return None
        r = rows[0]
        return PreferenceState(
            user_id=user_id,
            preference_vector=r.get("preference_vector") or {},
            learning_metadata=LearningMetadata.model_validate(r.get("learning_metadata") or {}),
            updated_at=ensure_ts(r.get("updated_at")),
        )

    def _upsert_preferences_sync(
        self,
        user_id: str,
        preference_vector: PreferenceVector | None,
        learning_metadata: LearningMetadata | None,
    ) -> None:
        # merge: only provided columns are written
        payload: dict[str, object] = {
            "user_id": user_id,
            "updated_at": utcnow().isoformat(),
        }
        if preference_vector is not None:
            payload["preference_vector"] = preference_vector
        if learning_metadata is not None:
            payload["learning_metadata"] = learning_metadata.model_dump(mode="json")
        self.client.table(TABLE_PREFERENCES).upsert(payload, on_conflict="user_id").execute()
