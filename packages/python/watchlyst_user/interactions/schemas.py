from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from watchlyst_core.types import Gesture, ItemId, PreferenceVector


class InteractionCreate(BaseModel):
    user_id: str
    item_id: ItemId
    gesture: str  # validated against the weight table by the service
    interaction_id: str | None = None  # idempotency key; generated when absent


class ScoringSnapshot(BaseModel):
    base_score: float  # before the update
    gesture_weight: float
    effective_learning_rate: float
    exploration_bonus: float = 0.0
    final_score: float  # after the update
    preference_vector_before: PreferenceVector
    preference_vector_after: PreferenceVector


class InteractionRecord(BaseModel):
    interaction_id: str
    user_id: str
    item_id: ItemId
    gesture: Gesture
    scoring_data: ScoringSnapshot | None = None
    created_at: datetime

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class InteractionResult(BaseModel):
    """What the caller learns about a processed interaction."""

    interaction_id: str
    user_id: str
    item_id: ItemId
    gesture: Gesture
    scoring_data: ScoringSnapshot | None = None  # None if a replayed record is no longer at hand
    total_updates: int
    model_confidence: float
    total_swipes: int
    queue_refreshed: bool = False
