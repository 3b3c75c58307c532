from __future__ import annotations

from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from watchlyst_core.config import ALGORITHM_NAME
from watchlyst_core.types import ItemId, PreferenceState, UserStats
from watchlyst_user.interactions.schemas import InteractionRecord


class RecommendationReason(str, Enum):
    CATEGORY_MATCH = "category_match"
    TRENDING = "trending"
    EXPLORATION = "exploration"
    PREFERENCE_MATCH = "preference_match"


class QueueEntry(BaseModel):
    item_id: ItemId
    score: float
    reason: RecommendationReason
    position: int


class QueueMetadata(BaseModel):
    generated_at: datetime
    algorithm: str = ALGORITHM_NAME
    total_scored: int
    average_score: float
    exploration_rate: float


class NextRefresh(BaseModel):
    after_swipes: int
    scheduled_at: datetime | None = None


class RecommendationQueue(BaseModel):
    """A user's full queue; always replaced as a whole."""

    user_id: str
    queue: list[QueueEntry] = Field(default_factory=list)
    metadata: QueueMetadata
    next_refresh: NextRefresh
    updated_at: datetime

    def distribution(self) -> dict[str, int]:
        counts = Counter(e.reason.value for e in self.queue)
        return {r.value: counts.get(r.value, 0) for r in RecommendationReason}

    def item_ids(self) -> list[ItemId]:
        return [e.item_id for e in self.queue]


class ScoringDetails(BaseModel):
    has_data: bool
    last_interaction: InteractionRecord | None = None
    preferences: PreferenceState | None = None
    stats: UserStats | None = None

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
