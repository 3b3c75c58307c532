from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from watchlyst_core import config

ItemId = str
FeatureVector = dict[str, float]
PreferenceVector = dict[str, float]


class Gesture(str, Enum):
    LOVED = "loved"  # double tap
    LIKED = "liked"  # swipe up
    SEEN = "seen"  # swipe right
    NOT_SEEN = "not_seen"  # swipe left
    DISLIKED = "disliked"  # swipe down


POSITIVE_GESTURES = frozenset({Gesture.LOVED, Gesture.LIKED})


class ItemRecord(BaseModel):
    """Catalog item as read from the store. Unknown columns are ignored."""

    model_config = ConfigDict(extra="ignore")

    item_id: ItemId
    title: str | None = None
    genre_ids: list[int] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    popularity: float = 0.0
    release_date: str | None = None
    vote_average: float = 0.0
    feature_vector: FeatureVector | None = None

    @field_validator("genre_ids", "genres", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v

    @field_validator("popularity", "vote_average", mode="before")
    @classmethod
    def _null_number(cls, v):
        return 0.0 if v is None else v


class LearningMetadata(BaseModel):
    learning_rate: float = config.DEFAULT_LEARNING_RATE
    decay_factor: float = config.DEFAULT_DECAY_FACTOR
    total_updates: int = 0
    model_confidence: float = 0.0
    # id of the interaction behind the latest applied update
    last_interaction_id: str | None = None


class PreferenceState(BaseModel):
    user_id: str
    preference_vector: PreferenceVector
    learning_metadata: LearningMetadata = Field(default_factory=LearningMetadata)
    updated_at: datetime | None = None


class UserStats(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_swipes: int = 0
    like_ratio: float = 0.0
    swipes_by_action: dict[str, int] = Field(default_factory=dict)
    last_swipe_at: datetime | None = None
    last_interaction_id: str | None = None
