from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator


class InteractionCreateRequest(BaseModel):
    item_id: str
    gesture: str = Field(..., examples=["loved"])
    interaction_id: str | None = None


class InitialQueueRequest(BaseModel):
    categories: List[str] = Field(..., examples=[["action", "sci-fi"]])

    @field_validator("categories")
    def validate_categories(cls, v):
        cleaned = [c.strip() for c in v if c and c.strip()]
        if not cleaned:
            raise ValueError("At least one category is required")
        return cleaned


class QueueResponse(BaseModel):
    user_id: str
    count: int
    queue: list[dict]
    metadata: dict
    next_refresh: dict
    distribution: dict[str, int]
