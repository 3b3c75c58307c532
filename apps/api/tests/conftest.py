from datetime import datetime, timezone
from typing import Any, Dict, List

import os

import pytest
from fastapi.testclient import TestClient

from watchlyst_core.errors import CatalogUnavailable, DomainError
from watchlyst_core.types import Gesture
from watchlyst_recommendation.types import (
    NextRefresh,
    QueueEntry,
    QueueMetadata,
    RecommendationQueue,
    RecommendationReason,
    ScoringDetails,
)
from watchlyst_scoring.dimensions import empty_vector
from watchlyst_scoring.learning import GESTURE_WEIGHTS, parse_gesture
from watchlyst_user.interactions.schemas import InteractionResult, ScoringSnapshot

TEST_USER_ID = "00000000-0000-0000-0000-000000000000"
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


class StubEngine:
    """Stands in for RecommendationEngine; records calls and returns canned results."""

    def __init__(self):
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.error: DomainError | None = None
        self.swipes = 0

    def _check(self):
        if self.error is not None:
            raise self.error

    async def record_interaction(self, user_id, item_id, gesture, *, interaction_id=None):
        g = parse_gesture(gesture)
        self._check()
        self.swipes += 1
        self.calls.append(("record_interaction", {"user_id": user_id, "item_id": item_id}))
        v = empty_vector()
        return InteractionResult(
            interaction_id=interaction_id or "generated-id",
            user_id=user_id,
            item_id=item_id,
            gesture=g,
            scoring_data=ScoringSnapshot(
                base_score=0.0,
                gesture_weight=GESTURE_WEIGHTS[g],
                effective_learning_rate=0.1,
                final_score=0.01,
                preference_vector_before=v,
                preference_vector_after=v,
            ),
            total_updates=self.swipes,
            model_confidence=0.12,
            total_swipes=self.swipes,
            queue_refreshed=self.swipes % 5 == 0,
        )

    def _queue(self, user_id, reasons):
        return RecommendationQueue(
            user_id=user_id,
            queue=[
                QueueEntry(item_id=f"m{i}", score=1.0 - i / 10, reason=r, position=i)
                for i, r in enumerate(reasons)
            ],
            metadata=QueueMetadata(
                generated_at=T0, total_scored=20, average_score=0.8, exploration_rate=0.15
            ),
            next_refresh=NextRefresh(after_swipes=5),
            updated_at=T0,
        )

    async def generate_initial_queue(self, user_id, categories):
        self._check()
        self.calls.append(("generate_initial_queue", {"user_id": user_id, "categories": categories}))
        R = RecommendationReason
        return self._queue(user_id, [R.CATEGORY_MATCH, R.CATEGORY_MATCH, R.TRENDING, R.EXPLORATION])

    async def refresh_queue(self, user_id):
        self._check()
        self.calls.append(("refresh_queue", {"user_id": user_id}))
        R = RecommendationReason
        return self._queue(user_id, [R.PREFERENCE_MATCH, R.EXPLORATION])

    async def get_scoring_details(self, user_id):
        self._check()
        if not self.swipes:
            return ScoringDetails(has_data=False)
        return ScoringDetails(has_data=True)


@pytest.fixture()
def user_id():
    return TEST_USER_ID


@pytest.fixture()
def engine():
    return StubEngine()


@pytest.fixture()
def test_client(engine):
    os.environ.setdefault("WATCHLYST_SKIP_ENGINE_INIT", "1")

    from app.main import app  # type: ignore
    from app.deps.deps import get_engine  # type: ignore
    from app.deps.supabase_client import get_current_user_id  # type: ignore

    def _fake_user_id():
        return TEST_USER_ID

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_current_user_id] = _fake_user_id

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def catalog_outage():
    return CatalogUnavailable("candidate pool unavailable: movies read timed out")


@pytest.fixture()
def gestures():
    return [g.value for g in Gesture]
