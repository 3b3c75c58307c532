from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping

from watchlyst_core.settings import EngineSettings
from watchlyst_core.timeutils import utcnow
from watchlyst_core.types import Gesture, LearningMetadata, PreferenceState
from watchlyst_scoring.dimensions import complete_vector, empty_vector
from watchlyst_scoring.learning import apply_interaction, model_confidence, seed_preference_vector
from watchlyst_scoring.scoring import score
from watchlyst_user.interactions.schemas import ScoringSnapshot

from .preferences_repo import PreferencesRepo


@dataclass(frozen=True)
class LearningOutcome:
    state: PreferenceState
    snapshot: ScoringSnapshot


class PreferenceLearningService:
    """
    Owns the read-modify-write of a user's preference vector.

    Not safe to run concurrently for the same user; the engine holds a
    per-user lock around load -> learn -> save.
    """

    def __init__(
        self,
        repo: PreferencesRepo,
        settings: EngineSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.settings = settings
        self.clock = clock

    def default_state(self, user_id: str, categories: list[str] | None = None) -> PreferenceState:
        vector = (
            seed_preference_vector(categories, self.settings.category_boost)
            if categories
            else empty_vector()
        )
        return PreferenceState(
            user_id=user_id,
            preference_vector=vector,
            learning_metadata=LearningMetadata(
                learning_rate=self.settings.learning_rate,
                decay_factor=self.settings.decay_factor,
            ),
        )

    async def get_state(self, user_id: str) -> PreferenceState:
        """Stored state, or a fresh default for users with no record yet."""
        state = await self.repo.get_preferences(user_id)
        if state is None:
            return self.default_state(user_id)
        state.preference_vector = complete_vector(state.preference_vector)
        return state

    def learn(
        self,
        state: PreferenceState,
        item_vector: Mapping[str, float],
        gesture: Gesture,
        interaction_id: str | None = None,
    ) -> LearningOutcome:
        before = complete_vector(state.preference_vector)
        meta = state.learning_metadata
        score_before = score(before, item_vector)
        update = apply_interaction(
            before,
            item_vector,
            gesture,
            meta.learning_rate,
            meta.total_updates,
            decay_factor=meta.decay_factor,
            decay_interval=self.settings.decay_interval,
            min_rate=self.settings.min_learning_rate,
        )
        score_after = score(update.preferences, item_vector)

        total = meta.total_updates + 1
        new_meta = meta.model_copy(
            update={
                "total_updates": total,
                "model_confidence": model_confidence(total),
                "last_interaction_id": interaction_id,
            }
        )
        new_state = PreferenceState(
            user_id=state.user_id,
            preference_vector=update.preferences,
            learning_metadata=new_meta,
            updated_at=self.clock(),
        )
        snapshot = ScoringSnapshot(
            base_score=score_before.base_score,
            gesture_weight=update.gesture_weight,
            effective_learning_rate=update.effective_learning_rate,
            exploration_bonus=0.0,
            final_score=score_after.final_score,
            preference_vector_before=before,
            preference_vector_after=update.preferences,
        )
        return LearningOutcome(state=new_state, snapshot=snapshot)

    @staticmethod
    def already_applied(state: PreferenceState, interaction_id: str) -> bool:
        """True when `state` already reflects the interaction `interaction_id`."""
        return state.learning_metadata.last_interaction_id == interaction_id

    async def save(self, state: PreferenceState) -> None:
        await self.repo.upsert_preferences(
            state.user_id,
            preference_vector=complete_vector(state.preference_vector),
            learning_metadata=state.learning_metadata,
        )
