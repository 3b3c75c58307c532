from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping

import numpy as np

from .dimensions import DIMENSION_COUNT, to_array


@dataclass(frozen=True)
class ScoreResult:
    base_score: float
    exploration_bonus: float
    final_score: float
    dot_product: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def base_score(preferences: Mapping[str, float], item_vector: Mapping[str, float]) -> float:
    """Dot product over the nine dimensions, divided by the dimension count."""
    return float(np.dot(to_array(preferences), to_array(item_vector))) / DIMENSION_COUNT


def score(
    preferences: Mapping[str, float],
    item_vector: Mapping[str, float],
    exploration_rate: float = 0.0,
    is_exploration: bool = False,
    *,
    rng: np.random.Generator | None = None,
) -> ScoreResult:
    """
    Score an item for a user.

    The exploration bonus is uniform in [0, exploration_rate) and only drawn
    for exploration candidates, from the injected generator.
    """
    base = base_score(preferences, item_vector)
    bonus = 0.0
    if is_exploration and exploration_rate > 0:
        if rng is None:
            rng = np.random.default_rng()
        bonus = float(rng.random()) * exploration_rate
    return ScoreResult(
        base_score=base,
        exploration_bonus=bonus,
        final_score=base + bonus,
        dot_product=base * DIMENSION_COUNT,
    )
