from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping

import numpy as np

from watchlyst_core import config
from watchlyst_core.errors import InvalidGesture
from watchlyst_core.types import Gesture, PreferenceVector

from .dimensions import category_dimension, empty_vector, from_array, to_array

GESTURE_WEIGHTS: dict[Gesture, float] = {
    Gesture.LOVED: 3.0,
    Gesture.LIKED: 1.5,
    Gesture.SEEN: 0.0,
    Gesture.NOT_SEEN: 0.0,
    Gesture.DISLIKED: -2.5,
}


def parse_gesture(value: str | Gesture) -> Gesture:
    if isinstance(value, Gesture):
        return value
    try:
        return Gesture(str(value).strip().lower())
    except ValueError:
        raise InvalidGesture(f"unknown gesture: {value!r}")


def effective_learning_rate(
    learning_rate: float,
    total_interactions: int,
    *,
    decay_factor: float = config.DEFAULT_DECAY_FACTOR,
    decay_interval: int = config.DEFAULT_DECAY_INTERVAL,
    min_rate: float = 0.0,
) -> float:
    steps = max(0, int(total_interactions)) // decay_interval
    return max(min_rate, learning_rate * decay_factor**steps)


def model_confidence(total_updates: int) -> float:
    # ~0.5 at 20 updates, ~0.8 at 100, capped at 1
    return min(1.0, math.log10(max(0, total_updates) + 1) / 2.5)


@dataclass(frozen=True)
class PreferenceUpdate:
    preferences: PreferenceVector
    gesture_weight: float
    effective_learning_rate: float


def apply_interaction(
    preferences: Mapping[str, float],
    item_vector: Mapping[str, float],
    gesture: str | Gesture,
    learning_rate: float = config.DEFAULT_LEARNING_RATE,
    total_interactions: int = 0,
    *,
    decay_factor: float = config.DEFAULT_DECAY_FACTOR,
    decay_interval: int = config.DEFAULT_DECAY_INTERVAL,
    min_rate: float = 0.0,
) -> PreferenceUpdate:
    """
    EMA step toward (positive weight) or away from (negative weight) the item:

        updated[d] = clamp(current[d] + rate * weight * (item[d] - current[d]), -1, 1)

    A zero-weight gesture returns the current vector unchanged.
    """
    g = parse_gesture(gesture)
    weight = GESTURE_WEIGHTS[g]
    rate = effective_learning_rate(
        learning_rate,
        total_interactions,
        decay_factor=decay_factor,
        decay_interval=decay_interval,
        min_rate=min_rate,
    )
    current = to_array(preferences)
    target = to_array(item_vector)
    updated = np.clip(current + rate * weight * (target - current), -1.0, 1.0)
    return PreferenceUpdate(
        preferences=from_array(updated),
        gesture_weight=weight,
        effective_learning_rate=rate,
    )


def seed_preference_vector(
    categories: list[str], boost: float = config.DEFAULT_CATEGORY_BOOST
) -> PreferenceVector:
    """Fresh preference vector with each selected category's genre set to `boost`."""
    prefs = empty_vector()
    for category in categories:
        dim = category_dimension(category)
        if dim is not None:
            prefs[dim] = boost
    return prefs
