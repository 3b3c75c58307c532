from watchlyst_core import config


def exploration_rate(
    total_interactions: int,
    like_ratio: float,
    base_rate: float = config.DEFAULT_BASE_EXPLORATION_RATE,
) -> float:
    # new users explore more; the bonus fades to 0 over the first NEW_USER_WINDOW interactions
    new_user_bonus = (
        max(0.0, (config.NEW_USER_WINDOW - total_interactions) / config.NEW_USER_WINDOW)
        * config.NEW_USER_MAX_BONUS
    )
    # lopsided like ratios (echo chamber or nothing fits) get more exploration
    like_ratio_adjustment = (
        abs(like_ratio - config.OPTIMAL_LIKE_RATIO) * config.LIKE_RATIO_SENSITIVITY
    )
    return min(config.MAX_EXPLORATION_RATE, base_rate + new_user_bonus + like_ratio_adjustment)
