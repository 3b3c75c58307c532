from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from watchlyst_core import config


class EngineSettings(BaseSettings):
    """Tunables for the scoring/learning engine. Env vars use the WATCHLYST_ prefix."""

    # learning
    learning_rate: float = config.DEFAULT_LEARNING_RATE
    decay_factor: float = config.DEFAULT_DECAY_FACTOR
    decay_interval: int = config.DEFAULT_DECAY_INTERVAL
    min_learning_rate: float = config.DEFAULT_MIN_LEARNING_RATE
    # exploration
    base_exploration_rate: float = config.DEFAULT_BASE_EXPLORATION_RATE
    # queues
    refresh_every: int = Field(default=config.DEFAULT_REFRESH_EVERY, ge=1)
    queue_size: int = Field(default=config.DEFAULT_QUEUE_SIZE, ge=1)
    initial_pool_size: int = config.DEFAULT_INITIAL_POOL_SIZE
    refresh_pool_size: int = config.DEFAULT_REFRESH_POOL_SIZE
    category_boost: float = config.DEFAULT_CATEGORY_BOOST
    initial_trending_popularity: float = 100.0
    initial_trending_rating: float = 7.0
    refresh_trending_popularity: float = 200.0
    refresh_trending_rating: float = 7.5
    reason_quotas: dict[str, float] = Field(
        default_factory=lambda: {
            "category_match": 0.60,
            "trending": 0.25,
            "exploration": 0.15,
        }
    )
    reason_bonus: dict[str, float] = Field(
        default_factory=lambda: {"category_match": 0.5, "trending": 0.3}
    )
    # caches
    feature_cache_size: int = 500
    feature_cache_ttl_sec: int = 24 * 3600
    query_cache_size: int = 100
    query_cache_ttl_sec: int = 3600
    max_cache_entries: int = 1000
    cache_check_interval_sec: float = 60.0
    # batching
    batch_interaction_writes: bool = True
    batch_max_size: int = Field(default=500, ge=1)
    batch_interval_sec: float = 5.0
    batch_retry_base_sec: float = 0.5
    batch_retry_cap_sec: float = 30.0

    model_config = SettingsConfigDict(
        env_prefix="WATCHLYST_", env_file=".env", extra="ignore"
    )
