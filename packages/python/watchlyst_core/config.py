ALGORITHM_NAME = "content_ema_v1"

# Learning defaults
DEFAULT_LEARNING_RATE = 0.1
DEFAULT_DECAY_FACTOR = 0.95
DEFAULT_DECAY_INTERVAL = 100  # interactions per decay step
DEFAULT_MIN_LEARNING_RATE = 0.01

# Exploration
DEFAULT_BASE_EXPLORATION_RATE = 0.15
MAX_EXPLORATION_RATE = 0.3
NEW_USER_WINDOW = 50  # interactions until the new-user bonus is gone
NEW_USER_MAX_BONUS = 0.1
OPTIMAL_LIKE_RATIO = 0.5
LIKE_RATIO_SENSITIVITY = 0.2

# Feature extraction
POPULARITY_CEILING = 1000.0
RECENCY_WINDOW_YEARS = 10.0
RATING_SCALE = 10.0

# Queues
DEFAULT_QUEUE_SIZE = 50
DEFAULT_REFRESH_EVERY = 5
DEFAULT_INITIAL_POOL_SIZE = 500
DEFAULT_REFRESH_POOL_SIZE = 1000
DEFAULT_CATEGORY_BOOST = 0.5

# Store tables
TABLE_MOVIES = "movies"
TABLE_PREFERENCES = "user_preferences"
TABLE_INTERACTIONS = "interactions"
TABLE_USER_STATS = "user_stats"
TABLE_RECOMMENDATIONS = "recommendations"
