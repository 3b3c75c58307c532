from .routes_interactions import router as interactions_router
from .routes_recommendations import router as recommendations_router

all_routers = [
    interactions_router,
    recommendations_router,
]
