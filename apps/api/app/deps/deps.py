from typing import Any, cast

from fastapi import HTTPException, Request, status

from watchlyst_core.errors import DomainError
from watchlyst_recommendation.engine import RecommendationEngine


def _get_state_attr(request: Request, name: str, error_detail: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_detail,
        )
    return value


def get_engine(request: Request) -> RecommendationEngine:
    return cast(
        RecommendationEngine,
        _get_state_attr(request, "engine", "Recommendation engine is initializing."),
    )


def get_supabase(request: Request) -> Any:
    return _get_state_attr(request, "supabase", "Supabase client not initialized")


def http_error(exc: DomainError) -> HTTPException:
    """Normalize domain errors into HTTP exceptions."""
    return HTTPException(
        status_code=exc.status,
        detail={"code": exc.code, "message": str(exc), "retryable": exc.retryable},
    )
