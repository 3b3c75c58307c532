from fastapi import APIRouter, Depends

from watchlyst_core.errors import DomainError
from watchlyst_recommendation.engine import RecommendationEngine
from watchlyst_recommendation.types import RecommendationQueue

from app.deps.deps import get_engine, http_error
from app.deps.supabase_client import get_current_user_id
from app.schemas import InitialQueueRequest, QueueResponse

router = APIRouter(prefix="/v1/recommendations", tags=["recommendations"])


def _to_response(doc: RecommendationQueue) -> QueueResponse:
    body = doc.model_dump(mode="json")
    return QueueResponse(
        user_id=doc.user_id,
        count=len(doc.queue),
        queue=body["queue"],
        metadata=body["metadata"],
        next_refresh=body["next_refresh"],
        distribution=doc.distribution(),
    )


@router.post("/initial", response_model=QueueResponse)
async def generate_initial(
    req: InitialQueueRequest,
    user_id: str = Depends(get_current_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        doc = await engine.generate_initial_queue(user_id, req.categories)
    except DomainError as exc:
        raise http_error(exc)
    return _to_response(doc)


@router.post("/refresh", response_model=QueueResponse)
async def refresh(
    user_id: str = Depends(get_current_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        doc = await engine.refresh_queue(user_id)
    except DomainError as exc:
        raise http_error(exc)
    return _to_response(doc)


@router.get("/scoring-details")
async def scoring_details(
    user_id: str = Depends(get_current_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        details = await engine.get_scoring_details(user_id)
    except DomainError as exc:
        raise http_error(exc)
    return details.to_public()
