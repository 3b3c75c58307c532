from fastapi import APIRouter, Depends

from watchlyst_core.errors import DomainError
from watchlyst_recommendation.engine import RecommendationEngine
from watchlyst_user.interactions.schemas import InteractionCreate, InteractionResult

from app.deps.deps import get_engine, http_error
from app.deps.supabase_client import get_current_user_id
from app.schemas import InteractionCreateRequest

router = APIRouter(prefix="/v1/interactions", tags=["interactions"])


@router.post("", status_code=201, response_model=InteractionResult)
async def create_interaction(
    req: InteractionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    event = InteractionCreate(user_id=user_id, **req.model_dump())
    try:
        return await engine.record_interaction(
            event.user_id,
            event.item_id,
            event.gesture,
            interaction_id=event.interaction_id,
        )
    except DomainError as exc:
        raise http_error(exc)
