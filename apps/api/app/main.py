import logging
import os
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from pydantic_settings import BaseSettings, SettingsConfigDict

from watchlyst_core.settings import EngineSettings
from watchlyst_recommendation.engine import RecommendationEngine
from .routers import all_routers

logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "WatchLyst Recommendation API"
    # credentials
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    # env config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _should_init_engine() -> bool:
    flag = os.getenv("WATCHLYST_SKIP_ENGINE_INIT", "")
    return flag.strip().lower() not in {"1", "true", "yes"}


def _create_supabase_client(settings: Settings):
    from supabase import create_client

    required = {
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_SERVICE_KEY": settings.supabase_service_key,
    }
    missing = [name for name, value in required.items() if not (value and value.strip())]
    if missing:
        raise RuntimeError("Missing credentials in environment: " + ", ".join(sorted(missing)))
    return create_client(settings.supabase_url, settings.supabase_service_key)


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv(find_dotenv(), override=False)

    settings = Settings()
    app.state.settings = settings

    if not _should_init_engine():
        log.warning("engine initialization skipped by WATCHLYST_SKIP_ENGINE_INIT")
        yield
        return

    client = _create_supabase_client(settings)
    app.state.supabase = client
    async with RecommendationEngine.from_supabase(client, EngineSettings()) as engine:
        app.state.engine = engine
        log.info("recommendation engine started")
        try:
            yield
        finally:
            app.state.engine = None
    log.info("recommendation engine stopped")


app = FastAPI(title="WatchLyst Recommendation API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version="0.1.0",
        description="WatchLyst recommendation scoring and learning API",
        routes=app.routes,
    )
    components = schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    for path_item in schema.get("paths", {}).values():
        for operation in path_item.values():
            operation.setdefault("security", []).append({"BearerAuth": []})
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = _custom_openapi


@app.get("/health")
def health():
    settings = getattr(app.state, "settings", None) or Settings()
    return {"status": "ok", "service": settings.app_name}


@app.get("/")
def read_root():
    return {"status": "ok"}


for r in all_routers:
    app.include_router(r)
