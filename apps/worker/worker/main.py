import logging
import time

import anyio
import schedule
from pydantic_settings import BaseSettings, SettingsConfigDict

from watchlyst_cache.engine_caches import EngineCaches
from watchlyst_catalog.catalog_service import CatalogService
from watchlyst_catalog.item_repo import SupabaseItemRepo
from watchlyst_core.errors import DomainError
from watchlyst_core.settings import EngineSettings

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "WatchLyst Worker"
    supabase_url: str = ""
    supabase_service_key: str = ""
    backfill_limit: int = 100
    backfill_every_hours: int = 24
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def build_catalog(settings: Settings) -> CatalogService:
    from supabase import create_client

    client = create_client(settings.supabase_url, settings.supabase_service_key)
    return CatalogService(SupabaseItemRepo(client), EngineCaches.from_settings(EngineSettings()))


def backfill(catalog: CatalogService, limit: int) -> int:
    try:
        return anyio.run(catalog.backfill_feature_vectors, limit)
    except DomainError:
        log.exception("[worker] feature vector backfill failed")
        return 0


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = Settings()
    catalog = build_catalog(settings)

    log.info("[worker] %s starting...", settings.app_name)
    backfill(catalog, settings.backfill_limit)
    schedule.every(settings.backfill_every_hours).hours.do(
        backfill, catalog, settings.backfill_limit
    )
    while True:
        schedule.run_pending()
        time.sleep(1)


if __name__ == "__main__":
    main()
