from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import router
from app.config.logging import configure_logging
from app.config.settings import get_settings
from app.config.sources import build_source_table
from app.integrations.factory import build_adapter
from app.services.aggregator import Aggregator
from app.services.cache_store import CacheStore
from app.services.refresh import RefreshCoordinator, RefreshScheduler


def build_engine(settings):
    sources = build_source_table(settings)
    aggregator = Aggregator(
        {config.source_id: build_adapter(config) for config in sources},
        default_policy=settings.FALLBACK_POLICY,
    )
    cache_store = CacheStore()
    coordinator = RefreshCoordinator(
        aggregator=aggregator,
        cache_store=cache_store,
        sources=sources,
    )
    scheduler = RefreshScheduler(
        coordinator=coordinator,
        interval_sec=settings.REFRESH_INTERVAL_SEC,
        refresh_on_start=settings.REFRESH_ON_STARTUP,
    )
    return cache_store, coordinator, scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = app.state.refresh_scheduler
    scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()


_settings = get_settings()
configure_logging(_settings.LOG_LEVEL)

app = FastAPI(title="Market Snapshot Gateway", version="0.1.0", lifespan=lifespan)
app.include_router(router)

app.state.cache_store, app.state.refresh_coordinator, app.state.refresh_scheduler = build_engine(_settings)
