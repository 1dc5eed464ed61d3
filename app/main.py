from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.mock_dynamodb import build_default_table
from logging_config import configure_logging
from services.aggregator import build_default_aggregator


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    build_default_aggregator()
    try:
        yield
    finally:
        build_default_aggregator.cache_clear()
        build_default_table.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Device Daily Aggregates",
        description="Per-device, per-day rollups of active energy and power readings.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
