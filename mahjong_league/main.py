from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mahjong_league.api.games import router as games_router
from mahjong_league.api.leagues import router as leagues_router
from mahjong_league.api.rules import router as rules_router
from mahjong_league.api.stats import router as stats_router
from mahjong_league.config import settings
from mahjong_league.logging import setup_logging
from mahjong_league.storage.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    log_file = setup_logging(settings)
    if log_file is not None:
        logger.info("logging to %s", log_file)
    init_db()
    logger.info("mahjong league api ready")
    yield


app = FastAPI(title="Mahjong League API", lifespan=lifespan)
app.include_router(rules_router)
app.include_router(leagues_router)
app.include_router(games_router)
app.include_router(stats_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
