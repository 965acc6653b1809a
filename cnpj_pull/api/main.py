"""FastAPI application setup."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cnpj_pull.models.database import init_db
from .routes import router
from .streaming import wait_for_background_runs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    # Disconnected runs still owe their cache writes
    logger.info("Waiting for background discovery runs")
    await wait_for_background_runs()


app = FastAPI(
    title="CNPJ Pull",
    description="Discover active Brazilian companies by segment and region",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": "0.1.0"}


app.include_router(router, prefix="/api")
