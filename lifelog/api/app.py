from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from lifelog import __version__, config
from lifelog.api.routes import files
from lifelog.services.stats_cache import get_stats_cache

app = FastAPI(
    title="LifeLog API",
    description="File proxy for the personal analytics dashboard",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(files.router, prefix="/api/files", tags=["files"])


class HealthResponse(BaseModel):
    status: str
    version: str
    cache: dict[str, Any] = {}


@app.get("/")
async def root():
    return {"message": "LifeLog API", "version": __version__}


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check with stats cache counters."""
    return HealthResponse(status="healthy", version=__version__, cache=get_stats_cache().get_stats())
