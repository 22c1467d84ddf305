"""FastAPI entry-point exposing agent runner controls."""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentrunner.api.routes import router as agents_router
from agentrunner.api.routes import skills_router
from agentrunner.config import settings
from agentrunner.core.log import configure_logging
from agentrunner.runtime import get_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    configure_logging(settings.log_level, json_output=settings.log_json)
    yield
    # Shutdown: drain every agent
    await get_manager().terminate_all()


app = FastAPI(title="Agent Task Runner", lifespan=lifespan)
app.include_router(agents_router)
app.include_router(skills_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
