import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from approval_engine.config import get_settings
from approval_engine.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service liveness plus the settings that change approval behavior."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    database: Literal["up", "down"]
    no_chain_policy: str


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    settings = get_settings()
    database: Literal["up", "down"] = "up"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        database = "down"

    return HealthResponse(
        status="ok" if database == "up" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        no_chain_policy=settings.no_chain_policy,
    )
