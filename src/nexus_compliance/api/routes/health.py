"""Service probes: overall health, readiness for traffic, process liveness."""

import logging
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance import __version__
from nexus_compliance.api.dependencies import DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

ProbeState = Literal["healthy", "unhealthy"]


class HealthResponse(BaseModel):
    """Service health with the storage probe result."""

    status: Literal["healthy", "degraded"]
    version: str
    database: ProbeState
    timestamp: datetime


class ProbeResponse(BaseModel):
    status: str


async def _probe_database(db: AsyncSession) -> ProbeState:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database probe failed", exc_info=True)
        return "unhealthy"
    return "healthy"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report the service version and whether storage answers."""
    database = await _probe_database(db)
    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        version=__version__,
        database=database,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    response_model=ProbeResponse,
    responses={503: {"model": ProbeResponse}},
)
async def readiness_check(db: DbSession, response: Response) -> ProbeResponse:
    """Ready only while storage answers; 503 takes the instance out of rotation."""
    if await _probe_database(db) != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ProbeResponse(status="unavailable")
    return ProbeResponse(status="ready")


@router.get("/live", response_model=ProbeResponse)
async def liveness_check() -> ProbeResponse:
    return ProbeResponse(status="alive")
