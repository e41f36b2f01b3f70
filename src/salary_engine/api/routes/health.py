"""Service status: database reachability and engine configuration."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.api.dependencies import AppSettings, DbSession
from salary_engine.config import Settings
from salary_engine.errors import ConfigurationError
from salary_engine.services.overtime_service import OvertimeService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Engine status as seen by operators."""

    status: str
    timestamp: datetime
    engine_version: str
    database: str
    overtime_category: str


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database check failed: %s", e)
        return "unreachable"
    return "ok"


async def _overtime_status(db: AsyncSession, settings: Settings) -> str:
    try:
        await OvertimeService(db, settings).overtime_category_id()
    except ConfigurationError as e:
        logger.warning("Overtime category not usable: %s", e)
        return "missing"
    return "configured"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, settings: AppSettings) -> HealthResponse:
    """Report database reachability and whether overtime can be approved.

    A missing overtime category only degrades the service; rule evaluation
    keeps working without it.
    """
    database = await _database_status(db)
    overtime = await _overtime_status(db, settings) if database == "ok" else "unknown"

    if database != "ok":
        overall = "unhealthy"
    elif overtime != "configured":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        engine_version=settings.engine_version,
        database=database,
        overtime_category=overtime,
    )


@router.get("/ready")
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready once the database answers; 503 otherwise."""
    if await _database_status(db) != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "waiting for database"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
