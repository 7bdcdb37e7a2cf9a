"""
Health check endpoint.

GET /api/health - service status with a live database round trip (public)
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.schemas import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Database health check failed: %s", exc)
        return "error"
    return "ok"


@router.get("", response_model=HealthCheckResponse)
@router.get("/", response_model=HealthCheckResponse, include_in_schema=False)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthCheckResponse:
    """Report ``healthy`` when the database answers, ``degraded`` otherwise."""
    database = await _database_status(db)
    return HealthCheckResponse(
        status="healthy" if database == "ok" else "degraded",
        database=database,
        timestamp=datetime.now(timezone.utc),
    )
