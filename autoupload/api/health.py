"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from autoupload import __version__
from autoupload.api.deps import get_session, get_settings
from autoupload.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    media_library: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Health check endpoint for monitoring and load balancers."""
    db_status = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "error"

    # A missing camera roll is scanned as empty, so it only degrades the report.
    library_status = "ok" if settings.media_library_dir.is_dir() else "missing"

    return HealthResponse(
        status="ok" if db_status == "ok" and library_status == "ok" else "degraded",
        version=__version__,
        database=db_status,
        media_library=library_status,
    )
