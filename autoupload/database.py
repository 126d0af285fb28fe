"""Database engine, schema and session factory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from autoupload.models.base import Base

if TYPE_CHECKING:
    from autoupload.config import Settings

logger = logging.getLogger(__name__)


def sqlite_file_path(database_url: str) -> Path | None:
    """Return the file path of a file-backed SQLite URL, or None."""
    if not database_url.startswith("sqlite") or "///" not in database_url:
        return None
    db_path = database_url.split("///", 1)[-1]
    if not db_path or db_path == ":memory:":
        return None
    return Path(db_path)


def create_engine(
    settings: Settings,
) -> tuple[
    AsyncEngine,
    async_sessionmaker[AsyncSession],
]:
    """Create async engine and session factory.

    The parent directory of a file-backed SQLite database is created first.
    Returns (engine, session_factory) tuple.
    """
    db_path = sqlite_file_path(settings.database_url)
    if db_path is not None and not db_path.parent.exists():
        logger.info("Creating database directory %s", db_path.parent)
        db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
    )
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet. Existing rows are kept."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
