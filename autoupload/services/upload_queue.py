"""Upload pipeline interface and the database-backed upload queue."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import func, select

from autoupload.models.upload_queue import UploadQueueEntry
from autoupload.services.datetime_service import format_iso, now_iso

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from autoupload.services.media_catalog import Asset

logger = logging.getLogger(__name__)

SELECTOR_AUTO_UPLOAD = "autoUpload"
SELECTOR_AUTO_UPLOAD_ALL = "autoUploadAll"

STATUS_WAITING = "waiting"


class EnqueueResult(StrEnum):
    """Answer of the upload pipeline to a batch."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


@runtime_checkable
class UploadEnqueuer(Protocol):
    """Schedules discovered assets on the upload pipeline.

    Retrying a rejected batch is the pipeline's responsibility.
    """

    async def enqueue(
        self, account: str, assets: Sequence[Asset], selector: str
    ) -> EnqueueResult:
        """Schedule a batch of assets for upload."""
        ...


class DatabaseUploadQueue:
    """Upload queue persisted in the ``upload_queue`` table.

    A batch that would push the account past ``max_pending`` waiting entries
    is rejected as a whole.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_pending: int = 10000,
    ) -> None:
        self._session_factory = session_factory
        self._max_pending = max_pending

    async def pending_count(self, account: str) -> int:
        """Return the number of entries still waiting for the account."""
        async with self._session_factory() as session:
            return await self._pending_count(session, account)

    @staticmethod
    async def _pending_count(session: AsyncSession, account: str) -> int:
        stmt = (
            select(func.count())
            .select_from(UploadQueueEntry)
            .where(UploadQueueEntry.account == account, UploadQueueEntry.status == STATUS_WAITING)
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def enqueue(
        self, account: str, assets: Sequence[Asset], selector: str
    ) -> EnqueueResult:
        if not assets:
            return EnqueueResult.ACCEPTED

        queued_at = now_iso()
        async with self._session_factory() as session:
            pending = await self._pending_count(session, account)
            if pending + len(assets) > self._max_pending:
                logger.warning(
                    "Upload queue full for %s: %d waiting, %d offered, limit %d",
                    account,
                    pending,
                    len(assets),
                    self._max_pending,
                )
                return EnqueueResult.REJECTED

            session.add_all(
                UploadQueueEntry(
                    account=account,
                    local_identifier=asset.local_identifier,
                    media_kind=str(asset.media_kind),
                    creation_date=format_iso(asset.creation_date) if asset.creation_date else "",
                    selector=selector,
                    status=STATUS_WAITING,
                    queued_at=queued_at,
                )
                for asset in assets
            )
            await session.commit()

        logger.info("Queued %d assets for %s (%s)", len(assets), account, selector)
        return EnqueueResult.ACCEPTED
