"""Sync planning: which catalog assets must be handed to the upload pipeline."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from autoupload.services.dedup_index import AssetIdentity
from autoupload.services.media_catalog import AssetCatalogScanner, MediaFilter

if TYPE_CHECKING:
    from autoupload.models.account import Account
    from autoupload.services.dedup_index import DedupIndex
    from autoupload.services.media_catalog import Asset

logger = logging.getLogger(__name__)


class ScanMode(StrEnum):
    """How a planning pass treats the dedup index."""

    INCREMENTAL = "incremental"
    FULL_REALIGN = "full_realign"


class SyncPlanner:
    """Diff the media catalog against the dedup index.

    Identities are recorded while planning, before the batch reaches the
    enqueuer. A cycle cut short after planning therefore never plans the
    same asset again.
    """

    def __init__(self, scanner: AssetCatalogScanner, index: DedupIndex) -> None:
        self._scanner = scanner
        self._index = index

    async def plan(self, account: Account, mode: ScanMode) -> list[Asset]:
        """Return the assets to enqueue for the account, in catalog order."""
        account_id = account.account
        full = mode is ScanMode.FULL_REALIGN

        if full:
            await self._index.clear_all(account_id)

        media_filter = AssetCatalogScanner.filter_for(account, full=full)
        if media_filter is None:
            logger.info("Images and videos both disabled for %s, nothing to scan", account_id)
            return []

        assets = await self._scanner.scan(media_filter)
        by_identity: dict[AssetIdentity, Asset] = {}
        for asset in assets:
            by_identity.setdefault(AssetIdentity.for_asset(account_id, asset), asset)

        claimed = await self._index.claim(account_id, by_identity)
        planned = [by_identity[identity] for identity in claimed]
        logger.info(
            "Planned %d of %d %s assets for %s (%s)",
            len(planned),
            len(assets),
            media_filter,
            account_id,
            mode,
        )
        return planned

    async def plan_ignoring_index(self, account: Account) -> list[Asset]:
        """Return every image and video in the catalog without touching the index."""
        assets = await self._scanner.scan(MediaFilter.BOTH)
        logger.info("Planned %d assets for %s ignoring the index", len(assets), account.account)
        return list(assets)
