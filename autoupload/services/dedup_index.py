"""Persistent registry of asset identities already presented for upload."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from autoupload.models.photo_library import PhotoLibraryEntry
from autoupload.services.datetime_service import format_iso, now_iso

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from autoupload.services.media_catalog import Asset

logger = logging.getLogger(__name__)

# Four bound parameters per row keeps each statement well under SQLite's limit.
_INSERT_CHUNK = 500


@dataclass(frozen=True)
class AssetIdentity:
    """Deduplication key of an asset for one account.

    Assets without a creation timestamp get an empty ``creation_date``, so two
    such assets sharing a local identifier are the same identity.
    """

    account: str
    local_identifier: str
    creation_date: str = ""

    @classmethod
    def for_asset(cls, account: str, asset: Asset) -> AssetIdentity:
        creation_date = format_iso(asset.creation_date) if asset.creation_date else ""
        return cls(
            account=account,
            local_identifier=asset.local_identifier,
            creation_date=creation_date,
        )


def _unique(account: str, identities: Iterable[AssetIdentity]) -> list[AssetIdentity]:
    """Drop repeated identities, keeping first-seen order."""
    seen: set[AssetIdentity] = set()
    result: list[AssetIdentity] = []
    for identity in identities:
        if identity.account != account:
            msg = f"Identity for account {identity.account!r} passed for {account!r}"
            raise ValueError(msg)
        if identity not in seen:
            seen.add(identity)
            result.append(identity)
    return result


class DedupIndex:
    """DedupIndex backed by the ``photo_library`` table.

    Writes go through one asyncio lock (single writer per process); the
    composite primary key with ON CONFLICT DO NOTHING keeps inserts idempotent
    across processes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    async def contains(self, account: str, identity: AssetIdentity) -> bool:
        """Return True if the identity is already recorded for the account."""
        stmt = select(PhotoLibraryEntry.account).where(
            PhotoLibraryEntry.account == account,
            PhotoLibraryEntry.local_identifier == identity.local_identifier,
            PhotoLibraryEntry.creation_date == identity.creation_date,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.first() is not None

    async def count(self, account: str) -> int:
        """Return the number of identities recorded for the account."""
        stmt = (
            select(func.count())
            .select_from(PhotoLibraryEntry)
            .where(PhotoLibraryEntry.account == account)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def insert_many(self, account: str, identities: Iterable[AssetIdentity]) -> int:
        """Record identities, ignoring ones already present. Returns rows added."""
        return len(await self.claim(account, identities))

    async def claim(
        self, account: str, identities: Iterable[AssetIdentity]
    ) -> list[AssetIdentity]:
        """Record identities and return those that were not known before.

        The lookup and the insert are one statement per chunk and one
        transaction overall, so no identity is ever reported as new twice.
        The result keeps the input order.
        """
        pending = _unique(account, identities)
        if not pending:
            return []

        indexed_at = now_iso()
        inserted: set[tuple[str, str]] = set()
        async with self._write_lock, self._session_factory() as session:
            for start in range(0, len(pending), _INSERT_CHUNK):
                chunk = pending[start : start + _INSERT_CHUNK]
                stmt = (
                    sqlite_insert(PhotoLibraryEntry)
                    .values(
                        [
                            {
                                "account": account,
                                "local_identifier": identity.local_identifier,
                                "creation_date": identity.creation_date,
                                "indexed_at": indexed_at,
                            }
                            for identity in chunk
                        ]
                    )
                    .on_conflict_do_nothing()
                    .returning(
                        PhotoLibraryEntry.local_identifier,
                        PhotoLibraryEntry.creation_date,
                    )
                )
                result = await session.execute(stmt)
                inserted.update((row[0], row[1]) for row in result.all())
            await session.commit()

        claimed = [
            identity
            for identity in pending
            if (identity.local_identifier, identity.creation_date) in inserted
        ]
        logger.debug("Indexed %d of %d identities for %s", len(claimed), len(pending), account)
        return claimed

    async def clear_all(self, account: str) -> int:
        """Delete every identity recorded for the account. Returns rows removed."""
        async with self._write_lock, self._session_factory() as session:
            result = await session.execute(
                delete(PhotoLibraryEntry).where(PhotoLibraryEntry.account == account)
            )
            await session.commit()
        removed: int = result.rowcount or 0  # type: ignore[attr-defined]
        logger.info("Cleared %d photo library entries for %s", removed, account)
        return removed
