"""Account storage: active account lookup and auto-upload flag updates."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from autoupload.models.account import Account
from autoupload.services.datetime_service import now_iso

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from autoupload.config import Settings

logger = logging.getLogger(__name__)

AUTO_UPLOAD_FLAGS = frozenset(
    {
        "auto_upload",
        "auto_upload_background",
        "auto_upload_image",
        "auto_upload_video",
    }
)


def account_id_for(user: str, url: str) -> str:
    """Return the account identifier of a user/server pairing."""
    return f"{user} {url.rstrip('/')}"


class AccountStore:
    """Read the active account and persist its auto-upload flags.

    Flag writes are serialized so that two revocations arriving together
    apply one after the other.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    async def get_active(self) -> Account | None:
        """Return a detached snapshot of the active account, or None."""
        async with self._session_factory() as session:
            result = await session.execute(select(Account).where(Account.active.is_(True)))
            return result.scalars().first()

    async def set_auto_upload_property(self, account: str, name: str, state: bool) -> None:
        """Persist one auto-upload flag for the account."""
        await self.update_flags(account, {name: state})

    async def update_flags(self, account: str, flags: dict[str, bool]) -> Account | None:
        """Persist several auto-upload flags. Returns the updated account, or None."""
        unknown = set(flags) - AUTO_UPLOAD_FLAGS
        if unknown:
            msg = f"Unknown auto upload flags: {sorted(unknown)}"
            raise ValueError(msg)

        async with self._write_lock, self._session_factory() as session:
            if flags:
                await session.execute(
                    update(Account)
                    .where(Account.account == account)
                    .values(**flags, updated_at=now_iso())
                )
                await session.commit()
            updated = await session.get(Account, account)
        if updated is not None:
            logger.info("Account %s flags set: %s", account, flags)
        return updated


async def ensure_default_account(session: AsyncSession, settings: Settings) -> Account:
    """Create the configured account if it doesn't exist and make sure one is active."""
    account_id = account_id_for(settings.default_account_user, settings.default_account_url)
    existing = await session.get(Account, account_id)

    if existing is None:
        now = now_iso()
        existing = Account(
            account=account_id,
            user=settings.default_account_user,
            url=settings.default_account_url.rstrip("/"),
            active=False,
            auto_upload=settings.default_auto_upload,
            auto_upload_background=settings.default_auto_upload_background,
            auto_upload_image=settings.default_auto_upload_image,
            auto_upload_video=settings.default_auto_upload_video,
            created_at=now,
            updated_at=now,
        )
        session.add(existing)
        logger.info("Created account %s", account_id)

    active = await session.execute(select(Account.account).where(Account.active.is_(True)))
    if active.first() is None:
        existing.active = True
    await session.commit()
    return existing
