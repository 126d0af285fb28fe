"""Significant-location-change wake trigger for background scanning.

The host OS will not wake a suspended app for periodic network work, but it
does deliver significant location changes. Each such change while the app is
backgrounded is used as a low-power substitute for a timer.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from autoupload.services.authorization_service import AuthorizationStatus, PermissionKind

if TYPE_CHECKING:
    import concurrent.futures
    from collections.abc import Awaitable, Callable

    from autoupload.models.account import Account
    from autoupload.services.account_service import AccountStore
    from autoupload.services.authorization_service import AuthorizationGate
    from autoupload.services.autoupload_service import SyncOutcome

logger = logging.getLogger(__name__)


class TriggerState(StrEnum):
    STOPPED = "stopped"
    MONITORING = "monitoring"


@runtime_checkable
class LocationMonitor(Protocol):
    """Device-side significant-location-change subscription."""

    def start_significant_change_updates(self) -> None: ...

    def stop_significant_change_updates(self) -> None: ...


class WakeTrigger:
    """Run an incremental cycle on location changes while the app is backgrounded.

    ``stop`` is idempotent. Location revocation or a monitoring failure stops
    the trigger and clears ``auto_upload_background`` on the active account.
    """

    def __init__(
        self,
        monitor: LocationMonitor,
        accounts: AccountStore,
        gate: AuthorizationGate,
        is_backgrounded: Callable[[], bool],
    ) -> None:
        self._monitor = monitor
        self._accounts = accounts
        self._gate = gate
        self._is_backgrounded = is_backgrounded
        self._state = TriggerState.STOPPED
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_wake: Callable[[], Awaitable[SyncOutcome]] | None = None
        self._unsubscribe = gate.subscribe(PermissionKind.LOCATION, self._on_location_revoked)

    @property
    def state(self) -> TriggerState:
        return self._state

    def bind(self, on_wake: Callable[[], Awaitable[SyncOutcome]]) -> None:
        """Set the coroutine function run on each qualifying location update."""
        self._on_wake = on_wake

    async def start(self, account: Account) -> bool:
        """Begin monitoring if the account and permissions allow it.

        Returns True if the trigger is monitoring afterwards.
        """
        if self._state is TriggerState.MONITORING:
            return True
        if not (account.auto_upload and account.auto_upload_background):
            logger.debug("Background auto upload disabled for %s", account.account)
            return False
        if self._gate.status(PermissionKind.LOCATION) != AuthorizationStatus.GRANTED:
            logger.debug("Location access not granted, not monitoring")
            return False

        self._loop = asyncio.get_running_loop()
        self._monitor.start_significant_change_updates()
        self._state = TriggerState.MONITORING
        logger.info("Started significant location change monitoring for %s", account.account)
        return True

    def stop(self) -> None:
        """Stop monitoring. No-op when already stopped."""
        if self._state is TriggerState.STOPPED:
            return
        self._monitor.stop_significant_change_updates()
        self._state = TriggerState.STOPPED
        logger.info("Stopped significant location change monitoring")

    def close(self) -> None:
        self.stop()
        self._unsubscribe()

    def notify_location_update(
        self, latitude: float, longitude: float
    ) -> concurrent.futures.Future[SyncOutcome | None] | None:
        """Thread-safe entry point for location callbacks delivered off the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Location update before monitoring started, ignored")
            return None
        return asyncio.run_coroutine_threadsafe(
            self.handle_location_update(latitude, longitude), loop
        )

    async def handle_location_update(
        self, latitude: float, longitude: float
    ) -> SyncOutcome | None:
        """Run one wake cycle if the update qualifies. Returns its outcome or None."""
        logger.info("Location update: latitude %s, longitude %s", latitude, longitude)
        if self._state is not TriggerState.MONITORING:
            logger.debug("Trigger stopped, location update ignored")
            return None
        if not self._is_backgrounded():
            logger.debug("App in foreground, location update ignored")
            return None
        account = await self._accounts.get_active()
        if account is None or not (account.auto_upload and account.auto_upload_background):
            return None
        if self._on_wake is None:
            logger.warning("Wake trigger fired with no handler bound")
            return None
        return await self._on_wake()

    async def handle_failure(self, error: object) -> None:
        """Monitoring failed on the device."""
        logger.warning("Location monitoring failed: %s", error)
        await self._disable_background()

    async def _on_location_revoked(self, status: AuthorizationStatus) -> None:
        await self._disable_background()

    async def _disable_background(self) -> None:
        self.stop()
        account = await self._accounts.get_active()
        if account is not None and account.auto_upload_background:
            await self._accounts.set_auto_upload_property(
                account.account, "auto_upload_background", False
            )
