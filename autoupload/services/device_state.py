"""State reported by the device bridge: permissions, app state, location monitoring."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

from autoupload.services.authorization_service import AuthorizationStatus, PermissionKind

logger = logging.getLogger(__name__)


class AppState(StrEnum):
    """Execution state of the app on the device."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


class DeviceState:
    """Permission provider and location monitor driven by device reports.

    Prompts are futures resolved when the device reports a decision; the
    device learns about them by polling :meth:`pending_prompts`. Location
    monitoring is a request the device reads back and honours.
    """

    def __init__(
        self,
        media_library: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
        location: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
        app_state: AppState = AppState.FOREGROUND,
    ) -> None:
        self._statuses: dict[PermissionKind, AuthorizationStatus] = {
            PermissionKind.MEDIA_LIBRARY: media_library,
            PermissionKind.LOCATION: location,
        }
        self._prompts: dict[PermissionKind, list[asyncio.Future[AuthorizationStatus]]] = {
            kind: [] for kind in PermissionKind
        }
        self.app_state = app_state
        self.monitoring_requested = False

    # Permission provider

    def status(self, kind: PermissionKind) -> AuthorizationStatus:
        return self._statuses[kind]

    async def request(self, kind: PermissionKind) -> AuthorizationStatus:
        status = self._statuses[kind]
        if status != AuthorizationStatus.NOT_DETERMINED:
            return status
        future: asyncio.Future[AuthorizationStatus] = asyncio.get_running_loop().create_future()
        waiting = self._prompts[kind]
        waiting.append(future)
        try:
            return await future
        finally:
            if future in waiting:
                waiting.remove(future)

    def pending_prompts(self) -> list[PermissionKind]:
        """Return the permissions the device should currently prompt for."""
        return [kind for kind, waiting in self._prompts.items() if waiting]

    def set_status(self, kind: PermissionKind, status: AuthorizationStatus) -> AuthorizationStatus:
        """Record a status reported by the device. Returns the previous one."""
        previous = self._statuses[kind]
        self._statuses[kind] = status
        if status != AuthorizationStatus.NOT_DETERMINED:
            for future in self._prompts[kind]:
                if not future.done():
                    future.set_result(status)
        if previous != status:
            logger.info("Device reported %s permission %s (was %s)", kind, status, previous)
        return previous

    # App state

    def is_backgrounded(self) -> bool:
        return self.app_state is AppState.BACKGROUND

    # Location monitor

    def start_significant_change_updates(self) -> None:
        self.monitoring_requested = True

    def stop_significant_change_updates(self) -> None:
        self.monitoring_requested = False
