"""Authorization gate over the device's media-library and location permissions."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PermissionKind(StrEnum):
    """Device permissions the engine depends on."""

    MEDIA_LIBRARY = "media_library"
    LOCATION = "location"


class AuthorizationStatus(StrEnum):
    """Permission state as reported by the device."""

    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    DENIED = "denied"
    RESTRICTED = "restricted"


class Access(StrEnum):
    """Answer of the gate to an access request."""

    GRANTED = "granted"
    DENIED = "denied"
    # The prompt timed out; the user has not decided yet
    UNANSWERED = "unanswered"


@runtime_checkable
class PermissionProvider(Protocol):
    """The device permission subsystem, with ask-once semantics."""

    def status(self, kind: PermissionKind) -> AuthorizationStatus:
        """Return the current status without prompting."""
        ...

    async def request(self, kind: PermissionKind) -> AuthorizationStatus:
        """Prompt the user if the status is not determined yet."""
        ...


class AuthorizationGate:
    """Unify both permissions behind one async request/response contract.

    A permission already denied is answered immediately without a prompt.
    Concurrent requests for an undetermined permission share one prompt. The
    prompt is shielded from its waiters, so a cancelled caller never cancels
    it for the others, and it is dropped as soon as it resolves or times out.
    A timed-out prompt answers UNANSWERED, leaving the permission undetermined
    so the next request prompts again.
    """

    def __init__(self, provider: PermissionProvider, prompt_timeout: float = 120.0) -> None:
        self._provider = provider
        self._prompt_timeout = prompt_timeout
        self._prompts: dict[PermissionKind, asyncio.Task[Access]] = {}
        self._listeners: dict[
            PermissionKind, list[Callable[[AuthorizationStatus], Awaitable[None]]]
        ] = {kind: [] for kind in PermissionKind}

    def status(self, kind: PermissionKind) -> AuthorizationStatus:
        return self._provider.status(kind)

    async def request_media_library_access(self) -> Access:
        """Request access to the device media library."""
        return await self._request(PermissionKind.MEDIA_LIBRARY)

    async def request_location_access(self) -> Access:
        """Request always-on coarse location access."""
        return await self._request(PermissionKind.LOCATION)

    async def _request(self, kind: PermissionKind) -> Access:
        status = self._provider.status(kind)
        if status == AuthorizationStatus.GRANTED:
            return Access.GRANTED
        if status != AuthorizationStatus.NOT_DETERMINED:
            logger.debug("%s access previously %s, not prompting", kind, status)
            return Access.DENIED

        prompt = self._prompts.get(kind)
        if prompt is None:
            prompt = asyncio.ensure_future(self._prompt(kind))
            self._prompts[kind] = prompt
            prompt.add_done_callback(lambda _task: self._prompts.pop(kind, None))
        return await asyncio.shield(prompt)

    async def _prompt(self, kind: PermissionKind) -> Access:
        logger.info("Asking the device for %s access", kind)
        try:
            status = await asyncio.wait_for(self._provider.request(kind), self._prompt_timeout)
        except TimeoutError:
            logger.warning(
                "No answer to %s access prompt after %.0fs",
                kind,
                self._prompt_timeout,
            )
            return Access.UNANSWERED
        logger.info("Device answered %s access prompt: %s", kind, status)
        return Access.GRANTED if status == AuthorizationStatus.GRANTED else Access.DENIED

    def subscribe(
        self,
        kind: PermissionKind,
        listener: Callable[[AuthorizationStatus], Awaitable[None]],
    ) -> Callable[[], None]:
        """Register a revocation listener. Returns a function that removes it."""
        listeners = self._listeners[kind]
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    async def notify_authorization_changed(
        self, kind: PermissionKind, status: AuthorizationStatus
    ) -> None:
        """Dispatch a status change reported by the device.

        Listeners only hear about transitions to denied or restricted.
        """
        if status not in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED):
            return
        logger.info("%s access revoked (%s)", kind, status)
        for listener in list(self._listeners[kind]):
            await listener(status)
