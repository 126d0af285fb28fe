"""Auto-upload entry points: foreground/wake sync, full realign, upload everything."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from autoupload.services.authorization_service import Access
from autoupload.services.sync_planner import ScanMode
from autoupload.services.upload_queue import (
    SELECTOR_AUTO_UPLOAD,
    SELECTOR_AUTO_UPLOAD_ALL,
    EnqueueResult,
)

if TYPE_CHECKING:
    from autoupload.models.account import Account
    from autoupload.services.account_service import AccountStore
    from autoupload.services.authorization_service import AuthorizationGate
    from autoupload.services.media_catalog import Asset
    from autoupload.services.sync_planner import SyncPlanner
    from autoupload.services.upload_queue import UploadEnqueuer
    from autoupload.services.wake_trigger import WakeTrigger

logger = logging.getLogger(__name__)


class OutcomeStatus(StrEnum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    COALESCED = "coalesced"
    DENIED = "denied"
    FAILED = "failed"


@dataclass
class SyncOutcome:
    """Result of one auto-upload entry point call."""

    status: OutcomeStatus
    account: str | None = None
    mode: ScanMode | None = None
    selector: str | None = None
    planned: list[Asset] = field(default_factory=list)
    enqueue_result: EnqueueResult | None = None

    @property
    def planned_count(self) -> int:
        return len(self.planned)


class AutoUploadService:
    """Compose gate, planner, enqueuer and wake trigger into the sync entry points.

    At most one cycle runs per account; a trigger arriving while one is in
    flight is dropped. Permission denials clear the matching account flag and
    stop the wake trigger; an unanswered prompt skips the cycle and leaves the
    flags alone. No entry point raises: failures end the cycle.
    """

    def __init__(
        self,
        accounts: AccountStore,
        gate: AuthorizationGate,
        planner: SyncPlanner,
        enqueuer: UploadEnqueuer,
        trigger: WakeTrigger,
    ) -> None:
        self._accounts = accounts
        self._gate = gate
        self._planner = planner
        self._enqueuer = enqueuer
        self._trigger = trigger
        self._in_flight: set[str] = set()
        self.known_asset_count: int | None = None
        trigger.bind(self.run_wake_cycle)

    def is_running(self, account: str) -> bool:
        return account in self._in_flight

    async def initiate_foreground_or_wake_sync(self) -> SyncOutcome:
        """Incremental sync on app start, foreground, or explicit request."""
        account = await self._accounts.get_active()
        if account is None:
            self._trigger.stop()
            return SyncOutcome(OutcomeStatus.SKIPPED)
        if not account.auto_upload:
            return SyncOutcome(OutcomeStatus.SKIPPED, account=account.account)

        refused = await self._media_library_access(account)
        if refused is not None:
            return refused

        outcome = await self._run_cycle(account, ScanMode.INCREMENTAL, SELECTOR_AUTO_UPLOAD)

        if account.auto_upload_background:
            access = await self._gate.request_location_access()
            if access is Access.GRANTED:
                await self._trigger.start(account)
            elif access is Access.UNANSWERED:
                logger.info("Location prompt unanswered, wake trigger not started")
            else:
                await self._accounts.set_auto_upload_property(
                    account.account, "auto_upload_background", False
                )
                self._trigger.stop()
        return outcome

    async def run_wake_cycle(self) -> SyncOutcome:
        """Incremental cycle fired by the wake trigger while backgrounded."""
        account = await self._accounts.get_active()
        if account is None or not (account.auto_upload and account.auto_upload_background):
            return SyncOutcome(OutcomeStatus.SKIPPED)
        refused = await self._media_library_access(account)
        if refused is not None:
            return refused
        return await self._run_cycle(account, ScanMode.INCREMENTAL, SELECTOR_AUTO_UPLOAD)

    async def initiate_full_realign(self) -> SyncOutcome:
        """Rebuild the index from scratch and re-enqueue every image and video."""
        account = await self._accounts.get_active()
        if account is None:
            return SyncOutcome(OutcomeStatus.SKIPPED)
        refused = await self._media_library_access(account)
        if refused is not None:
            return refused

        outcome = await self._run_cycle(account, ScanMode.FULL_REALIGN, SELECTOR_AUTO_UPLOAD)
        if outcome.status is OutcomeStatus.COMPLETED:
            self.known_asset_count = outcome.planned_count
            logger.info("Align photo library %d", outcome.planned_count)
        return outcome

    async def initiate_full_scan_ignoring_index(self) -> SyncOutcome:
        """Enqueue every image and video without reading or writing the index."""
        account = await self._accounts.get_active()
        if account is None:
            return SyncOutcome(OutcomeStatus.SKIPPED)
        refused = await self._media_library_access(account)
        if refused is not None:
            return refused
        return await self._run_cycle(account, None, SELECTOR_AUTO_UPLOAD_ALL)

    async def _media_library_access(self, account: Account) -> SyncOutcome | None:
        """Return None when the cycle may proceed, else the outcome ending it."""
        access = await self._gate.request_media_library_access()
        if access is Access.GRANTED:
            return None
        if access is Access.UNANSWERED:
            logger.info("Media library prompt unanswered, skipping cycle for %s", account.account)
            return SyncOutcome(OutcomeStatus.SKIPPED, account=account.account)
        if account.auto_upload:
            await self._accounts.set_auto_upload_property(account.account, "auto_upload", False)
        self._trigger.stop()
        return SyncOutcome(OutcomeStatus.DENIED, account=account.account)

    async def _run_cycle(
        self, account: Account, mode: ScanMode | None, selector: str
    ) -> SyncOutcome:
        account_id = account.account
        if account_id in self._in_flight:
            logger.debug("Scan already running for %s, trigger dropped", account_id)
            return SyncOutcome(OutcomeStatus.COALESCED, account=account_id, mode=mode)

        self._in_flight.add(account_id)
        try:
            try:
                if mode is None:
                    planned = await self._planner.plan_ignoring_index(account)
                else:
                    planned = await self._planner.plan(account, mode)
            except Exception:
                logger.exception("Planning failed for %s", account_id)
                return SyncOutcome(OutcomeStatus.FAILED, account=account_id, mode=mode)
            result = await self._hand_off(account_id, planned, selector)
        finally:
            self._in_flight.discard(account_id)

        return SyncOutcome(
            OutcomeStatus.COMPLETED,
            account=account_id,
            mode=mode,
            selector=selector,
            planned=planned,
            enqueue_result=result,
        )

    async def _hand_off(
        self, account: str, planned: list[Asset], selector: str
    ) -> EnqueueResult | None:
        if not planned:
            return None
        try:
            result = await self._enqueuer.enqueue(account, planned, selector)
        except Exception:
            logger.exception("Upload pipeline failed for %s", account)
            result = EnqueueResult.REJECTED
        if result == EnqueueResult.REJECTED:
            logger.warning(
                "Upload pipeline rejected %d assets for %s, they stay indexed and are not retried",
                len(planned),
                account,
            )
        return result
