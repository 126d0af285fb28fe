"""Auto-upload API endpoints: engine status, account flags, sync entry points."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from autoupload.api.deps import (
    get_account_store,
    get_autoupload_service,
    get_dedup_index,
    get_upload_queue,
    get_wake_trigger,
    require_device_token,
)
from autoupload.models.account import Account
from autoupload.schemas.autoupload import (
    AccountFlags,
    AccountFlagsUpdate,
    AutoUploadStatusResponse,
    PlannedAsset,
    SyncOutcomeResponse,
)
from autoupload.services.account_service import AccountStore
from autoupload.services.autoupload_service import AutoUploadService, SyncOutcome
from autoupload.services.datetime_service import format_iso
from autoupload.services.dedup_index import DedupIndex
from autoupload.services.upload_queue import DatabaseUploadQueue
from autoupload.services.wake_trigger import WakeTrigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/autoupload", tags=["autoupload"])


def _account_flags(account: Account) -> AccountFlags:
    return AccountFlags(
        account=account.account,
        auto_upload=account.auto_upload,
        auto_upload_background=account.auto_upload_background,
        auto_upload_image=account.auto_upload_image,
        auto_upload_video=account.auto_upload_video,
    )


def outcome_response(outcome: SyncOutcome) -> SyncOutcomeResponse:
    """Convert a sync outcome to its API representation."""
    return SyncOutcomeResponse(
        status=str(outcome.status),
        account=outcome.account,
        mode=str(outcome.mode) if outcome.mode is not None else None,
        selector=outcome.selector,
        planned_count=outcome.planned_count,
        enqueue_result=(
            str(outcome.enqueue_result) if outcome.enqueue_result is not None else None
        ),
        planned=[
            PlannedAsset(
                local_identifier=asset.local_identifier,
                media_kind=str(asset.media_kind),
                creation_date=format_iso(asset.creation_date) if asset.creation_date else "",
            )
            for asset in outcome.planned
        ],
    )


@router.get("/status", response_model=AutoUploadStatusResponse)
async def autoupload_status(
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    service: Annotated[AutoUploadService, Depends(get_autoupload_service)],
    index: Annotated[DedupIndex, Depends(get_dedup_index)],
    queue: Annotated[DatabaseUploadQueue, Depends(get_upload_queue)],
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
) -> AutoUploadStatusResponse:
    """Report the active account flags and engine diagnostics."""
    account = await accounts.get_active()
    if account is None:
        return AutoUploadStatusResponse(
            account=None,
            trigger_state=str(trigger.state),
            scan_running=False,
            known_asset_count=service.known_asset_count,
            indexed_assets=0,
            pending_uploads=0,
        )
    return AutoUploadStatusResponse(
        account=_account_flags(account),
        trigger_state=str(trigger.state),
        scan_running=service.is_running(account.account),
        known_asset_count=service.known_asset_count,
        indexed_assets=await index.count(account.account),
        pending_uploads=await queue.pending_count(account.account),
    )


@router.put("/account", response_model=AccountFlags)
async def update_account_flags(
    body: AccountFlagsUpdate,
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> AccountFlags:
    """Change auto-upload flags of the active account (explicit user action)."""
    account = await accounts.get_active()
    if account is None:
        raise HTTPException(status_code=404, detail="No active account")

    updated = await accounts.update_flags(account.account, body.model_dump(exclude_none=True))
    if updated is None:
        raise HTTPException(status_code=404, detail="No active account")
    if not (updated.auto_upload and updated.auto_upload_background):
        trigger.stop()
    return _account_flags(updated)


@router.post("/sync", response_model=SyncOutcomeResponse)
async def sync(
    service: Annotated[AutoUploadService, Depends(get_autoupload_service)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> SyncOutcomeResponse:
    """Run the foreground/wake incremental sync."""
    return outcome_response(await service.initiate_foreground_or_wake_sync())


@router.post("/realign", response_model=SyncOutcomeResponse)
async def realign(
    service: Annotated[AutoUploadService, Depends(get_autoupload_service)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> SyncOutcomeResponse:
    """Clear the index and re-enqueue every image and video."""
    return outcome_response(await service.initiate_full_realign())


@router.post("/upload-all", response_model=SyncOutcomeResponse)
async def upload_all(
    service: Annotated[AutoUploadService, Depends(get_autoupload_service)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> SyncOutcomeResponse:
    """Enqueue every image and video without touching the index."""
    return outcome_response(await service.initiate_full_scan_ignoring_index())
