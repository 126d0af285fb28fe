"""Auto-upload request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from autoupload.services.authorization_service import AuthorizationStatus, PermissionKind
from autoupload.services.device_state import AppState


class AccountFlags(BaseModel):
    """Auto-upload flags of the active account."""

    account: str
    auto_upload: bool
    auto_upload_background: bool
    auto_upload_image: bool
    auto_upload_video: bool


class AccountFlagsUpdate(BaseModel):
    """Request to change auto-upload flags. Omitted flags stay as they are."""

    auto_upload: bool | None = None
    auto_upload_background: bool | None = None
    auto_upload_image: bool | None = None
    auto_upload_video: bool | None = None


class AutoUploadStatusResponse(BaseModel):
    """Engine status for the active account."""

    account: AccountFlags | None
    trigger_state: str
    scan_running: bool
    known_asset_count: int | None
    indexed_assets: int
    pending_uploads: int


class PlannedAsset(BaseModel):
    """Asset included in a sync cycle."""

    local_identifier: str
    media_kind: str
    creation_date: str


class SyncOutcomeResponse(BaseModel):
    """Result of a sync entry point."""

    status: str
    account: str | None = None
    mode: str | None = None
    selector: str | None = None
    planned_count: int = 0
    enqueue_result: str | None = None
    planned: list[PlannedAsset] = Field(default_factory=list)


class DeviceStateResponse(BaseModel):
    """What the device bridge should do and what it reported last."""

    permissions: dict[PermissionKind, AuthorizationStatus]
    pending_prompts: list[PermissionKind]
    app_state: AppState
    monitoring_requested: bool
    trigger_state: str


class PermissionReport(BaseModel):
    """Permission status reported by the device."""

    status: AuthorizationStatus


class AppStateReport(BaseModel):
    """App execution state reported by the device."""

    state: AppState


class LocationUpdate(BaseModel):
    """Significant location change delivered by the device."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationFailure(BaseModel):
    """Location monitoring failure reported by the device."""

    error: str = Field(default="", max_length=500)


class LocationUpdateResponse(BaseModel):
    """Result of a location update: the wake cycle outcome if one ran."""

    triggered: bool
    outcome: SyncOutcomeResponse | None = None
