"""Device bridge endpoints: permission, app-state and location reports."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from autoupload.api.autoupload import outcome_response
from autoupload.api.deps import (
    get_authorization_gate,
    get_device_state,
    get_wake_trigger,
    require_device_token,
)
from autoupload.schemas.autoupload import (
    AppStateReport,
    DeviceStateResponse,
    LocationFailure,
    LocationUpdate,
    LocationUpdateResponse,
    PermissionReport,
)
from autoupload.services.authorization_service import AuthorizationGate, PermissionKind
from autoupload.services.device_state import DeviceState
from autoupload.services.wake_trigger import WakeTrigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/device", tags=["device"])


def _device_state_response(device: DeviceState, trigger: WakeTrigger) -> DeviceStateResponse:
    return DeviceStateResponse(
        permissions={kind: device.status(kind) for kind in PermissionKind},
        pending_prompts=device.pending_prompts(),
        app_state=device.app_state,
        monitoring_requested=device.monitoring_requested,
        trigger_state=str(trigger.state),
    )


@router.get("/state", response_model=DeviceStateResponse)
async def device_state(
    device: Annotated[DeviceState, Depends(get_device_state)],
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
) -> DeviceStateResponse:
    """Pending prompts and whether the device should monitor location."""
    return _device_state_response(device, trigger)


@router.put("/permissions/{kind}", response_model=DeviceStateResponse)
async def report_permission(
    kind: PermissionKind,
    body: PermissionReport,
    device: Annotated[DeviceState, Depends(get_device_state)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> DeviceStateResponse:
    """Record a permission decision and propagate revocations."""
    device.set_status(kind, body.status)
    await gate.notify_authorization_changed(kind, body.status)
    return _device_state_response(device, trigger)


@router.put("/app-state", response_model=DeviceStateResponse)
async def report_app_state(
    body: AppStateReport,
    device: Annotated[DeviceState, Depends(get_device_state)],
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> DeviceStateResponse:
    """Record whether the app is in the foreground or background."""
    device.app_state = body.state
    logger.info("Device app state: %s", body.state)
    return _device_state_response(device, trigger)


@router.post("/location", response_model=LocationUpdateResponse)
async def report_location(
    body: LocationUpdate,
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> LocationUpdateResponse:
    """Deliver a significant location change to the wake trigger."""
    outcome = await trigger.handle_location_update(body.latitude, body.longitude)
    if outcome is None:
        return LocationUpdateResponse(triggered=False)
    return LocationUpdateResponse(triggered=True, outcome=outcome_response(outcome))


@router.post("/location/failure", response_model=DeviceStateResponse)
async def report_location_failure(
    body: LocationFailure,
    device: Annotated[DeviceState, Depends(get_device_state)],
    trigger: Annotated[WakeTrigger, Depends(get_wake_trigger)],
    _auth: Annotated[None, Depends(require_device_token)],
) -> DeviceStateResponse:
    """Location monitoring failed on the device."""
    await trigger.handle_failure(body.error or "unknown error")
    return _device_state_response(device, trigger)
