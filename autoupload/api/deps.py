"""Shared API dependencies: DB session, engine services, device token."""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from autoupload.config import Settings
from autoupload.services.account_service import AccountStore
from autoupload.services.authorization_service import AuthorizationGate
from autoupload.services.autoupload_service import AutoUploadService
from autoupload.services.dedup_index import DedupIndex
from autoupload.services.device_state import DeviceState
from autoupload.services.upload_queue import DatabaseUploadQueue
from autoupload.services.wake_trigger import WakeTrigger

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


def get_autoupload_service(request: Request) -> AutoUploadService:
    service: AutoUploadService = request.app.state.autoupload_service
    return service


def get_account_store(request: Request) -> AccountStore:
    accounts: AccountStore = request.app.state.account_store
    return accounts


def get_dedup_index(request: Request) -> DedupIndex:
    index: DedupIndex = request.app.state.dedup_index
    return index


def get_upload_queue(request: Request) -> DatabaseUploadQueue:
    queue: DatabaseUploadQueue = request.app.state.upload_queue
    return queue


def get_device_state(request: Request) -> DeviceState:
    device: DeviceState = request.app.state.device_state
    return device


def get_authorization_gate(request: Request) -> AuthorizationGate:
    gate: AuthorizationGate = request.app.state.authorization_gate
    return gate


def get_wake_trigger(request: Request) -> WakeTrigger:
    trigger: WakeTrigger = request.app.state.wake_trigger
    return trigger


async def require_device_token(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the configured API token. Open when no token is configured."""
    if not settings.api_token:
        return
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), settings.api_token.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
