"""Shared test fixtures for the auto-upload engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from autoupload.config import Settings
from autoupload.database import create_schema
from autoupload.exceptions import CatalogUnavailableError
from autoupload.main import create_app, init_services
from autoupload.models.account import Account
from autoupload.services.account_service import AccountStore, ensure_default_account
from autoupload.services.authorization_service import AuthorizationStatus, PermissionKind
from autoupload.services.datetime_service import now_iso
from autoupload.services.dedup_index import AssetIdentity, DedupIndex
from autoupload.services.upload_queue import DatabaseUploadQueue, EnqueueResult

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable, Sequence
    from pathlib import Path

    from autoupload.services.media_catalog import Asset, MediaFilter

logger = logging.getLogger(__name__)

TEST_API_TOKEN = "test-api-token-with-at-least-32-characters"
TEST_ACCOUNT = "alice https://cloud.example.com"


# ── Fakes for the external collaborators ─────────────


class FakeMediaLibrary:
    """In-memory camera roll; ``available = False`` simulates a missing collection."""

    def __init__(self, assets: Iterable[Asset] = ()) -> None:
        self.assets: list[Asset] = list(assets)
        self.available = True
        self.queries: list[MediaFilter] = []

    async def fetch_assets(self, media_filter: MediaFilter) -> list[Asset]:
        self.queries.append(media_filter)
        if not self.available:
            raise CatalogUnavailableError("camera roll missing")
        return [asset for asset in self.assets if media_filter.matches(asset.media_kind)]


class FakePermissions:
    """Permission provider answering prompts from a preset table."""

    def __init__(
        self,
        media_library: AuthorizationStatus = AuthorizationStatus.GRANTED,
        location: AuthorizationStatus = AuthorizationStatus.GRANTED,
        answers: dict[PermissionKind, AuthorizationStatus] | None = None,
    ) -> None:
        self.statuses = {
            PermissionKind.MEDIA_LIBRARY: media_library,
            PermissionKind.LOCATION: location,
        }
        self.answers = answers or {}
        self.prompts: list[PermissionKind] = []

    def status(self, kind: PermissionKind) -> AuthorizationStatus:
        return self.statuses[kind]

    async def request(self, kind: PermissionKind) -> AuthorizationStatus:
        if self.statuses[kind] != AuthorizationStatus.NOT_DETERMINED:
            return self.statuses[kind]
        self.prompts.append(kind)
        answer = self.answers.get(kind, AuthorizationStatus.DENIED)
        self.statuses[kind] = answer
        return answer


class FakeLocationMonitor:
    def __init__(self) -> None:
        self.active = False
        self.starts = 0
        self.stops = 0

    def start_significant_change_updates(self) -> None:
        self.active = True
        self.starts += 1

    def stop_significant_change_updates(self) -> None:
        self.active = False
        self.stops += 1


class RecordingEnqueuer:
    """Upload pipeline that records every batch it is offered."""

    def __init__(self, result: EnqueueResult = EnqueueResult.ACCEPTED) -> None:
        self.result = result
        self.batches: list[tuple[str, list[str], str]] = []

    async def enqueue(self, account: str, assets: Sequence[Asset], selector: str) -> EnqueueResult:
        self.batches.append((account, [a.local_identifier for a in assets], selector))
        return self.result

    @property
    def enqueued(self) -> list[str]:
        return [identifier for _, identifiers, _ in self.batches for identifier in identifiers]


class InMemoryDedupIndex:
    """Dict-backed stand-in for DedupIndex used by property tests."""

    def __init__(self) -> None:
        self.entries: dict[str, set[AssetIdentity]] = {}

    async def contains(self, account: str, identity: AssetIdentity) -> bool:
        return identity in self.entries.get(account, set())

    async def count(self, account: str) -> int:
        return len(self.entries.get(account, set()))

    async def claim(self, account: str, identities: Iterable[AssetIdentity]) -> list[AssetIdentity]:
        known = self.entries.setdefault(account, set())
        claimed: list[AssetIdentity] = []
        for identity in identities:
            if identity not in known:
                known.add(identity)
                claimed.append(identity)
        return claimed

    async def insert_many(self, account: str, identities: Iterable[AssetIdentity]) -> int:
        return len(await self.claim(account, identities))

    async def clear_all(self, account: str) -> int:
        return len(self.entries.pop(account, set()))


def make_account(account: str = TEST_ACCOUNT, **flags: bool) -> Account:
    """Build a detached active account; flags default to everything enabled."""
    now = now_iso()
    values: dict[str, Any] = {
        "auto_upload": True,
        "auto_upload_background": True,
        "auto_upload_image": True,
        "auto_upload_video": True,
    }
    values.update(flags)
    user, _, url = account.partition(" ")
    return Account(
        account=account,
        user=user,
        url=url,
        active=True,
        created_at=now,
        updated_at=now,
        **values,
    )


# ── Settings and database ────────────────────────────


@pytest.fixture
def camera_roll(tmp_path: Path) -> Path:
    """Create an empty camera-roll directory."""
    roll = tmp_path / "camera-roll"
    roll.mkdir()
    return roll


@pytest.fixture
def test_settings(camera_roll: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        media_library_dir=camera_roll,
        api_token=TEST_API_TOKEN,
        default_account_user="alice",
        default_account_url="https://cloud.example.com",
        default_auto_upload=True,
        default_auto_upload_image=True,
        default_auto_upload_video=True,
        permission_prompt_timeout_seconds=5,
    )


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_account(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Account]]:
    """Persist an active account with the given flags."""

    async def _add(account: str = TEST_ACCOUNT, **flags: bool) -> Account:
        row = make_account(account, **flags)
        async with session_factory() as session:
            session.add(row)
            await session.commit()
        return row

    return _add


@pytest.fixture
def account_store(session_factory: async_sessionmaker[AsyncSession]) -> AccountStore:
    return AccountStore(session_factory)


@pytest.fixture
def dedup_index(session_factory: async_sessionmaker[AsyncSession]) -> DedupIndex:
    return DedupIndex(session_factory)


@pytest.fixture
def upload_queue(session_factory: async_sessionmaker[AsyncSession]) -> DatabaseUploadQueue:
    return DatabaseUploadQueue(session_factory, max_pending=5)


# ── HTTP ─────────────────────────────────────────────


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB, default
    account, service wiring) because ASGITransport does not trigger it.
    """
    from autoupload.database import create_engine as create_db_engine

    app = create_app(settings)
    settings.validate_runtime_security()

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    await create_schema(engine)

    async with session_factory() as session:
        await ensure_default_account(session, settings)

    init_services(app, settings, session_factory)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {settings.api_token}"},
    ) as ac:
        yield ac

    app.state.wake_trigger.close()
    await engine.dispose()
