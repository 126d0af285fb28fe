"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from autoupload import __version__
from autoupload.api.autoupload import router as autoupload_router
from autoupload.api.device import router as device_router
from autoupload.api.health import router as health_router
from autoupload.config import Settings
from autoupload.database import create_engine, create_schema
from autoupload.exceptions import InternalServerError
from autoupload.services.account_service import AccountStore, ensure_default_account
from autoupload.services.authorization_service import AuthorizationGate
from autoupload.services.autoupload_service import AutoUploadService
from autoupload.services.dedup_index import DedupIndex
from autoupload.services.device_state import DeviceState
from autoupload.services.media_catalog import AssetCatalogScanner, FilesystemMediaLibrary
from autoupload.services.sync_planner import SyncPlanner
from autoupload.services.upload_queue import DatabaseUploadQueue
from autoupload.services.wake_trigger import WakeTrigger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("exifread").setLevel(logging.ERROR)


def init_services(
    app: FastAPI,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> AutoUploadService:
    """Wire the engine components and store them on the app state."""
    device_state = DeviceState()
    accounts = AccountStore(session_factory)
    gate = AuthorizationGate(device_state, settings.permission_prompt_timeout_seconds)
    index = DedupIndex(session_factory)
    queue = DatabaseUploadQueue(session_factory, settings.upload_queue_max_pending)
    scanner = AssetCatalogScanner(FilesystemMediaLibrary(settings.media_library_dir))
    trigger = WakeTrigger(device_state, accounts, gate, device_state.is_backgrounded)
    service = AutoUploadService(accounts, gate, SyncPlanner(scanner, index), queue, trigger)

    app.state.device_state = device_state
    app.state.account_store = accounts
    app.state.authorization_gate = gate
    app.state.dedup_index = index
    app.state.upload_queue = queue
    app.state.wake_trigger = trigger
    app.state.autoupload_service = service
    return service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    settings.validate_runtime_security()
    _configure_logging(settings.debug)
    logger.info("Starting auto-upload engine (debug=%s)", settings.debug)

    try:
        engine, session_factory = create_engine(settings)
        app.state.engine = engine
        app.state.session_factory = session_factory
    except Exception as exc:
        logger.critical(
            "Failed to initialize database: %s. Check database path and permissions.", exc
        )
        raise

    try:
        await create_schema(engine)
    except Exception as exc:
        logger.critical("Failed to create database schema: %s.", exc)
        raise

    try:
        async with session_factory() as session:
            account = await ensure_default_account(session, settings)
            logger.info("Active account: %s", account.account)
    except Exception as exc:
        logger.critical("Failed to ensure default account: %s.", exc)
        raise

    if not settings.media_library_dir.is_dir():
        logger.warning(
            "Camera roll %s does not exist, scans will find nothing", settings.media_library_dir
        )

    init_services(app, settings, session_factory)

    yield

    app.state.wake_trigger.close()

    try:
        await engine.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)

    logger.info("Auto-upload engine stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    docs_enabled = settings.debug

    app = FastAPI(
        title="AutoUpload",
        description="Device media auto-upload engine",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings

    app.include_router(health_router)
    app.include_router(autoupload_router)
    app.include_router(device_router)

    # Global exception handlers

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(InternalServerError)
    async def internal_server_error_handler(
        request: Request, exc: InternalServerError
    ) -> JSONResponse:
        logger.error(
            "InternalServerError in %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.error("ValueError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        if isinstance(exc, (ConnectionError, TimeoutError)):
            raise exc
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Storage operation failed"},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(
            "OperationalError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "autoupload.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
