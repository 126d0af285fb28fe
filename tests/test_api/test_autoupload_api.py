"""Integration tests for the auto-upload and device bridge endpoints."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from tests.conftest import TEST_ACCOUNT, create_test_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from httpx import AsyncClient

    from autoupload.config import Settings


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    async with create_test_client(test_settings) as ac:
        yield ac


@pytest.fixture
def photos(camera_roll: Path) -> list[str]:
    names = ["2024/IMG_0001.jpg", "2024/IMG_0002.heic", "2024/MOV_0001.mov"]
    for name in names:
        path = camera_roll / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x00")
    return names


async def _grant(client: AsyncClient, kind: str) -> None:
    resp = await client.put(f"/api/device/permissions/{kind}", json={"status": "granted"})
    assert resp.status_code == 200


async def _answer_prompt(client: AsyncClient, kind: str, status: str) -> dict[str, Any]:
    for _ in range(200):
        state = (await client.get("/api/device/state")).json()
        if kind in state["pending_prompts"]:
            resp = await client.put(f"/api/device/permissions/{kind}", json={"status": status})
            assert resp.status_code == 200
            result: dict[str, Any] = resp.json()
            return result
        await asyncio.sleep(0.01)
    raise AssertionError(f"no {kind} prompt appeared")


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["database"] == "ok"
        assert data["media_library"] == "ok"

    @pytest.mark.asyncio
    async def test_missing_camera_roll_degrades(
        self, test_settings: Settings, tmp_path: Path
    ) -> None:
        settings = test_settings.model_copy(update={"media_library_dir": tmp_path / "nowhere"})
        async with create_test_client(settings) as ac:
            data = (await ac.get("/api/health")).json()
        assert data["status"] == "degraded"
        assert data["media_library"] == "missing"


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_of_default_account(self, client: AsyncClient) -> None:
        resp = await client.get("/api/autoupload/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["account"] == {
            "account": TEST_ACCOUNT,
            "auto_upload": True,
            "auto_upload_background": False,
            "auto_upload_image": True,
            "auto_upload_video": True,
        }
        assert data["trigger_state"] == "stopped"
        assert data["scan_running"] is False
        assert data["known_asset_count"] is None
        assert data["indexed_assets"] == 0
        assert data["pending_uploads"] == 0

    @pytest.mark.asyncio
    async def test_device_state_initially_undetermined(self, client: AsyncClient) -> None:
        data = (await client.get("/api/device/state")).json()
        assert data["permissions"] == {
            "media_library": "not_determined",
            "location": "not_determined",
        }
        assert data["pending_prompts"] == []
        assert data["app_state"] == "foreground"
        assert data["monitoring_requested"] is False


class TestAuth:
    @pytest.mark.asyncio
    async def test_sync_requires_token(self, client: AsyncClient) -> None:
        resp = await client.post("/api/autoupload/sync", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_permission_report_requires_token(self, client: AsyncClient) -> None:
        resp = await client.put(
            "/api/device/permissions/location",
            json={"status": "granted"},
            headers={"Authorization": ""},
        )
        assert resp.status_code == 401


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_waits_for_prompt_answer(
        self, client: AsyncClient, photos: list[str]
    ) -> None:
        sync = asyncio.create_task(client.post("/api/autoupload/sync"))
        await _answer_prompt(client, "media_library", "granted")
        resp = await sync

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "completed"
        assert data["mode"] == "incremental"
        assert data["selector"] == "autoUpload"
        assert data["enqueue_result"] == "accepted"
        assert [a["local_identifier"] for a in data["planned"]] == photos

        status = (await client.get("/api/autoupload/status")).json()
        assert status["indexed_assets"] == 3
        assert status["pending_uploads"] == 3

    @pytest.mark.asyncio
    async def test_second_sync_plans_nothing(
        self, client: AsyncClient, photos: list[str]
    ) -> None:
        await _grant(client, "media_library")
        await client.post("/api/autoupload/sync")
        data = (await client.post("/api/autoupload/sync")).json()
        assert data["status"] == "completed"
        assert data["planned_count"] == 0
        assert data["enqueue_result"] is None

    @pytest.mark.asyncio
    async def test_denied_prompt_turns_auto_upload_off(
        self, client: AsyncClient, photos: list[str]
    ) -> None:
        sync = asyncio.create_task(client.post("/api/autoupload/sync"))
        await _answer_prompt(client, "media_library", "denied")
        data = (await sync).json()

        assert data["status"] == "denied"
        status = (await client.get("/api/autoupload/status")).json()
        assert status["account"]["auto_upload"] is False
        assert status["indexed_assets"] == 0

    @pytest.mark.asyncio
    async def test_realign_and_upload_all(self, client: AsyncClient, photos: list[str]) -> None:
        await _grant(client, "media_library")
        await client.post("/api/autoupload/sync")

        realign = (await client.post("/api/autoupload/realign")).json()
        assert realign["mode"] == "full_realign"
        assert realign["planned_count"] == 3

        upload_all = (await client.post("/api/autoupload/upload-all")).json()
        assert upload_all["mode"] is None
        assert upload_all["selector"] == "autoUploadAll"
        assert upload_all["planned_count"] == 3

        status = (await client.get("/api/autoupload/status")).json()
        assert status["known_asset_count"] == 3
        assert status["indexed_assets"] == 3
        assert status["pending_uploads"] == 9


class TestBackgroundFlow:
    @pytest.mark.asyncio
    async def test_location_change_in_background_runs_cycle(
        self, client: AsyncClient, camera_roll: Path, photos: list[str]
    ) -> None:
        await _grant(client, "media_library")
        resp = await client.put("/api/autoupload/account", json={"auto_upload_background": True})
        assert resp.status_code == 200
        assert resp.json()["auto_upload_background"] is True

        sync = asyncio.create_task(client.post("/api/autoupload/sync"))
        state = await _answer_prompt(client, "location", "granted")
        assert (await sync).json()["planned_count"] == 3
        assert state["permissions"]["location"] == "granted"

        state = (await client.get("/api/device/state")).json()
        assert state["monitoring_requested"] is True
        assert state["trigger_state"] == "monitoring"

        (camera_roll / "IMG_0100.jpg").write_bytes(b"\x00")

        foreground = (
            await client.post("/api/device/location", json={"latitude": 52.5, "longitude": 13.4})
        ).json()
        assert foreground == {"triggered": False, "outcome": None}

        await client.put("/api/device/app-state", json={"state": "background"})
        woken = (
            await client.post("/api/device/location", json={"latitude": 52.5, "longitude": 13.4})
        ).json()
        assert woken["triggered"] is True
        assert [a["local_identifier"] for a in woken["outcome"]["planned"]] == ["IMG_0100.jpg"]

    @pytest.mark.asyncio
    async def test_location_revocation_clears_background(
        self, client: AsyncClient, photos: list[str]
    ) -> None:
        await _grant(client, "media_library")
        await _grant(client, "location")
        await client.put("/api/autoupload/account", json={"auto_upload_background": True})
        await client.post("/api/autoupload/sync")

        resp = await client.put("/api/device/permissions/location", json={"status": "denied"})
        data = resp.json()
        assert data["trigger_state"] == "stopped"
        assert data["monitoring_requested"] is False

        status = (await client.get("/api/autoupload/status")).json()
        assert status["account"]["auto_upload_background"] is False
        assert status["account"]["auto_upload"] is True

    @pytest.mark.asyncio
    async def test_monitoring_failure_clears_background(
        self, client: AsyncClient, photos: list[str]
    ) -> None:
        await _grant(client, "media_library")
        await _grant(client, "location")
        await client.put("/api/autoupload/account", json={"auto_upload_background": True})
        await client.post("/api/autoupload/sync")

        resp = await client.post("/api/device/location/failure", json={"error": "denied"})
        assert resp.json()["trigger_state"] == "stopped"
        status = (await client.get("/api/autoupload/status")).json()
        assert status["account"]["auto_upload_background"] is False

    @pytest.mark.asyncio
    async def test_turning_off_background_stops_trigger(
        self, client: AsyncClient, photos: list[str]
    ) -> None:
        await _grant(client, "media_library")
        await _grant(client, "location")
        await client.put("/api/autoupload/account", json={"auto_upload_background": True})
        await client.post("/api/autoupload/sync")

        await client.put("/api/autoupload/account", json={"auto_upload_background": False})
        state = (await client.get("/api/device/state")).json()
        assert state["trigger_state"] == "stopped"


class TestValidation:
    @pytest.mark.asyncio
    async def test_location_out_of_range(self, client: AsyncClient) -> None:
        resp = await client.post("/api/device/location", json={"latitude": 91, "longitude": 0})
        assert resp.status_code == 422
        assert resp.json()["detail"][0]["field"] == "latitude"

    @pytest.mark.asyncio
    async def test_unknown_permission_kind(self, client: AsyncClient) -> None:
        resp = await client.put("/api/device/permissions/camera", json={"status": "granted"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_permission_status(self, client: AsyncClient) -> None:
        resp = await client.put("/api/device/permissions/location", json={"status": "maybe"})
        assert resp.status_code == 422
