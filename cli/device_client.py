"""CLI device bridge for the auto-upload engine.

Reports permission decisions, app state and location changes the way the
phone app does, and triggers the sync entry points by hand.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

try:
    import httpx
except ImportError:
    print("Error: httpx is required. Install with: pip install httpx")
    sys.exit(1)

CONFIG_FILE = ".autoupload-device.json"
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}

PERMISSION_KINDS = ("media_library", "location")
PERMISSION_STATUSES = ("not_determined", "granted", "denied", "restricted")
APP_STATES = ("foreground", "background")


class DeviceClient:
    """HTTP client for the engine's device bridge and auto-upload endpoints."""

    def __init__(self, server_url: str, token: str | None = None, **client_kwargs: Any) -> None:
        self.server_url = server_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.Client(
            base_url=self.server_url,
            headers=headers,
            timeout=60.0,
            **client_kwargs,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> DeviceClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _json(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        resp = self.client.request(method, path, json=body)
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result

    def status(self) -> dict[str, Any]:
        return self._json("GET", "/api/autoupload/status")

    def device_state(self) -> dict[str, Any]:
        return self._json("GET", "/api/device/state")

    def sync(self) -> dict[str, Any]:
        return self._json("POST", "/api/autoupload/sync")

    def realign(self) -> dict[str, Any]:
        return self._json("POST", "/api/autoupload/realign")

    def upload_all(self) -> dict[str, Any]:
        return self._json("POST", "/api/autoupload/upload-all")

    def set_flags(self, flags: dict[str, bool]) -> dict[str, Any]:
        return self._json("PUT", "/api/autoupload/account", flags)

    def report_permission(self, kind: str, status: str) -> dict[str, Any]:
        return self._json("PUT", f"/api/device/permissions/{kind}", {"status": status})

    def report_app_state(self, state: str) -> dict[str, Any]:
        return self._json("PUT", "/api/device/app-state", {"state": state})

    def report_location(self, latitude: float, longitude: float) -> dict[str, Any]:
        return self._json(
            "POST", "/api/device/location", {"latitude": latitude, "longitude": longitude}
        )


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def load_config(dir_path: Path) -> dict[str, str]:
    """Load bridge config from file."""
    config_path = dir_path / CONFIG_FILE
    if not config_path.exists():
        return {}
    config: dict[str, str] = json.loads(config_path.read_text())
    return config


def save_config(dir_path: Path, config: dict[str, str]) -> None:
    """Save bridge config to file."""
    config_path = dir_path / CONFIG_FILE
    config_path.write_text(json.dumps(config, indent=2))


def format_outcome(outcome: dict[str, Any]) -> str:
    """Render a sync outcome as one summary line plus one line per planned asset."""
    lines = [
        f"{outcome.get('status', 'unknown')}: {outcome.get('planned_count', 0)} asset(s) planned"
    ]
    if outcome.get("enqueue_result"):
        lines[0] += f", upload queue {outcome['enqueue_result']}"
    for asset in outcome.get("planned", []):
        lines.append(f"    + {asset['local_identifier']} ({asset['media_kind']})")
    return "\n".join(lines)


def _parse_flag(value: str) -> bool:
    lowered = value.lower()
    if lowered in {"on", "true", "1", "yes"}:
        return True
    if lowered in {"off", "false", "0", "no"}:
        return False
    raise argparse.ArgumentTypeError(f"Expected on/off, got {value!r}")


def _print_status(status: dict[str, Any]) -> None:
    account = status.get("account")
    print("Auto upload status:")
    if account is None:
        print("  No active account")
    else:
        print(f"  Account:            {account['account']}")
        print(f"  Auto upload:        {account['auto_upload']}")
        print(f"  Background:         {account['auto_upload_background']}")
        print(f"  Images:             {account['auto_upload_image']}")
        print(f"  Videos:             {account['auto_upload_video']}")
    print(f"  Wake trigger:       {status['trigger_state']}")
    print(f"  Scan running:       {status['scan_running']}")
    print(f"  Indexed assets:     {status['indexed_assets']}")
    print(f"  Pending uploads:    {status['pending_uploads']}")
    if status.get("known_asset_count") is not None:
        print(f"  Known asset count:  {status['known_asset_count']}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="autoupload-device",
        description="Device bridge for the auto-upload engine",
    )
    parser.add_argument("--dir", "-d", default=".", help="Config directory (default: current)")
    parser.add_argument("--server", "-s", help="Server URL")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )
    parser.add_argument("--token", help="API token of the engine")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init", help="Save server and token")
    subparsers.add_parser("status", help="Show engine status")
    subparsers.add_parser("sync", help="Run an incremental sync")
    subparsers.add_parser("realign", help="Rebuild the index and re-upload everything")
    subparsers.add_parser("upload-all", help="Upload everything, ignoring the index")

    flags_parser = subparsers.add_parser("flags", help="Change auto upload flags")
    for flag in ("auto-upload", "background", "image", "video"):
        flags_parser.add_argument(f"--{flag}", type=_parse_flag, metavar="on|off")

    permission_parser = subparsers.add_parser("permission", help="Report a permission status")
    permission_parser.add_argument("kind", choices=PERMISSION_KINDS)
    permission_parser.add_argument("status", choices=PERMISSION_STATUSES)

    app_state_parser = subparsers.add_parser("app-state", help="Report the app state")
    app_state_parser.add_argument("state", choices=APP_STATES)

    location_parser = subparsers.add_parser("location", help="Report a location change")
    location_parser.add_argument("latitude", type=float)
    location_parser.add_argument("longitude", type=float)

    args = parser.parse_args(argv)
    config_dir = Path(args.dir).resolve()

    if args.command == "init":
        if not args.server:
            print("Error: --server required for init")
            sys.exit(1)
        try:
            server_url = validate_server_url(args.server, args.allow_insecure_http)
        except ValueError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        config = {"server": server_url}
        if args.token:
            config["token"] = args.token
        save_config(config_dir, config)
        print(f"Initialized device config in {config_dir / CONFIG_FILE}")
        return

    config = load_config(config_dir)
    configured_server_url = args.server or config.get("server")
    if not configured_server_url:
        print("Error: No server configured. Run 'autoupload-device init --server <url>' first.")
        sys.exit(1)
    try:
        server_url = validate_server_url(configured_server_url, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    token = args.token or config.get("token")
    with DeviceClient(server_url, token) as client:
        if args.command == "status":
            _print_status(client.status())
        elif args.command == "sync":
            print(format_outcome(client.sync()))
        elif args.command == "realign":
            print(format_outcome(client.realign()))
        elif args.command == "upload-all":
            print(format_outcome(client.upload_all()))
        elif args.command == "flags":
            flags = {
                "auto_upload": args.auto_upload,
                "auto_upload_background": args.background,
                "auto_upload_image": args.image,
                "auto_upload_video": args.video,
            }
            updated = client.set_flags({k: v for k, v in flags.items() if v is not None})
            print(json.dumps(updated, indent=2))
        elif args.command == "permission":
            state = client.report_permission(args.kind, args.status)
            print(f"Reported {args.kind} {args.status}; pending prompts: {state['pending_prompts']}")
        elif args.command == "app-state":
            client.report_app_state(args.state)
            print(f"Reported app state {args.state}")
        elif args.command == "location":
            result = client.report_location(args.latitude, args.longitude)
            if result.get("triggered") and result.get("outcome"):
                print(format_outcome(result["outcome"]))
            else:
                print("Location reported, no sync triggered")
        else:
            parser.print_help()


if __name__ == "__main__":
    main()
