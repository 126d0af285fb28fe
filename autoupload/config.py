"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Auto-upload engine settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/autoupload.db"

    # Device camera roll
    media_library_dir: Path = Path("./camera-roll")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # Device bridge
    api_token: str = ""
    permission_prompt_timeout_seconds: float = Field(default=120.0, gt=0)

    # Upload pipeline
    upload_queue_max_pending: int = Field(default=10000, ge=1)

    # Account bootstrap
    default_account_user: str = "admin"
    default_account_url: str = "https://cloud.example.com"
    default_auto_upload: bool = False
    default_auto_upload_background: bool = False
    default_auto_upload_image: bool = True
    default_auto_upload_video: bool = False

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if len(self.api_token) < 32:
            violations.append("API_TOKEN must be set to a high-entropy value (>=32 chars)")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
