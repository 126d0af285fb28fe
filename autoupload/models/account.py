"""Account model."""

from __future__ import annotations

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autoupload.models.base import Base


class Account(Base):
    """User/server pairing the engine uploads for, with its auto-upload flags."""

    __tablename__ = "accounts"

    account: Mapped[str] = mapped_column(String, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_upload: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_upload_background: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_upload_image: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_upload_video: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
