"""Upload queue model."""

from __future__ import annotations

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autoupload.models.base import Base


class UploadQueueEntry(Base):
    """An asset waiting for the upload pipeline."""

    __tablename__ = "upload_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account: Mapped[str] = mapped_column(String, nullable=False)
    local_identifier: Mapped[str] = mapped_column(Text, nullable=False)
    media_kind: Mapped[str] = mapped_column(String, nullable=False)
    creation_date: Mapped[str] = mapped_column(String, nullable=False, default="")
    selector: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="waiting")
    queued_at: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (Index("ix_upload_queue_account_status", "account", "status"),)
