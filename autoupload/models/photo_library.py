"""Photo library index model."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autoupload.models.base import Base


class PhotoLibraryEntry(Base):
    """An asset identity already presented for upload for an account.

    ``creation_date`` is the empty string for assets without a creation
    timestamp, so it can take part in the primary key.
    """

    __tablename__ = "photo_library"

    account: Mapped[str] = mapped_column(String, primary_key=True)
    local_identifier: Mapped[str] = mapped_column(Text, primary_key=True)
    creation_date: Mapped[str] = mapped_column(String, primary_key=True, default="")
    indexed_at: Mapped[str] = mapped_column(Text, nullable=False)
