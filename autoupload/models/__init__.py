"""SQLAlchemy ORM models for the auto-upload engine."""

from autoupload.models.account import Account
from autoupload.models.base import Base
from autoupload.models.photo_library import PhotoLibraryEntry
from autoupload.models.upload_queue import UploadQueueEntry

__all__ = [
    "Account",
    "Base",
    "PhotoLibraryEntry",
    "UploadQueueEntry",
]
