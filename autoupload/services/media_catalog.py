"""Device media catalog: asset types, library adapters and the catalog scanner."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import exifread

from autoupload.exceptions import CatalogUnavailableError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autoupload.models.account import Account

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset(
    {
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".heic",
        ".heif",
        ".tif",
        ".tiff",
        ".webp",
        ".dng",
    }
)
VIDEO_EXTENSIONS = frozenset({".mov", ".mp4", ".m4v", ".3gp", ".avi", ".mkv"})

# Checked in priority order
EXIF_DATE_TAGS = (
    "EXIF DateTimeOriginal",
    "EXIF DateTimeDigitized",
    "Image DateTime",
    "QuickTime Creation Date",
)
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


class MediaKind(StrEnum):
    """Kind of a device media asset."""

    IMAGE = "image"
    VIDEO = "video"


class MediaFilter(StrEnum):
    """Media-type predicate applied to a catalog query."""

    IMAGE = "image"
    VIDEO = "video"
    BOTH = "both"

    def matches(self, kind: MediaKind) -> bool:
        return self is MediaFilter.BOTH or self.value == kind.value


@dataclass(frozen=True)
class Asset:
    """A single media item from the device catalog."""

    local_identifier: str
    media_kind: MediaKind
    creation_date: datetime | None = None


@runtime_checkable
class MediaLibrary(Protocol):
    """Query interface of the device media catalog."""

    async def fetch_assets(self, media_filter: MediaFilter) -> Sequence[Asset] | None:
        """Return the camera-roll assets matching the filter.

        Returns None or raises CatalogUnavailableError when the collection
        does not exist.
        """
        ...


def classify_media(path: Path) -> MediaKind | None:
    """Return the media kind of a file based on its extension."""
    ext = path.suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    return None


def _parse_exif_date(raw_value: str, raw_offset: str | None = None) -> datetime | None:
    """Parse an EXIF date, returning None if invalid or zeroed.

    EXIF dates carry no zone; ``raw_offset`` (``OffsetTimeOriginal``) is
    applied when present, otherwise the date is taken as UTC.
    """
    try:
        dt = datetime.strptime(raw_value.strip(), EXIF_DATE_FORMAT)
    except ValueError:
        return None
    # Cameras with an unset clock write zeroed or pre-epoch dates
    if dt.year < 1970:
        return None
    tzinfo = UTC
    if raw_offset:
        try:
            tzinfo = datetime.strptime(raw_offset.strip(), "%z").tzinfo or UTC
        except ValueError:
            tzinfo = UTC
    return dt.replace(tzinfo=tzinfo)


def read_capture_date(path: Path) -> datetime | None:
    """Return the capture date recorded in the file's EXIF/QuickTime tags, or None."""
    try:
        with path.open("rb") as f:
            tags = exifread.process_file(f, details=False)
    except Exception as exc:
        logger.debug("Could not read EXIF tags of %s: %s", path, exc)
        return None

    offset = tags.get("EXIF OffsetTimeOriginal")
    for tag_name in EXIF_DATE_TAGS:
        if tag_name in tags:
            dt = _parse_exif_date(str(tags[tag_name]), str(offset) if offset else None)
            if dt is not None:
                return dt
    return None


def _creation_date(path: Path, stat: os.stat_result) -> datetime | None:
    captured = read_capture_date(path)
    if captured is not None:
        return captured
    birthtime = getattr(stat, "st_birthtime", None)
    if not birthtime:
        return None
    return datetime.fromtimestamp(birthtime, tz=UTC)


class FilesystemMediaLibrary:
    """Camera roll backed by a directory tree.

    The local identifier is the POSIX path relative to the root. The creation
    date is the EXIF capture date, else the file birth time where the platform
    records one, else absent.
    Assets are enumerated in path order.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    async def fetch_assets(self, media_filter: MediaFilter) -> list[Asset]:
        return await asyncio.to_thread(self._walk, media_filter)

    def _walk(self, media_filter: MediaFilter) -> list[Asset]:
        if not self.root.is_dir():
            raise CatalogUnavailableError(f"Camera roll not found: {self.root}")

        assets: list[Asset] = []
        for root, dirs, files in os.walk(self.root):
            dirs[:] = sorted(d for d in dirs if not d.startswith("."))
            for filename in sorted(files):
                if filename.startswith("."):
                    continue
                full = Path(root) / filename
                kind = classify_media(full)
                if kind is None or not media_filter.matches(kind):
                    continue
                try:
                    stat = full.stat()
                except OSError as exc:
                    logger.warning("Skipping unreadable asset %s: %s", full, exc)
                    continue
                assets.append(
                    Asset(
                        local_identifier=full.relative_to(self.root).as_posix(),
                        media_kind=kind,
                        creation_date=_creation_date(full, stat),
                    )
                )
        return assets


class AssetCatalogScanner:
    """Enumerate candidate assets from a media library."""

    def __init__(self, library: MediaLibrary) -> None:
        self._library = library

    @staticmethod
    def filter_for(account: Account, *, full: bool = False) -> MediaFilter | None:
        """Return the media filter implied by the account flags.

        None means neither images nor videos are enabled and no scan may run.
        """
        if full or (account.auto_upload_image and account.auto_upload_video):
            return MediaFilter.BOTH
        if account.auto_upload_image:
            return MediaFilter.IMAGE
        if account.auto_upload_video:
            return MediaFilter.VIDEO
        return None

    async def scan(self, media_filter: MediaFilter) -> tuple[Asset, ...]:
        """Return the catalog contents matching the filter, in enumeration order.

        A missing or empty catalog yields an empty tuple.
        """
        try:
            assets = await self._library.fetch_assets(media_filter)
        except CatalogUnavailableError as exc:
            logger.info("Media catalog unavailable, treating as empty: %s", exc)
            return ()
        if not assets:
            return ()
        return tuple(asset for asset in assets if media_filter.matches(asset.media_kind))
