"""Application-level exception types.

Convention:
- ``InternalServerError``: for errors whose details must never reach clients.
  The global handler logs the full message at ERROR and returns a generic
  "Internal server error" (500) to the client.
- ``AutoUploadError`` subclasses are resolved inside the engine and never
  surface to callers: a failing cycle degrades to "do nothing this cycle".
"""

from __future__ import annotations


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients."""


class AutoUploadError(Exception):
    """Base class for errors handled inside the auto-upload engine."""


class CatalogUnavailableError(AutoUploadError):
    """The device media catalog is missing or cannot be enumerated.

    The scanner treats this as an empty catalog.
    """
