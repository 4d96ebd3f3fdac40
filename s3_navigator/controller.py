from __future__ import annotations
"""Controller layer binding the listing service to one bucket."""

from .directory import map_entries
from .models import DirectoryEntry, ListingResult
from .services import S3ListingService
from .settings import AppSettings


class S3NavigatorController:
    """Coordinates navigation requests with the :class:`S3ListingService`."""

    def __init__(
        self,
        service: S3ListingService | None = None,
        settings: AppSettings | None = None,
    ):
        if service is None:
            service = S3ListingService(settings)
        self._service = service
        self._settings = settings or service.settings

    @property
    def bucket(self) -> str:
        return self._settings.bucket

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def list_prefix(self, prefix: str = "") -> ListingResult:
        return self._service.list(self.bucket, prefix)

    def list_directory(self, prefix: str = "") -> list[DirectoryEntry]:
        return map_entries(self.list_prefix(prefix), prefix)

    def download(self, key: str) -> bytes:
        if not key or key.endswith("/"):
            raise ValueError(f"Not an object key: {key!r}")
        return self._service.fetch_object(self.bucket, key)
