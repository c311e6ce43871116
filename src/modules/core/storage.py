"""Blob storage adapter for brand logos and product images.

Backed by Django's storage API (``STORAGES["default"]``), so the concrete
store (filesystem, S3, in-memory for tests) is a settings decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Sequence

from django.core.exceptions import SuspiciousFileOperation
from django.core.files.base import ContentFile
from django.utils.text import get_valid_filename

from modules.core.exceptions import StorageError

if TYPE_CHECKING:
    from modules.core.context import ServiceContext


@dataclass(frozen=True)
class UploadedAsset:
    """A file received from the caller, not yet stored."""

    filename: str
    content: bytes


class IBlobStorage(Protocol):
    def upload(
        self, asset: UploadedAsset, folder: str, tags: Sequence[str] = ()
    ) -> str: ...


class DjangoBlobStorage:
    """Stores assets through a Django ``Storage`` and returns their URL.

    Raises:
        StorageError: the underlying store rejected the write.
    """

    def __init__(self, context: ServiceContext, storage=None) -> None:
        if storage is None:
            from django.core.files.storage import default_storage

            storage = default_storage
        self._storage = storage
        self._root = context.settings.asset_folder
        self._log = context.logger_for("blob_storage")

    def upload(
        self, asset: UploadedAsset, folder: str, tags: Sequence[str] = ()
    ) -> str:
        if not asset.content:
            raise StorageError(f"Asset '{asset.filename}' is empty.")
        path = f"{self._root}/{folder}/{asset.filename}"
        try:
            path = f"{self._root}/{folder}/{get_valid_filename(asset.filename)}"
            name = self._storage.save(path, ContentFile(asset.content))
            url = self._storage.url(name)
        except (OSError, ValueError, SuspiciousFileOperation) as exc:
            self._log.warning("storage.upload_failed", path=path, error=str(exc))
            raise StorageError(f"Failed to upload '{asset.filename}': {exc}") from exc
        self._log.info("storage.uploaded", path=name, tags=list(tags))
        return url
