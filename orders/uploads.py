import logging
import os
import uuid
from dataclasses import dataclass

from django.conf import settings
from django.core.files.storage import default_storage

from .exceptions import CustomAssetUploadFailed

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 5
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class UploadedAsset:
    url: str
    key: str
    filename: str = ""
    color: str = ""


@dataclass(frozen=True)
class PendingUpload:
    file: object
    color: str = ""


def collect_files(groups, files) -> list[PendingUpload]:
    """Pair each named upload field in ``groups`` with the file from ``files``."""
    pending = []
    for group in groups or []:
        for name in group.files:
            f = files.get(name) if files is not None else None
            if f is None:
                raise CustomAssetUploadFailed(f"Missing uploaded file '{name}'")
            pending.append(PendingUpload(file=f, color=group.color))
    return pending


class StorageUploader:
    """Saves order personalization images through Django's storage API."""

    def __init__(self, storage=None, prefix: str | None = None, max_files: int | None = None,
                 max_bytes: int | None = None):
        conf = getattr(settings, "ORDERS", {}) or {}
        self.storage = storage or default_storage
        self.prefix = (prefix or conf.get("CUSTOM_IMAGE_PREFIX") or "custom-images").strip("/")
        self.max_files = max_files or conf.get("MAX_CUSTOM_IMAGES", DEFAULT_MAX_FILES)
        self.max_bytes = max_bytes or conf.get("MAX_CUSTOM_IMAGE_BYTES", DEFAULT_MAX_BYTES)

    def _check(self, pending):
        if len(pending) > self.max_files:
            raise CustomAssetUploadFailed(f"At most {self.max_files} custom images are allowed")
        for p in pending:
            ctype = getattr(p.file, "content_type", "") or ""
            if not ctype.startswith("image/"):
                raise CustomAssetUploadFailed(f"{p.file.name} is not an image")
            if p.file.size > self.max_bytes:
                raise CustomAssetUploadFailed(f"{p.file.name} exceeds {self.max_bytes // (1024 * 1024)} MB")

    def upload_many(self, pending, destination_hint: str = "") -> list[UploadedAsset]:
        """Save every file or none: on any failure saved files are deleted again."""
        self._check(pending)
        folder = "/".join(b for b in (self.prefix, destination_hint.strip("/")) if b)
        saved: list[UploadedAsset] = []
        try:
            for p in pending:
                ext = os.path.splitext(p.file.name or "")[1].lower()[:10]
                key = self.storage.save(f"{folder}/{uuid.uuid4().hex}{ext}", p.file)
                saved.append(UploadedAsset(url=self.storage.url(key), key=key,
                                           filename=os.path.basename(p.file.name or ""), color=p.color))
        except Exception as e:
            logger.exception("Custom image upload failed after %d file(s)", len(saved))
            self.discard([a.key for a in saved])
            raise CustomAssetUploadFailed(f"Failed to upload custom images: {e}") from e
        return saved

    def discard(self, keys) -> None:
        for key in keys:
            try:
                self.storage.delete(key)
            except Exception:
                logger.exception("Could not delete uploaded file %s", key)
