from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Protocol

from google.cloud import storage

from .ordering import SectionEditor

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    def upload(self, name: str, data: bytes, content_type: str | None = None) -> str:
        """Store ``data`` under ``name`` and return its public URL."""
        ...


class InMemoryObjectStorage:
    def __init__(self, base_url: str = "https://storage.local/website-images") -> None:
        self.base_url = base_url.rstrip("/")
        self._objects: Dict[str, tuple[bytes, str | None]] = {}
        self._lock = threading.Lock()

    def upload(self, name: str, data: bytes, content_type: str | None = None) -> str:
        with self._lock:
            self._objects[name] = (data, content_type)
        return f"{self.base_url}/{name}"

    def get(self, name: str) -> bytes | None:
        with self._lock:
            entry = self._objects.get(name)
        return entry[0] if entry else None


class CloudStorageObjectStorage:
    """Uploads site images to a public Cloud Storage bucket."""

    def __init__(self, *, project_id: str | None, bucket_name: str, client: storage.Client | None = None) -> None:
        self._client = client or storage.Client(project=project_id)
        self._bucket = self._client.bucket(bucket_name)

    def upload(self, name: str, data: bytes, content_type: str | None = None) -> str:
        blob = self._bucket.blob(name)
        blob.upload_from_string(data, content_type=content_type)
        logger.info("Uploaded asset", extra={"object_name": name, "size": len(data)})
        return blob.public_url


def asset_object_name(owner_id: str, website_id: str, filename: str, *, prefix: str = "") -> str:
    """``<owner>/<website>/<prefix><millis>.<ext>``; the owner folder scopes access rules."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"{owner_id}/{website_id}/{prefix}{int(time.time() * 1000)}.{extension}"


def attach_uploaded_asset(
    editor: SectionEditor,
    object_storage: ObjectStorage,
    *,
    owner_id: str,
    website_id: str,
    page_id: str,
    index: int,
    filename: str,
    data: bytes,
    content_type: str | None = None,
    field: str = "image",
    item_index: int | None = None,
) -> str:
    """Upload an image and write its URL into a section (or one of its items).

    The URL goes through the regular buffered edit path, so the change is
    unsaved until the page is saved.
    """
    url = object_storage.upload(asset_object_name(owner_id, website_id, filename), data, content_type)
    if item_index is None:
        editor.update_field(page_id, index, field, url)
    else:
        editor.update_item(page_id, index, item_index, field, url)
    return url


def upload_favicon(
    object_storage: ObjectStorage,
    *,
    owner_id: str,
    website_id: str,
    filename: str,
    data: bytes,
    content_type: str | None = None,
) -> str:
    name = asset_object_name(owner_id, website_id, filename, prefix="favicon-")
    return object_storage.upload(name, data, content_type)


__all__ = [
    "CloudStorageObjectStorage",
    "InMemoryObjectStorage",
    "ObjectStorage",
    "asset_object_name",
    "attach_uploaded_asset",
    "upload_favicon",
]
