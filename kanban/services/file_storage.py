"""
Attachment file storage.
Uploads are written under UPLOAD_DIR with a uuid-prefixed name; the returned
path is what gets stored on the Attachment row.
"""
from __future__ import annotations

import logging
import os
import uuid
from typing import Protocol

from kanban.core.config import Settings
from kanban.core.exceptions import FileTooLargeException
from kanban.schemas.attachment import FileUpload

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    async def save(self, upload: FileUpload) -> str: ...


class LocalFileStorage:

    def __init__(self, upload_dir: str, *, url_prefix: str = "/uploads/", max_bytes: int | None = None) -> None:
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix
        self.max_bytes = max_bytes

    async def save(self, upload: FileUpload) -> str:
        """Write the upload to disk and return its public path."""
        if self.max_bytes is not None and upload.size > self.max_bytes:
            raise FileTooLargeException(self.max_bytes // (1024 * 1024))

        os.makedirs(self.upload_dir, exist_ok=True)
        safe_filename = f"{uuid.uuid4()}_{os.path.basename(upload.filename)}"
        file_path = os.path.join(self.upload_dir, safe_filename)

        with open(file_path, "wb") as f:
            f.write(upload.content)
        logger.debug("Stored upload %s (%d bytes) at %s", upload.filename, upload.size, file_path)
        return self.url_prefix.rstrip("/") + "/" + safe_filename

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalFileStorage":
        return cls(
            settings.UPLOAD_DIR,
            url_prefix=settings.UPLOAD_URL_PREFIX,
            max_bytes=settings.max_file_size_bytes,
        )
