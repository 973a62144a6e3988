"""Multipart attachments for task submissions.

A submission is all-or-nothing: every part is type- and size-checked before
the first byte is stored, and if storing any part fails the parts already
stored are removed again.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import UploadFile

from research_tasks.core.errors import InvalidInput
from research_tasks.services.storage import StorageBackend, StoredFile

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
}

CHUNK_SIZE = 64 * 1024


@dataclass
class PendingUpload:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def descriptor_to_stored(descriptor: Dict[str, Any]) -> StoredFile:
    return StoredFile(
        url=descriptor["url"],
        provider=descriptor.get("provider") or "local",
        public_id=descriptor.get("public_id") or descriptor["url"].rsplit("/", 1)[-1],
        resource_type=descriptor.get("resource_type"),
    )


class AttachmentHandler:
    def __init__(self, storage: StorageBackend, max_file_size: int, max_files: int):
        self.storage = storage
        self.max_file_size = max_file_size
        self.max_files = max_files

    async def prepare(self, files: Optional[List[UploadFile]]) -> List[PendingUpload]:
        # browsers send an empty part when no file was picked
        files = [f for f in (files or []) if f is not None and f.filename]
        if len(files) > self.max_files:
            raise InvalidInput(
                f"Too many files: at most {self.max_files} per submission",
                code="TOO_MANY_FILES",
            )

        for upload in files:
            content_type = (upload.content_type or "").split(";")[0].strip().lower()
            if content_type not in ALLOWED_MIME_TYPES:
                raise InvalidInput(
                    f"File type not allowed for {upload.filename}: {content_type or 'unknown'}",
                    code="UNSUPPORTED_FILE_TYPE",
                )

        pending = []
        for upload in files:
            content = await self._read_bounded(upload)
            content_type = (upload.content_type or "").split(";")[0].strip().lower()
            pending.append(PendingUpload(upload.filename, content_type, content))
        return pending

    async def _read_bounded(self, upload: UploadFile) -> bytes:
        chunks = []
        total = 0
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            # fail fast, never buffer more than the ceiling
            if total > self.max_file_size:
                raise InvalidInput(
                    f"File too large: {upload.filename} exceeds {self.max_file_size} bytes",
                    code="FILE_TOO_LARGE",
                )
            chunks.append(chunk)
        return b"".join(chunks)

    async def store_all(self, pending: List[PendingUpload]) -> List[Dict[str, Any]]:
        descriptors: List[Dict[str, Any]] = []
        try:
            for item in pending:
                stored = await self.storage.save(item.filename, item.content, item.content_type)
                descriptors.append(
                    {
                        "name": item.filename,
                        "url": stored.url,
                        "mime_type": item.content_type,
                        "size": item.size,
                        "provider": stored.provider,
                        "public_id": stored.public_id,
                        "resource_type": stored.resource_type,
                    }
                )
        except Exception:
            await self.discard(descriptors)
            raise
        return descriptors

    async def discard(self, descriptors: List[Dict[str, Any]]) -> None:
        """Remove stored files. Failures are logged; the caller's error wins."""
        for descriptor in descriptors:
            try:
                await self.storage.delete(descriptor_to_stored(descriptor))
            except Exception:
                logger.exception("Could not remove stored file %s", descriptor.get("url"))
