"""Pluggable file storage: local disk or Cloudinary."""

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from research_tasks.config import Settings
from research_tasks.core.errors import NotFound, Upstream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    url: str
    provider: str
    public_id: str
    resource_type: Optional[str] = None


class StorageBackend(Protocol):
    name: str

    async def save(self, filename: str, content: bytes, content_type: str) -> StoredFile: ...

    async def delete(self, stored: StoredFile) -> None: ...


class LocalStorage:
    name = "local"

    def __init__(self, directory: str, timeout_seconds: float = 30.0):
        self.directory = Path(directory).resolve()
        self.directory.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout_seconds

    async def save(self, filename: str, content: bytes, content_type: str) -> StoredFile:
        stored_name = f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
        path = self.directory / stored_name
        try:
            await asyncio.wait_for(asyncio.to_thread(path.write_bytes, content), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Writing %s to %s timed out", filename, self.directory)
            raise Upstream.timeout("File upload")
        return StoredFile(url=f"/uploads/{stored_name}", provider=self.name, public_id=stored_name)

    async def delete(self, stored: StoredFile) -> None:
        path = self.directory / Path(stored.public_id).name
        await asyncio.to_thread(path.unlink, missing_ok=True)

    def resolve(self, filename: str) -> Path:
        # only bare names produced by save() are served
        if not filename or Path(filename).name != filename or filename.startswith("."):
            raise NotFound("File not found")
        path = self.directory / filename
        if not path.is_file():
            raise NotFound("File not found")
        return path


class CloudinaryStorage:
    name = "cloudinary"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str,
        timeout_seconds: float,
    ):
        # installed with the "cloudinary" extra
        import cloudinary
        import cloudinary.exceptions
        import cloudinary.uploader

        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        self._uploader = cloudinary.uploader
        self._errors = cloudinary.exceptions.Error
        self.folder = folder
        self.timeout = timeout_seconds

    async def save(self, filename: str, content: bytes, content_type: str) -> StoredFile:
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    self._uploader.upload,
                    io.BytesIO(content),
                    folder=self.folder,
                    resource_type="auto",
                    filename_override=filename,
                    use_filename=True,
                    unique_filename=True,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Cloudinary upload of %s timed out", filename)
            raise Upstream.timeout("File upload")
        except self._errors as e:
            logger.warning("Cloudinary rejected %s: %s", filename, e)
            raise Upstream("File storage rejected the upload")

        return StoredFile(
            url=result["secure_url"],
            provider=self.name,
            public_id=result["public_id"],
            resource_type=result.get("resource_type"),
        )

    async def delete(self, stored: StoredFile) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self._uploader.destroy,
                    stored.public_id,
                    resource_type=stored.resource_type or "image",
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, self._errors) as e:
            raise Upstream(f"Could not delete {stored.public_id} from file storage: {e}")


def build_storage(settings: Settings) -> StorageBackend:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        return LocalStorage(settings.UPLOAD_DIR, timeout_seconds=settings.UPLOAD_TIMEOUT_SECONDS)
    if backend == "cloudinary":
        return CloudinaryStorage(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            folder=settings.CLOUDINARY_FOLDER,
            timeout_seconds=settings.UPLOAD_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
