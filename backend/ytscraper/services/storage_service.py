"""Object storage for scraped media (Azure Blob Storage).

The blob container plays the role of the bucket; object keys are generated
here (``videos/<uuid>.mp4``, ``thumbnails/<uuid>.jpg``) and are what the
catalog stores in ``videos.s3_key`` / ``videos.thumbnail_url``.
"""

import asyncio
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from functools import partial
from pathlib import Path

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from ytscraper.core.exceptions import StorageFailed

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


def guess_content_type(path: Path | str) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")


class ObjectStore(ABC):
    """Content-addressable store: callers only ever see generated keys."""

    @staticmethod
    def video_key(ext: str = "mp4") -> str:
        return f"videos/{uuid.uuid4()}.{ext.lstrip('.') or 'mp4'}"

    @staticmethod
    def thumbnail_key() -> str:
        return f"thumbnails/{uuid.uuid4()}.jpg"

    @abstractmethod
    async def upload_file(self, path: Path | str, key: str, content_type: str | None = None) -> str:
        """Upload a local file under ``key`` and return the key."""
        raise NotImplementedError

    @abstractmethod
    async def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class BlobStorageService(ObjectStore):
    def __init__(
        self,
        connection_string: str | None = None,
        container: str = "videos",
        service_client: BlobServiceClient | None = None,
    ):
        self._connection_string = connection_string
        self._container_name = container
        self._service_client = service_client
        self._container_client: ContainerClient | None = None
        self._lock = threading.Lock()

    def _get_container_client(self) -> ContainerClient:
        with self._lock:
            if self._container_client is not None:
                return self._container_client

            if self._service_client is None:
                if not self._connection_string:
                    raise StorageFailed("AZURE_STORAGE_CONNECTION_STRING is required for uploads")
                self._service_client = BlobServiceClient.from_connection_string(self._connection_string)

            container_client = self._service_client.get_container_client(self._container_name)
            try:
                container_client.create_container()
                logger.info(f"[storage] created container {self._container_name}")
            except ResourceExistsError:
                pass
            self._container_client = container_client
            return container_client

    def _upload_sync(self, path: Path, key: str, content_type: str) -> None:
        container_client = self._get_container_client()
        with open(path, "rb") as data:
            container_client.upload_blob(
                name=key,
                data=data,
                overwrite=False,
                content_settings=ContentSettings(content_type=content_type),
            )

    def _exists_sync(self, key: str) -> bool:
        return self._get_container_client().get_blob_client(key).exists()

    def _delete_sync(self, key: str) -> None:
        try:
            self._get_container_client().delete_blob(key)
        except ResourceNotFoundError:
            pass

    async def upload_file(self, path, key, content_type=None) -> str:
        path = Path(path)
        content_type = content_type or guess_content_type(path)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._upload_sync, path, key, content_type))
        except (AzureError, OSError) as exc:
            raise StorageFailed(f"Failed to upload {path.name} to {key}: {exc}") from exc
        logger.info(f"[storage] uploaded {key} ({content_type})")
        return key

    async def exists(self, key: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(self._exists_sync, key))
        except AzureError as exc:
            raise StorageFailed(f"Failed to check {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._delete_sync, key))
        except AzureError as exc:
            raise StorageFailed(f"Failed to delete {key}: {exc}") from exc
