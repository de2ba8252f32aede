"""In-process doubles for the external collaborators, used by the test suite."""

import asyncio
import tempfile
from pathlib import Path

from dependency_injector import providers

from ytscraper.core.container import Container
from ytscraper.core.database import Database
from ytscraper.core.exceptions import ExtractionFailed, StorageFailed
from ytscraper.services.extraction_service import BaseExtractor, ExtractionResult
from ytscraper.services.storage_service import ObjectStore, guess_content_type
from ytscraper.utils.youtube import extract_video_id
from ytscraper.worker.pool import WorkerPool


def sqlite_url(directory) -> str:
    return f"sqlite+aiosqlite:///{Path(directory) / 'ytscraper-test.db'}"


class FakeExtractor(BaseExtractor):
    """Writes a small fake video + thumbnail instead of calling yt-dlp."""

    def __init__(self, search_results=None, failures=None, search_error=None, delay=0.0, thumbnail=True):
        self.search_results = list(search_results or [])
        self.failures = dict(failures or {})
        self.search_error = search_error
        self.delay = delay
        self.thumbnail = thumbnail
        self.downloads: list[str] = []
        self.dest_dirs: list[Path] = []
        self.searches: list[tuple[str, int]] = []

    async def download(self, url, dest_dir=None, cookies_file=None) -> ExtractionResult:
        self.downloads.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url in self.failures:
            raise ExtractionFailed(self.failures[url])

        dest = Path(dest_dir) if dest_dir else Path(tempfile.mkdtemp())
        self.dest_dirs.append(dest)
        video_id = extract_video_id(url) or "video"

        video_path = dest / f"{video_id}.mp4"
        video_path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + video_id.encode() * 16)
        thumbnail_path = None
        if self.thumbnail:
            thumbnail_path = dest / f"{video_id}.jpg"
            thumbnail_path.write_bytes(b"\xff\xd8\xff\xe0" + video_id.encode())

        return ExtractionResult(
            video_path=video_path,
            thumbnail_path=thumbnail_path,
            title=f"Video {video_id}",
            description=f"Description of {video_id}",
            duration_seconds=42.0,
            source_id=video_id,
        )

    async def search(self, query, max_results):
        self.searches.append((query, max_results))
        if self.search_error is not None:
            raise self.search_error
        return self.search_results[:max_results]


class InMemoryObjectStore(ObjectStore):
    def __init__(self, fail_on_prefix: str | None = None):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.deleted: list[str] = []
        self.fail_on_prefix = fail_on_prefix

    async def upload_file(self, path, key, content_type=None) -> str:
        if self.fail_on_prefix and key.startswith(self.fail_on_prefix):
            raise StorageFailed(f"Failed to upload {Path(path).name} to {key}: connection reset")
        if key in self.objects:
            raise StorageFailed(f"Failed to upload {Path(path).name} to {key}: BlobAlreadyExists")
        self.objects[key] = (Path(path).read_bytes(), content_type or guess_content_type(path))
        return key

    async def exists(self, key) -> bool:
        return key in self.objects

    async def delete(self, key) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)


def build_test_container(db_url, extractor, storage, pool_size=2, poll_interval=0.02) -> Container:
    container = Container()
    container.db.override(providers.Singleton(Database, db_url=db_url))
    container.extractor.override(providers.Object(extractor))
    container.storage.override(providers.Object(storage))
    container.worker_pool.override(
        providers.Singleton(
            WorkerPool,
            job_repository=container.job_repository,
            pipeline=container.pipeline,
            size=pool_size,
            poll_interval=poll_interval,
            error_backoff=poll_interval,
        )
    )
    return container
