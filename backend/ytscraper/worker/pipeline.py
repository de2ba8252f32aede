"""Per-job ingestion pipeline: extract -> upload -> catalog row -> complete."""

import tempfile
from pathlib import Path

from loguru import logger

from ytscraper.core.exceptions import ScraperError
from ytscraper.models.orm import ScrapeJob
from ytscraper.repository.job_repository import JobRepository, JobResult
from ytscraper.repository.video_repository import VideoRepository
from ytscraper.services.extraction_service import BaseExtractor, ExtractionResult
from ytscraper.services.storage_service import ObjectStore


class IngestionPipeline:
    def __init__(
        self,
        job_repository: JobRepository,
        video_repository: VideoRepository,
        extractor: BaseExtractor,
        storage: ObjectStore,
        cookies_file: str | None = None,
        download_dir: str | None = None,
    ):
        self.job_repository = job_repository
        self.video_repository = video_repository
        self.extractor = extractor
        self.storage = storage
        self.cookies_file = cookies_file or None
        self.download_dir = download_dir or None

    async def run(self, job: ScrapeJob) -> bool:
        """Process a claimed job and record exactly one outcome for it.

        Returns True when the job completed.
        """
        logger.info(f"[pipeline] job {job.id}: start {job.youtube_url}")
        workdir = tempfile.TemporaryDirectory(
            prefix=f"job-{job.id}-", dir=self.download_dir, ignore_cleanup_errors=True
        )
        try:
            result = await self._process(job, Path(workdir.name))
        except ScraperError as exc:
            logger.error(f"[pipeline] job {job.id} failed: {exc.message}")
            await self.job_repository.fail(job.id, exc.message)
            return False
        except Exception as exc:
            logger.exception(f"[pipeline] job {job.id} crashed")
            await self.job_repository.fail(job.id, f"Unexpected error: {exc}")
            return False
        finally:
            self._remove_workdir(job, workdir)

        completed = await self.job_repository.complete(job.id, result)
        if completed:
            logger.info(f"[pipeline] job {job.id}: completed video_id={result.video_id}")
        return completed

    @staticmethod
    def _remove_workdir(job: ScrapeJob, workdir: tempfile.TemporaryDirectory) -> None:
        try:
            workdir.cleanup()
        except OSError as exc:
            logger.warning(f"[pipeline] job {job.id}: could not remove {workdir.name}: {exc}")

    async def _process(self, job: ScrapeJob, workdir: Path) -> JobResult:
        extraction = await self.extractor.download(
            job.youtube_url,
            dest_dir=workdir,
            cookies_file=self.cookies_file,
        )

        uploaded: list[str] = []
        try:
            s3_key, thumbnail_key = await self._upload(extraction, uploaded)
            video = await self.video_repository.create_video(
                title=self._title(job, extraction),
                description=self._description(job, extraction),
                s3_key=s3_key,
                thumbnail_url=thumbnail_key,
                tags=job.tags if job.tags is not None else [],
                uploaded_by=job.user_id,
            )
        except Exception:
            await self._discard(job, uploaded)
            raise

        return JobResult(
            video_id=video.id,
            title=video.title,
            s3_key=video.s3_key,
            thumbnail_key=video.thumbnail_url,
        )

    async def _upload(self, extraction: ExtractionResult, uploaded: list[str]) -> tuple[str, str | None]:
        ext = extraction.video_path.suffix.lstrip(".") or "mp4"
        s3_key = self.storage.video_key(ext)
        await self.storage.upload_file(extraction.video_path, s3_key)
        uploaded.append(s3_key)

        thumbnail_key = None
        if extraction.thumbnail_path is not None:
            thumbnail_key = self.storage.thumbnail_key()
            await self.storage.upload_file(extraction.thumbnail_path, thumbnail_key, "image/jpeg")
            uploaded.append(thumbnail_key)
        else:
            logger.warning(f"[pipeline] no thumbnail for {extraction.source_id or extraction.video_path.name}")

        return s3_key, thumbnail_key

    async def _discard(self, job: ScrapeJob, keys: list[str]) -> None:
        # Objects of a failed job are unreachable from the catalog; drop them.
        for key in keys:
            try:
                await self.storage.delete(key)
            except ScraperError as exc:
                logger.warning(f"[pipeline] job {job.id}: could not delete {key}: {exc.message}")

    @staticmethod
    def _title(job: ScrapeJob, extraction: ExtractionResult) -> str:
        return (
            (job.title or "").strip()
            or extraction.title
            or extraction.source_id
            or job.youtube_url
        )

    @staticmethod
    def _description(job: ScrapeJob, extraction: ExtractionResult) -> str:
        if job.description:
            return job.description
        return extraction.description or f"Scraped from YouTube: {job.youtube_url}"
