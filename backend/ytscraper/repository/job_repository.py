import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ytscraper.core.exceptions import PersistenceFailed
from ytscraper.models.orm import JobState, ScrapeJob

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Payload stored on a job when it completes."""

    video_id: int
    title: str
    s3_key: str
    thumbnail_key: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRepository:
    """Durable job queue backed by the ``scrape_jobs`` table.

    Every state change is a conditional UPDATE on the current state, so a job
    can only ever move Queued -> Processing -> Completed | Failed, regardless of
    how many workers (or worker processes) share the table.
    """

    def __init__(self, session_factory: Callable[..., AsyncSession]):
        self.session_factory = session_factory

    async def insert(self, job: ScrapeJob) -> ScrapeJob:
        """Persist a new job in the Queued state."""
        job.status = JobState.QUEUED.value
        async with self.session_factory() as session:
            try:
                session.add(job)
                await session.commit()
                await session.refresh(job)
            except SQLAlchemyError as exc:
                await session.rollback()
                raise PersistenceFailed(f"Failed to insert job: {exc}") from exc
        logger.info(f"[jobs] queued job_id={job.id} url={job.youtube_url}")
        return job

    async def get(self, job_id: str) -> ScrapeJob | None:
        async with self.session_factory() as session:
            return await session.get(ScrapeJob, job_id)

    async def claim_next(self, worker_id: str, job_id: str | None = None) -> ScrapeJob | None:
        """
        Atomically move one Queued job to Processing and return it.

        The candidate row is selected with ``FOR UPDATE SKIP LOCKED`` so that
        concurrent claimers on PostgreSQL never wait on each other's rows; the
        outer ``status = 'Queued'`` predicate keeps the transition exclusive on
        backends without row locks (SQLite).

        Args:
            worker_id: Tag of the claiming worker, stored on the row.
            job_id: Only claim this job (if it is still Queued).

        Returns:
            The claimed job, or None when nothing is claimable.
        """
        candidate = select(ScrapeJob.id).where(ScrapeJob.status == JobState.QUEUED.value)
        if job_id is not None:
            candidate = candidate.where(ScrapeJob.id == job_id)
        candidate = (
            candidate.order_by(ScrapeJob.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        now = _utcnow()
        stmt = (
            update(ScrapeJob)
            .where(ScrapeJob.id == candidate)
            .where(ScrapeJob.status == JobState.QUEUED.value)
            .values(
                status=JobState.PROCESSING.value,
                worker_id=worker_id,
                started_at=now,
                updated_at=now,
            )
            .returning(ScrapeJob)
            .execution_options(synchronize_session="fetch")
        )

        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                job = result.scalars().first()
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise PersistenceFailed(f"Failed to claim job: {exc}") from exc

        if job is not None:
            logger.info(f"[jobs] {worker_id} claimed job_id={job.id}")
        return job

    async def complete(self, job_id: str, result: JobResult) -> bool:
        """Processing -> Completed. Returns False (no-op) if the job is not Processing."""
        return await self._finish(
            job_id,
            JobState.COMPLETED,
            video_id=result.video_id,
            result_title=result.title,
            s3_key=result.s3_key,
            thumbnail_key=result.thumbnail_key,
        )

    async def fail(self, job_id: str, error_message: str) -> bool:
        """Processing -> Failed. Returns False (no-op) if the job is not Processing."""
        return await self._finish(
            job_id,
            JobState.FAILED,
            error=error_message or "Unknown error",
        )

    async def _finish(self, job_id: str, state: JobState, **values) -> bool:
        now = _utcnow()
        stmt = (
            update(ScrapeJob)
            .where(ScrapeJob.id == job_id)
            .where(ScrapeJob.status == JobState.PROCESSING.value)
            .values(status=state.value, finished_at=now, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise PersistenceFailed(f"Failed to mark job {job_id} {state.value}: {exc}") from exc

        if result.rowcount != 1:
            logger.warning(f"[jobs] job_id={job_id} is not Processing, ignoring transition to {state.value}")
            return False
        logger.info(f"[jobs] job_id={job_id} -> {state.value}")
        return True
