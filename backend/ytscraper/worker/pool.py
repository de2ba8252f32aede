"""Fixed-size pool of workers draining the ``scrape_jobs`` queue.

Each worker owns at most one job at a time. The heavy parts of a job run
outside the event loop (yt-dlp is a child process, blob uploads run in the
default executor), so ``size`` is the bound on concurrent downloads and
uploads. Several pools, in several processes, can share one database: the
claim is a row-level lock, not an in-process mutex.
"""

import asyncio
import os
import socket

from loguru import logger

from ytscraper.repository.job_repository import JobRepository
from ytscraper.worker.pipeline import IngestionPipeline


class WorkerPool:
    def __init__(
        self,
        job_repository: JobRepository,
        pipeline: IngestionPipeline,
        size: int = 2,
        poll_interval: float = 1.0,
        error_backoff: float = 10.0,
        name: str | None = None,
    ):
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        self.job_repository = job_repository
        self.pipeline = pipeline
        self.size = size
        self.poll_interval = poll_interval
        self.error_backoff = error_backoff
        self.name = name or f"{socket.gethostname()}:{os.getpid()}"

        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self.processed = 0

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(self._worker_loop(f"{self.name}/w{i}"), name=f"scrape-worker-{i}")
            for i in range(self.size)
        ]
        logger.info(f"[worker] started {self.size} workers ({self.name})")

    def request_stop(self) -> None:
        self._stop.set()

    async def stop(self) -> None:
        """Stop claiming new jobs and wait for in-flight jobs to finish."""
        self._stop.set()
        if self._tasks:
            logger.info(f"[worker] waiting for {len(self._tasks)} workers to finish...")
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("[worker] pool stopped")

    async def run_until_stopped(self) -> None:
        self.start()
        await self._stop.wait()
        await self.stop()

    async def _worker_loop(self, worker_id: str) -> None:
        while not self._stop.is_set():
            try:
                job = await self.job_repository.claim_next(worker_id)
            except Exception as exc:
                logger.error(f"[worker] {worker_id} claim error: {exc}")
                await self._sleep(self.error_backoff)
                continue

            if job is None:
                await self._sleep(self.poll_interval)
                continue

            try:
                await self.pipeline.run(job)
            except Exception as exc:
                # The outcome could not be recorded; the job stays Processing.
                logger.error(f"[worker] {worker_id} could not record outcome of job {job.id}: {exc}")
            finally:
                self.processed += 1

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
