import asyncio
import signal

from dependency_injector import providers
from loguru import logger

from ytscraper.core.config import configs
from ytscraper.core.container import Container
from ytscraper.worker.pool import WorkerPool


async def run_worker(container: Container | None = None, concurrency: int | None = None) -> None:
    """Run a standalone worker pool until SIGINT / SIGTERM."""
    container = container or Container()
    if concurrency is not None:
        container.worker_pool.override(
            providers.Singleton(
                WorkerPool,
                job_repository=container.job_repository,
                pipeline=container.pipeline,
                size=concurrency,
                poll_interval=configs.WORKER_POLL_INTERVAL,
                error_backoff=configs.WORKER_ERROR_BACKOFF,
            )
        )

    db = container.db()
    if configs.AUTO_CREATE_TABLES:
        await db.create_database()
    await db.ping()

    pool = container.worker_pool()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, pool.request_stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    logger.info(f"[worker] starting worker pool (max_concurrent={pool.size}, poll={pool.poll_interval}s)")
    try:
        await pool.run_until_stopped()
    finally:
        await db.dispose()
        logger.info("[worker] worker shut down")
