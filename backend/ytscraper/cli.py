"""
Command line entry point.

Usage:
    ytscraper serve [--host 0.0.0.0] [--port 5060] [--no-workers]
    ytscraper worker [--concurrency N]
    ytscraper scrape URL [--user-id ID] [--cookies FILE] [--title T] [--tag TAG ...]
    ytscraper search QUERY [--max-results N] [--user-id ID]
    ytscraper init-db
"""
import argparse
import asyncio
import json
import sys

from loguru import logger

from ytscraper.core.config import configs
from ytscraper.core.container import Container
from ytscraper.core.exceptions import ScraperError
from ytscraper.core.logging_config import setup_logging


def cmd_serve(args) -> int:
    import uvicorn

    if args.no_workers:
        configs.RUN_WORKERS_IN_API = False
    # the module-level app reads configs when first imported
    from ytscraper.main import app

    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def cmd_worker(args) -> int:
    from ytscraper.worker.main import run_worker

    asyncio.run(run_worker(concurrency=args.concurrency))
    return 0


async def _scrape_once(args) -> int:
    """Queue one job and run it in this process, like the API would via a worker."""
    container = Container()
    db = container.db()
    try:
        if configs.AUTO_CREATE_TABLES:
            await db.create_database()

        job_service = container.job_service()
        job_id = await job_service.submit(
            args.url,
            title=args.title,
            tags=args.tag,
            owner=args.user_id,
        )

        job_repository = container.job_repository()
        job = await job_repository.claim_next("cli", job_id=job_id)
        if job is None:
            logger.error(f"Job {job_id} was claimed by another worker")
            return 1

        pipeline = container.pipeline(cookies_file=args.cookies)
        await pipeline.run(job)

        view = await job_service.get_status(job_id)
        print(json.dumps({"job_id": job_id, **view}, indent=2))
        return 0 if "Completed" in view else 1
    finally:
        await db.dispose()


def cmd_scrape(args) -> int:
    try:
        return asyncio.run(_scrape_once(args))
    except ScraperError as exc:
        logger.error(f"Failed to scrape video: {exc}")
        return 1


async def _search(args) -> int:
    container = Container()
    db = container.db()
    try:
        job_ids = await container.job_service().submit_search(
            args.query,
            max_results=args.max_results,
            owner=args.user_id,
        )
        print(json.dumps({"job_ids": job_ids}, indent=2))
        return 0
    finally:
        await db.dispose()


def cmd_search(args) -> int:
    try:
        return asyncio.run(_search(args))
    except ScraperError as exc:
        logger.error(f"Failed to search YouTube: {exc}")
        return 1


async def _init_db() -> None:
    db = Container().db()
    try:
        await db.create_database()
    finally:
        await db.dispose()


def cmd_init_db(args) -> int:
    asyncio.run(_init_db())
    logger.info("[DB] tables created")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ytscraper", description="YouTube scraper service")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=5060)
    p.add_argument("--no-workers", action="store_true", help="Do not run the worker pool in the API process")
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser("worker", help="Run a standalone worker pool")
    p.add_argument("--concurrency", type=int, default=None, help="Override WORKER_MAX_CONCURRENT")
    p.set_defaults(func=cmd_worker)

    p = sub.add_parser("scrape", help="Scrape a single video in the foreground")
    p.add_argument("url")
    p.add_argument("--user-id", type=int, default=None)
    p.add_argument("--cookies", default=None, help="Path to a cookies file for yt-dlp")
    p.add_argument("--title", default=None)
    p.add_argument("--tag", action="append", default=None)
    p.set_defaults(func=cmd_scrape)

    p = sub.add_parser("search", help="Queue the results of a YouTube search")
    p.add_argument("query")
    p.add_argument("--max-results", type=int, default=None)
    p.add_argument("--user-id", type=int, default=None)
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("init-db", help="Create the database tables")
    p.set_defaults(func=cmd_init_db)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(configs.LOG_LEVEL)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
