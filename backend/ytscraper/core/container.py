from dependency_injector import containers, providers

from ytscraper.core.config import configs
from ytscraper.core.database import Database
from ytscraper.repository.job_repository import JobRepository
from ytscraper.repository.video_repository import VideoRepository
from ytscraper.services.extraction_service import YtDlpExtractor
from ytscraper.services.job_service import JobService
from ytscraper.services.storage_service import BlobStorageService
from ytscraper.worker.pipeline import IngestionPipeline
from ytscraper.worker.pool import WorkerPool


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(
        modules=[
            "ytscraper.api.endpoints.scrape",
        ]
    )

    db = providers.Singleton(Database, db_url=configs.DATABASE_URI, echo=configs.DB_ECHO)

    job_repository = providers.Factory(JobRepository, session_factory=db.provided.session_factory)
    video_repository = providers.Factory(VideoRepository, session_factory=db.provided.session_factory)

    extractor = providers.Singleton(
        YtDlpExtractor,
        binary=configs.YTDLP_BINARY,
        download_timeout=configs.EXTRACTION_TIMEOUT_SECONDS,
        search_timeout=configs.SEARCH_TIMEOUT_SECONDS,
        cookies_file=configs.YTDLP_COOKIES_FILE or None,
        download_dir=configs.DOWNLOAD_DIR or None,
        thumbnail_timeout=configs.THUMBNAIL_FETCH_TIMEOUT,
    )
    storage = providers.Singleton(
        BlobStorageService,
        connection_string=configs.AZURE_STORAGE_CONNECTION_STRING,
        container=configs.AZURE_BLOB_CONTAINER,
    )

    job_service = providers.Factory(
        JobService,
        job_repository=job_repository,
        extractor=extractor,
        default_max_results=configs.SEARCH_DEFAULT_MAX_RESULTS,
        max_results_limit=configs.SEARCH_MAX_RESULTS_LIMIT,
    )

    pipeline = providers.Factory(
        IngestionPipeline,
        job_repository=job_repository,
        video_repository=video_repository,
        extractor=extractor,
        storage=storage,
        download_dir=configs.DOWNLOAD_DIR or None,
    )

    worker_pool = providers.Singleton(
        WorkerPool,
        job_repository=job_repository,
        pipeline=pipeline,
        size=configs.WORKER_MAX_CONCURRENT,
        poll_interval=configs.WORKER_POLL_INTERVAL,
        error_backoff=configs.WORKER_ERROR_BACKOFF,
    )
