import os
from typing import List, Dict

from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import computed_field

load_dotenv()


class Configs(BaseSettings):
    # base
    ENV: str = os.getenv("ENV", "dev")
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "youtube-scraper"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    ENV_DATABASE_MAPPER: Dict[str, str] = {
        "prod": "ytscraper",
        "stage": "stage-ytscraper",
        "dev": "dev-ytscraper",
        "test": "test-ytscraper",
    }
    DB_ENGINE_MAPPER: Dict[str, str] = {
        "postgresql": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # database
    DB: str = "postgresql"
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: str = "5432"
    DB_NAME: str = ""
    DB_ECHO: bool = False

    DATABASE_URI_FORMAT: str = "{db_engine}://{user}:{password}@{host}:{port}/{database}"

    # Support both DATABASE_URL (from env) and DATABASE_URI (constructed)
    DATABASE_URL: str = ""

    # object storage
    AZURE_STORAGE_CONNECTION_STRING: str = ""
    AZURE_BLOB_CONTAINER: str = "videos"

    # extraction
    YTDLP_BINARY: str = "yt-dlp"
    YTDLP_COOKIES_FILE: str = ""
    EXTRACTION_TIMEOUT_SECONDS: float = 30 * 60
    SEARCH_TIMEOUT_SECONDS: float = 60
    THUMBNAIL_FETCH_TIMEOUT: float = 10
    DOWNLOAD_DIR: str = ""

    # search
    SEARCH_DEFAULT_MAX_RESULTS: int = 10
    SEARCH_MAX_RESULTS_LIMIT: int = 50

    # workers
    WORKER_MAX_CONCURRENT: int = 2
    WORKER_POLL_INTERVAL: float = 1.0
    WORKER_ERROR_BACKOFF: float = 10.0
    RUN_WORKERS_IN_API: bool = True
    AUTO_CREATE_TABLES: bool = False

    @computed_field
    @property
    def DB_ENGINE(self) -> str:
        return self.DB_ENGINE_MAPPER.get(self.DB, "postgresql+asyncpg")

    @computed_field
    @property
    def DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return normalize_async_url(self.DATABASE_URL)
        return self.DATABASE_URI_FORMAT.format(
            db_engine=self.DB_ENGINE,
            user=self.DB_USER,
            password=self.DB_PASSWORD,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME or self.ENV_DATABASE_MAPPER.get(self.ENV, "dev-ytscraper"),
        )

    class Config:
        case_sensitive = True


def normalize_async_url(url: str) -> str:
    """Point plain ``postgresql://`` / ``postgres://`` URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


class TestConfigs(Configs):
    ENV: str = "test"
    DATABASE_URL: str = "sqlite+aiosqlite:///./test-ytscraper.db"
    RUN_WORKERS_IN_API: bool = False
    AUTO_CREATE_TABLES: bool = True


configs = TestConfigs() if os.getenv("ENV") == "test" else Configs()
