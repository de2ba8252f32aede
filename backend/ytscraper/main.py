import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from ytscraper.api.routes import routers
from ytscraper.core.config import configs
from ytscraper.core.container import Container
from ytscraper.core.logging_config import setup_logging

load_dotenv()

logger = logging.getLogger(__name__)


class AppCreator:
    """Builds the FastAPI app around a container.

    With ``run_workers`` the worker pool runs inside the API process for the
    lifetime of the app; otherwise workers run separately (``ytscraper worker``).
    """

    def __init__(
        self,
        container: Container | None = None,
        run_workers: bool | None = None,
        create_tables: bool | None = None,
    ):
        self.container = container or Container()
        self.run_workers = configs.RUN_WORKERS_IN_API if run_workers is None else run_workers
        self.create_tables = configs.AUTO_CREATE_TABLES if create_tables is None else create_tables

        # Init FastAPI
        self.app = FastAPI(
            title=configs.PROJECT_NAME,
            version=configs.VERSION,
            openapi_url=f"{configs.API_PREFIX}/openapi.json",
            lifespan=self.lifespan,
        )
        self.app.container = self.container

        # CORS
        if configs.BACKEND_CORS_ORIGINS:
            self.app.add_middleware(
                CORSMiddleware,
                allow_origins=[str(origin) for origin in configs.BACKEND_CORS_ORIGINS],
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )

        # Health check
        @self.app.get("/")
        async def root():
            return {"status": "service is working"}

        self.app.include_router(routers, prefix=configs.API_PREFIX)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        db = self.container.db()
        if self.create_tables:
            await db.create_database()

        pool = None
        if self.run_workers:
            pool = self.container.worker_pool()
            pool.start()

        try:
            yield
        finally:
            if pool is not None:
                await pool.stop()
            await db.dispose()


setup_logging(configs.LOG_LEVEL)

app_creator = AppCreator()
app = app_creator.app
container = app_creator.container
