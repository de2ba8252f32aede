import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ytscraper.models.orm import Base


def prepare_database_url(url: str) -> tuple[str, dict]:
    """
    Prepare database URL for asyncpg compatibility.
    asyncpg doesn't support 'sslmode' parameter, need to convert to 'ssl' context.
    """
    if not url:
        return url, {}

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)

    connect_args = {}

    if "sslmode" in query_params:
        sslmode = query_params["sslmode"][0]
        del query_params["sslmode"]

        if sslmode == "require":
            # Require SSL but don't verify certificates
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
            connect_args["ssl"] = ssl_context
        elif sslmode in ("verify-ca", "verify-full"):
            connect_args["ssl"] = ssl.create_default_context()
        elif sslmode == "disable":
            connect_args["ssl"] = False

    new_query = urlencode(query_params, doseq=True)

    cleaned_url = urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        new_query,
        parsed.fragment,
    ))

    return cleaned_url, connect_args


class Database:
    """Owns the async engine and the session factory shared by the repositories."""

    def __init__(self, db_url: str, echo: bool = False):
        cleaned_url, connect_args = prepare_database_url(db_url)
        engine_kwargs = {"echo": echo, "connect_args": connect_args}
        if not cleaned_url.startswith("sqlite"):
            engine_kwargs["pool_pre_ping"] = True
        self.engine = create_async_engine(cleaned_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Transactional session scope: commit on success, rollback on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_database(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.session() as session:
            await session.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()
