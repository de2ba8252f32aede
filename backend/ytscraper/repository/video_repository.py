from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ytscraper.core.exceptions import PersistenceFailed
from ytscraper.models.orm.video import Video


class VideoRepository:
    def __init__(self, session_factory: Callable[..., AsyncSession]):
        self.session_factory = session_factory

    async def create_video(
        self,
        title: str,
        s3_key: str,
        description: str | None = None,
        thumbnail_url: str | None = None,
        tags: list[str] | None = None,
        uploaded_by: int | None = None,
    ) -> Video:
        """Create the catalog row for a finished scrape"""
        session = self.session_factory()
        try:
            video = Video(
                title=title[:255],
                description=description,
                s3_key=s3_key,
                thumbnail_url=thumbnail_url,
                tags=list(tags or []),
                uploaded_by=uploaded_by,
                view_count=0,
            )
            session.add(video)
            await session.commit()
            await session.refresh(video)
            return video
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceFailed(f"Failed to insert video into database: {exc}") from exc
        finally:
            await session.close()

    async def get_video(self, video_id: int) -> Video | None:
        """Get video by ID"""
        session = self.session_factory()
        try:
            result = await session.execute(select(Video).filter(Video.id == video_id))
            return result.scalar_one_or_none()
        finally:
            await session.close()

    async def get_video_by_key(self, s3_key: str) -> Video | None:
        session = self.session_factory()
        try:
            result = await session.execute(select(Video).filter(Video.s3_key == s3_key))
            return result.scalar_one_or_none()
        finally:
            await session.close()
