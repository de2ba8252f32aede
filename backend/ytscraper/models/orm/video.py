# ytscraper/models/orm/video.py
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ytscraper.models.orm.base import Base, IntegerMixin

# TEXT[] on PostgreSQL (the catalog service reads it as an array), JSON elsewhere
TagList = JSON().with_variant(postgresql.ARRAY(Text), "postgresql")


class Video(Base, IntegerMixin):
    """Row in the catalog's ``videos`` table. Written once per successful scrape."""

    __tablename__ = "videos"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    s3_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uploaded_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    upload_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    tags: Mapped[list[str]] = mapped_column(TagList, nullable=False, default=list)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
