import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ytscraper.models.orm.base import Base, TimestampMixin


class JobState(str, enum.Enum):
    """Lifecycle of a scrape job. Only Queued->Processing->(Completed|Failed) is legal."""

    QUEUED = "Queued"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


def new_job_id() -> str:
    return str(uuid.uuid4())


class ScrapeJob(Base, TimestampMixin):
    __tablename__ = "scrape_jobs"
    __table_args__ = (Index("ix_scrape_jobs_status_created_at", "status", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_job_id)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=JobState.QUEUED.value
    )

    # request
    youtube_url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # claim
    worker_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # result
    video_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    result_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    s3_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def state(self) -> JobState:
        return JobState(self.status)

    def __repr__(self) -> str:
        return f"<ScrapeJob {self.id} {self.status} {self.youtube_url}>"
