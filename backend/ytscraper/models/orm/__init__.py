# ytscraper/models/orm/__init__.py
from .scrape_job import JobState, ScrapeJob
from .video import Video
from .base import Base
