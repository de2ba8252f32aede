import logging
from typing import Any, Dict, List

from ytscraper.core.exceptions import InvalidRequest, JobNotFound
from ytscraper.models.orm import JobState, ScrapeJob
from ytscraper.repository.job_repository import JobRepository
from ytscraper.services.extraction_service import BaseExtractor
from ytscraper.utils.youtube import extract_video_id, is_video_url

logger = logging.getLogger(__name__)


def job_view(job: ScrapeJob) -> Dict[str, Any]:
    """Wire representation of a job: a single-key object named after its state."""
    state = job.state
    if state is JobState.COMPLETED:
        return {
            state.value: {
                "video_id": job.video_id,
                "title": job.result_title,
                "s3_key": job.s3_key,
                "thumbnail_url": job.thumbnail_key,
            }
        }
    if state is JobState.FAILED:
        return {state.value: job.error or "Unknown error"}
    return {state.value: None}


class JobService:
    """Submission and status operations used by the HTTP layer and the CLI"""

    def __init__(
        self,
        job_repository: JobRepository,
        extractor: BaseExtractor,
        default_max_results: int = 10,
        max_results_limit: int = 50,
    ):
        self.job_repository = job_repository
        self.extractor = extractor
        self.default_max_results = default_max_results
        self.max_results_limit = max_results_limit

    async def submit(
        self,
        url: str,
        title: str | None = None,
        description: str | None = None,
        tags: List[str] | None = None,
        owner: int | None = None,
    ) -> str:
        """Queue one scrape job and return its id without waiting for it to run."""
        if not is_video_url(url):
            raise InvalidRequest(f"Invalid YouTube URL: {url!r}")

        job = ScrapeJob(
            youtube_url=url.strip(),
            title=title,
            description=description,
            tags=list(tags) if tags is not None else None,
            user_id=owner,
        )
        job = await self.job_repository.insert(job)
        return job.id

    async def submit_search(
        self,
        query: str,
        max_results: int | None = None,
        owner: int | None = None,
    ) -> List[str]:
        """Search YouTube and queue one job per result, tagging each with the query.

        Raises:
            InvalidRequest: empty query or ``max_results`` below 1.
            UpstreamUnavailable: the search backend could not be reached.
        """
        query = (query or "").strip()
        if not query:
            raise InvalidRequest("Search query must not be empty")

        if max_results is None:
            max_results = self.default_max_results
        if max_results < 1:
            raise InvalidRequest("max_results must be at least 1")
        max_results = min(max_results, self.max_results_limit)

        urls = await self.extractor.search(query, max_results)
        logger.info(f"Found {len(urls)} videos for query: {query}")

        job_ids = []
        seen = set()
        for url in urls[:max_results]:
            video_id = extract_video_id(url)
            if video_id is None:
                logger.warning(f"Skipping non-video search result: {url}")
                continue
            if video_id in seen:
                continue
            seen.add(video_id)
            job_ids.append(await self.submit(url, tags=[query], owner=owner))
        return job_ids

    async def get_status(self, job_id: str) -> Dict[str, Any]:
        job = await self.job_repository.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job_view(job)
