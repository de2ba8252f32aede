import logging
from typing import Any, Dict

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, status

from ytscraper.core.container import Container
from ytscraper.core.exceptions import (
    InvalidRequest,
    JobNotFound,
    ScraperError,
    UpstreamUnavailable,
)
from ytscraper.schema.scrape_schema import (
    JobResponse,
    ScrapeRequest,
    SearchRequest,
    SearchResponse,
    ServiceStatus,
)
from ytscraper.services.job_service import JobService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scrape"])


@router.post("/scrape", response_model=JobResponse, status_code=status.HTTP_202_ACCEPTED)
@inject
async def scrape_video(
    payload: ScrapeRequest,
    job_service: JobService = Depends(Provide[Container.job_service]),
):
    try:
        job_id = await job_service.submit(
            payload.youtube_url,
            title=payload.title,
            description=payload.description,
            tags=payload.tags,
            owner=payload.user_id,
        )
    except InvalidRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    except ScraperError as exc:
        logger.error(f"Failed to queue scrape job: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message)
    return JobResponse(job_id=job_id)


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_202_ACCEPTED)
@inject
async def search_videos(
    payload: SearchRequest,
    job_service: JobService = Depends(Provide[Container.job_service]),
):
    try:
        job_ids = await job_service.submit_search(
            payload.query,
            max_results=payload.max_results,
            owner=payload.user_id,
        )
    except InvalidRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    except UpstreamUnavailable as exc:
        logger.error(f"Failed to search YouTube: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to search YouTube: {exc}")
    except ScraperError as exc:
        logger.error(f"Failed to queue search results: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message)
    return SearchResponse(job_ids=job_ids)


@router.get("/jobs/{job_id}")
@inject
async def get_job_status(
    job_id: str,
    job_service: JobService = Depends(Provide[Container.job_service]),
) -> Dict[str, Any]:
    """
    Poll a job. The body is a single-key object named after the job state:
    ``{"Queued": null}``, ``{"Processing": null}``,
    ``{"Completed": {...}}`` or ``{"Failed": "<message>"}``.
    """
    try:
        return await job_service.get_status(job_id)
    except JobNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")


@router.post("/status", response_model=ServiceStatus)
async def scrape_status():
    return ServiceStatus(status="running")
