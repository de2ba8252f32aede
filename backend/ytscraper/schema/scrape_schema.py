from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScrapeRequest(BaseModel):
    """Request schema for queueing a single video"""
    youtube_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    user_id: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "youtube_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "tags": ["demo"],
                "user_id": 1,
            }
        }
    )


class SearchRequest(BaseModel):
    """Request schema for queueing the results of a YouTube search"""
    query: str
    max_results: Optional[int] = Field(default=None, ge=1)
    user_id: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "cats playing piano",
                "max_results": 5,
            }
        }
    )


class JobResponse(BaseModel):
    job_id: str


class SearchResponse(BaseModel):
    job_ids: List[str]


class ServiceStatus(BaseModel):
    status: str
