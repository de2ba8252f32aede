from fastapi import APIRouter

from ytscraper.api.endpoints.scrape import router as scrape_router

routers = APIRouter()
routers.include_router(scrape_router)
