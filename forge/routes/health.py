"""Health check endpoint"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from forge.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    driver: str


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Report service health and the active container driver"""
    driver = getattr(request.app.state, "container_driver", None)
    return HealthResponse(
        status="healthy" if driver is not None else "starting",
        driver=settings.container_driver,
    )
