"""
Health check endpoint.
"""

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    watchers_alive: int
    watchers_total: int
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Verifies:
    - API is running
    - Every hot-folder watcher is still alive
    """
    settings = request.app.state.settings
    status = request.app.state.hot_folder.status()
    alive = sum(1 for watcher in status.watchers if watcher.alive)
    healthy = status.active and status.watchers and alive == len(status.watchers)

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(),
        watchers_alive=alive,
        watchers_total=len(status.watchers),
        version=settings.api_version
    )
