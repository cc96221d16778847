"""
Admin endpoints for the hot-folder service.

Includes:
- Service statistics
- Ad-hoc OBJ export of the active document
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from app.models.schemas import OperationStatus, ServiceStatus
from domains.hot_folder.errors import GatewayError

router = APIRouter()


@router.get("/stats", response_model=ServiceStatus)
async def get_service_stats(request: Request):
    """
    Get service statistics.

    Returns:
        Watchers, in-flight paths and per-outcome counters
    """
    return request.app.state.hot_folder.status()


@router.post("/export-latest", response_model=OperationStatus)
async def export_latest(request: Request):
    """
    Export the active part document to ``latest.obj``.

    Returns:
        Export status
    """
    logger.info("Manual OBJ export triggered")
    service = request.app.state.hot_folder

    try:
        destination = await run_in_threadpool(service.export_latest)
    except GatewayError as e:
        logger.warning(f"OBJ export failed: {e}")
        raise HTTPException(status_code=409, detail=str(e))

    return OperationStatus(
        status="exported",
        message=f"OBJ exported: {destination}",
        details={"path": str(destination)}
    )
