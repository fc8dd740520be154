"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from investoscope.core.logging import get_logger
from investoscope.schemas.jobs import SyncStatusData, SyncStatusResponse
from investoscope.services import sync_status


router = APIRouter(prefix="/health")

logger = get_logger("health")


@router.get(
    "/sync-status",
    response_model=SyncStatusResponse,
    summary="Sync freshness",
    description="Whether prices are fresh and the price sync has run recently.",
)
async def get_sync_status():
    try:
        report = await sync_status.get_sync_status()
    except Exception as e:
        logger.warning(f"Sync status check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "status": "error", "message": str(e)},
        )

    return SyncStatusResponse(
        status=report.status,
        message=report.message,
        data=SyncStatusData(
            latest_price_date=report.latest_price_date,
            is_data_fresh=report.is_data_fresh,
            latest_sync=report.latest_sync,
            is_sync_recent=report.is_sync_recent,
            timestamp=report.timestamp,
        ),
    )
