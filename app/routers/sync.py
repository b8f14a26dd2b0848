import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.deps import get_scheduler
from app.models.response import SyncResponse
from app.services.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Sync"])


@router.post("/sync-airtable", response_model=SyncResponse, summary="Run an Airtable sync pass now")
async def sync_airtable(
    scheduler: Annotated[SyncScheduler, Depends(get_scheduler)],
) -> SyncResponse | JSONResponse:
    """Reconcile every mapped table into Airtable immediately.

    Shares its cursors with the background scheduler, so the next timed pass
    starts where this one left off.
    """
    logger.info("Manual Airtable sync requested")
    try:
        outcomes = await scheduler.run_once()
    except Exception as exc:
        logger.exception("Manual Airtable sync failed")
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})

    failed = [o for o in outcomes if not o.succeeded]
    if failed:
        message = "; ".join(f"{o.mapping}: {o.error}" for o in failed)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": f"Sync failed for {message}"},
        )

    summary = ", ".join(f"{o.mapping} ({o.created} created, {o.updated} updated)" for o in outcomes)
    return SyncResponse(success=True, message=f"Sync completed: {summary}")
