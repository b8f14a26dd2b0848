import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from app.deps import get_notifier
from app.models.request import StatusUpdateRequest
from app.models.response import StatusUpdateResponse
from app.services.errors import NotFoundError, UpstreamError
from app.services.notifications import StatusNotifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Submissions"])


@router.post(
    "/product-submissions/status",
    response_model=StatusUpdateResponse,
    summary="Update a submission's status and send its notification email",
)
async def update_submission_status(
    body: StatusUpdateRequest,
    notifier: Annotated[StatusNotifier, Depends(get_notifier)],
) -> StatusUpdateResponse:
    if not body.submission_id or not body.new_status:
        raise HTTPException(status_code=400, detail="submissionId and newStatus are required")

    try:
        submission = await notifier.update_status(body.submission_id, body.new_status)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UpstreamError as exc:
        logger.error("Status update for %s failed: %s (%s)", body.submission_id, exc, exc.detail)
        raise HTTPException(status_code=500, detail=str(exc))

    return StatusUpdateResponse(message="Submission status updated", submission=submission)
