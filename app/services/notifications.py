"""Submission status updates and the transactional email tied to each status."""

import logging
from typing import Any, Dict, Optional

from app.services.errors import NotFoundError, UpstreamError
from app.services.mailer import EmailService
from app.services.result import Err
from app.services.store import SupabaseStore

logger = logging.getLogger(__name__)

SUBMISSIONS_TABLE = "product_submissions"

# Status value -> EmailService method. Statuses not listed send nothing.
STATUS_TEMPLATES: Dict[str, str] = {
    "payment_pending": "send_payment_request_email",
    "verifying": "send_verification_started_email",
    "verification_started": "send_verification_started_email",
    "completed": "send_submission_completed_email",
    "live": "send_submission_completed_email",
    "feedback": "send_feedback_request_email",
}


class StatusNotifier:
    def __init__(self, store: SupabaseStore, email_service: EmailService):
        self.store = store
        self.email_service = email_service

    async def update_status(self, submission_id: str, new_status: str) -> Dict[str, Any]:
        """Set the submission's status, then send the matching email if there is one.

        Email problems are logged and never fail the update.

        Raises:
            NotFoundError: if no submission has *submission_id*.
            UpstreamError: if the store rejected the update.
        """
        result = await self.store.update_row(
            SUBMISSIONS_TABLE, "id", submission_id, {"status": new_status}
        )
        if isinstance(result, Err):
            raise UpstreamError(
                f"Failed to update submission {submission_id}.", kind=result.kind, detail=result.detail
            )
        if result.payload is None:
            raise NotFoundError(f"Submission {submission_id} not found")

        submission = result.payload
        logger.info("Submission %s moved to status %s", submission_id, new_status)
        await self.notify(submission, new_status)
        return submission

    async def _recipient(self, submission: Dict[str, Any]) -> Optional[str]:
        if submission.get("email_user"):
            return submission["email_user"]
        user_id = submission.get("user_id")
        if not user_id:
            return None
        try:
            return await self.email_service.get_user_email_by_id(self.store, user_id)
        except (NotFoundError, UpstreamError, ValueError) as exc:
            logger.warning("Could not resolve email for user %s: %s", user_id, exc)
            return None

    async def notify(self, submission: Dict[str, Any], status: str) -> bool:
        """Send the email registered for *status*; return True only if one was sent."""
        method_name = STATUS_TEMPLATES.get(status)
        if method_name is None:
            return False

        recipient = await self._recipient(submission)
        if not recipient:
            logger.warning(
                "No email address for submission %s – skipping '%s' notification",
                submission.get("id"), status,
            )
            return False

        try:
            await getattr(self.email_service, method_name)(recipient, submission)
        except Exception as exc:
            logger.error(
                "Failed to send '%s' email for submission %s: %s",
                status, submission.get("id"), exc,
            )
            return False
        return True
