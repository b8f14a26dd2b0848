"""Endpoints that send one transactional email each."""

import logging
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.deps import get_email_service, get_optional_store, get_store
from app.models.request import PaymentEmailRequest, SubmissionEmailRequest, WelcomeEmailRequest
from app.models.response import EmailResponse
from app.services.errors import NotFoundError, UpstreamError
from app.services.mailer import EmailService
from app.services.result import Err
from app.services.store import SupabaseStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Emails"])

Store = Annotated[SupabaseStore, Depends(get_store)]
Mailer = Annotated[EmailService, Depends(get_email_service)]


async def _load_row(store: SupabaseStore, table: str, column: str, value: str, label: str) -> Dict[str, Any]:
    result = await store.get_row(table, column, value)
    if isinstance(result, Err):
        logger.error("Loading %s %s failed: %s", label, value, result)
        raise HTTPException(status_code=500, detail=f"Failed to load {label}: {result}")
    if result.payload is None:
        raise HTTPException(status_code=404, detail=f"{label.capitalize()} not found")
    return result.payload


async def _load_submission(store: SupabaseStore, body: SubmissionEmailRequest) -> Dict[str, Any]:
    if body.submission_id:
        return await _load_row(store, "product_submissions", "id", body.submission_id, "submission")
    if body.user_id:
        return await _load_row(store, "product_submissions", "user_id", body.user_id, "submission")
    raise HTTPException(status_code=400, detail="submissionId or userId is required")


async def _resolve_email(
    store: SupabaseStore, mailer: EmailService, row: Dict[str, Any], email_field: Optional[str] = None
) -> str:
    if email_field and row.get(email_field):
        return row[email_field]
    user_id = row.get("user_id")
    if not user_id:
        raise HTTPException(status_code=400, detail="User email not found")
    try:
        return await mailer.get_user_email_by_id(store, user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except UpstreamError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


async def _deliver(send, *args) -> EmailResponse:
    try:
        data = await send(*args)
    except UpstreamError as exc:
        logger.error("Email delivery failed: %s (%s)", exc, exc.detail)
        raise HTTPException(status_code=500, detail=str(exc))
    return EmailResponse(success=True, data=data)


@router.post("/auth/welcome", response_model=EmailResponse, summary="Send the welcome email")
async def send_welcome(
    body: WelcomeEmailRequest,
    store: Annotated[Optional[SupabaseStore], Depends(get_optional_store)],
    mailer: Mailer,
) -> EmailResponse:
    if body.email:
        email = body.email
    elif body.user_id:
        if store is None:
            raise HTTPException(status_code=500, detail="Primary store is not configured.")
        email = await _resolve_email(store, mailer, {"user_id": body.user_id})
    else:
        raise HTTPException(status_code=400, detail="email or userId is required")
    return await _deliver(mailer.send_welcome_email, email, body.name or "")


@router.post("/submissions/payment-request", response_model=EmailResponse, summary="Send a payment request")
async def send_payment_request(body: SubmissionEmailRequest, store: Store, mailer: Mailer) -> EmailResponse:
    submission = await _load_submission(store, body)
    email = await _resolve_email(store, mailer, submission, "email_user")
    return await _deliver(mailer.send_payment_request_email, email, submission)


@router.post("/payments/confirmed", response_model=EmailResponse, summary="Send a payment confirmation")
async def send_payment_confirmed(body: PaymentEmailRequest, store: Store, mailer: Mailer) -> EmailResponse:
    if body.payment_id:
        payment = await _load_row(store, "payments", "id", body.payment_id, "payment")
    elif body.user_id:
        payment = await _load_row(store, "payments", "user_id", body.user_id, "payment")
    else:
        raise HTTPException(status_code=400, detail="paymentId or userId is required")
    email = await _resolve_email(store, mailer, payment)
    return await _deliver(mailer.send_payment_confirmation_email, email, payment)


@router.post(
    "/submissions/verification-started",
    response_model=EmailResponse,
    summary="Send the verification-started email",
)
async def send_verification_started(body: SubmissionEmailRequest, store: Store, mailer: Mailer) -> EmailResponse:
    submission = await _load_submission(store, body)
    email = await _resolve_email(store, mailer, submission, "email_user")
    return await _deliver(mailer.send_verification_started_email, email, submission)


@router.post("/submissions/completed", response_model=EmailResponse, summary="Send the submission-live email")
async def send_submission_completed(body: SubmissionEmailRequest, store: Store, mailer: Mailer) -> EmailResponse:
    submission = await _load_submission(store, body)
    email = await _resolve_email(store, mailer, submission, "email_user")
    return await _deliver(mailer.send_submission_completed_email, email, submission)


@router.post(
    "/submissions/request-feedback",
    response_model=EmailResponse,
    summary="Send the feedback request email",
)
async def send_feedback_request(body: SubmissionEmailRequest, store: Store, mailer: Mailer) -> EmailResponse:
    submission = await _load_submission(store, body)
    email = await _resolve_email(store, mailer, submission, "email_user")
    return await _deliver(mailer.send_feedback_request_email, email, submission)
