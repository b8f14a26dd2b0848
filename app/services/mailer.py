"""Transactional email: jinja2-rendered templates delivered through the Resend HTTP API."""

import logging
import os
from typing import Any, Dict, Mapping, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.services.errors import NotFoundError, UpstreamError
from app.services.result import Err
from app.services.store import SupabaseStore

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com"
TIMEOUT = 10  # seconds

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "templates", "email")

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
)


def render_template(name: str, /, **context: Any) -> str:
    return _env.get_template(name).render(**context)


class EmailService:
    """Renders and sends the product's transactional emails."""

    def __init__(
        self,
        api_key: Optional[str],
        sender: str,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = RESEND_API_URL,
    ):
        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=TIMEOUT)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        """Deliver one email and return the provider's response body.

        Raises:
            UpstreamError: when the API key is missing or delivery fails.
        """
        if not self.api_key:
            raise UpstreamError("Email delivery is not configured.", kind="not_configured")

        try:
            response = await self._client.post(
                f"{self.api_url}/emails",
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Email request to %s failed: %s", to, exc)
            raise UpstreamError(f"Email service error: {exc}", kind="network") from exc

        if response.is_error:
            logger.error("Email service returned HTTP %s: %s", response.status_code, response.text)
            raise UpstreamError(
                f"Email service returned HTTP {response.status_code}.",
                kind="http_error",
                detail=response.text,
            )

        logger.info("Email '%s' sent to %s", subject, to)
        try:
            return response.json()
        except ValueError:
            return {}

    async def _send_template(self, to: str, subject: str, template: str, **context: Any) -> Dict[str, Any]:
        html = render_template(template, base_url=self.base_url, **context)
        return await self.send(to, subject, html)

    async def get_user_email_by_id(self, store: SupabaseStore, user_id: str) -> str:
        """Resolve a user's address from the auth users, then from their submissions.

        Raises:
            NotFoundError: if neither source has an address for *user_id*.
            UpstreamError: if the store could not be queried.
        """
        if not user_id:
            raise ValueError("User ID is required")

        user = await store.get_auth_user(user_id)
        if isinstance(user, Err):
            raise UpstreamError(f"Could not look up user {user_id}.", kind=user.kind, detail=user.detail)
        if user.payload and user.payload.get("email"):
            return user.payload["email"]

        submission = await store.get_row("product_submissions", "user_id", user_id)
        if isinstance(submission, Err):
            raise UpstreamError(
                f"Could not look up submissions of {user_id}.", kind=submission.kind, detail=submission.detail
            )
        if submission.payload and submission.payload.get("email_user"):
            return submission.payload["email_user"]

        raise NotFoundError("User email not found")

    async def send_welcome_email(self, email: str, name: str = "") -> Dict[str, Any]:
        return await self._send_template(
            email, "Welcome to BacklinkBot!", "welcome.html", name=name
        )

    async def send_payment_request_email(self, email: str, submission: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._send_template(
            email,
            "Complete Your Payment for BacklinkBot Submission",
            "payment_request.html",
            submission=submission,
        )

    async def send_payment_confirmation_email(self, email: str, payment: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._send_template(
            email,
            "Payment Confirmed - BacklinkBot Submission",
            "payment_confirmation.html",
            payment=payment,
        )

    async def send_verification_started_email(self, email: str, submission: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._send_template(
            email,
            "Your Submission is Being Verified - BacklinkBot",
            "verification_started.html",
            submission=submission,
        )

    async def send_submission_completed_email(self, email: str, submission: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._send_template(
            email,
            "Congratulations! Your Submission is Live - BacklinkBot",
            "submission_completed.html",
            submission=submission,
        )

    async def send_feedback_request_email(self, email: str, submission: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._send_template(
            email,
            "We Value Your Feedback - BacklinkBot",
            "feedback_request.html",
            submission=submission,
        )
