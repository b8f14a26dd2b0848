from typing import Literal, Optional

from app.models.content import CamelModel


class ScrapeRequest(CamelModel):
    # Required fields are validated in the router so a missing URL is a 400.
    website_url: Optional[str] = None
    website_name: Optional[str] = None
    user_id: Optional[str] = None
    render_mode: Literal["http", "browser", "auto"] = "http"
    """Rendering strategy for the target URL.

    ``"http"`` (default)
        Plain HTTP fetch of the static HTML.

    ``"browser"``
        Always render with a headless Chromium browser.

    ``"auto"``
        Plain HTTP first; headless-browser fallback when the response is a
        JavaScript SPA shell with almost no readable text.
    """


class StatusUpdateRequest(CamelModel):
    submission_id: Optional[str] = None
    new_status: Optional[str] = None


class WelcomeEmailRequest(CamelModel):
    email: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None


class SubmissionEmailRequest(CamelModel):
    submission_id: Optional[str] = None
    user_id: Optional[str] = None


class PaymentEmailRequest(CamelModel):
    payment_id: Optional[str] = None
    user_id: Optional[str] = None
