import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import Settings
from app.deps import AppSettings, get_analyzer, get_optional_store
from app.models.content import PageContent
from app.models.request import ScrapeRequest
from app.models.response import ScrapeResponse
from app.services.analyzer import DirectoryAnalyzer
from app.services.browser_fetcher import fetch_snapshot_with_browser
from app.services.detector import needs_browser_render
from app.services.errors import FetchError, FetchTimeoutError
from app.services.extractor import content_from_snapshot, extract_content, limits_from_settings
from app.services.fetcher import fetch_url, normalize_url
from app.services.result import Err
from app.services.store import SupabaseStore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/api", tags=["Scrape"])

WEBSITE_CONTENT_TABLE = "website_content"


@router.post(
    "/scrape-website",
    response_model=ScrapeResponse,
    summary="Scrape a website and generate directory-listing metadata",
)
@limiter.limit("10/minute")
async def scrape_website(
    request: Request,
    body: ScrapeRequest,
    settings: AppSettings,
    analyzer: Annotated[DirectoryAnalyzer, Depends(get_analyzer)],
    store: Annotated[Optional[SupabaseStore], Depends(get_optional_store)],
) -> ScrapeResponse:
    """Fetch *websiteUrl*, normalize its content, and ask the LLM for listing metadata.

    The ``renderMode`` field controls how the page is fetched:

    * ``"http"`` – plain HTTP only (default).
    * ``"browser"`` – always render in a headless Chromium browser.
    * ``"auto"`` – plain HTTP first; headless-browser fallback when a
      JavaScript SPA shell is detected (framework markers + thin content).
    """
    if not body.website_url or not body.website_url.strip():
        raise HTTPException(status_code=400, detail="Website URL is required")

    url = normalize_url(body.website_url)
    logger.info("Scrape request received", extra={"url": url, "render_mode": body.render_mode})

    # ── Step 1: fetch and normalize ───────────────────────────────────────────
    if body.render_mode == "browser":
        content = await _fetch_with_browser(url, settings)
    else:
        html = await _fetch_with_http(url, settings)
        content = extract_content(html, url, limits_from_settings(settings))

        # ── Step 2: SPA fallback (auto mode only) ─────────────────────────────
        if body.render_mode == "auto" and needs_browser_render(html, len(content.main_content.split())):
            logger.info("SPA detected for %s – retrying with browser rendering", url)
            try:
                content = await _fetch_with_browser(url, settings)
            except HTTPException as exc:
                # Keep the HTTP result when the browser cannot do better.
                logger.warning("Browser rendering failed for %s (%s) – using HTTP result", url, exc.detail)

    # ── Step 3: LLM analysis (never raises) ───────────────────────────────────
    analysis = await analyzer.analyze(content, body.website_name)

    # ── Step 4: optional persistence ──────────────────────────────────────────
    if body.user_id:
        await _save_website_content(store, body, url, content, analysis)

    return ScrapeResponse(
        content=content,
        gpt_analysis=analysis,
        message="Website successfully analyzed",
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _fetch_with_http(url: str, settings: Settings) -> str:
    """Fetch *url* via plain HTTP and propagate errors as HTTP exceptions."""
    try:
        return await fetch_url(url, timeout=settings.fetch_timeout_seconds)
    except ValueError as exc:
        logger.warning("Invalid or blocked URL: %s – %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchTimeoutError as exc:
        logger.error("Timeout fetching URL %s: %s", url, exc)
        raise HTTPException(status_code=504, detail="The target URL timed out.")
    except FetchError as exc:
        logger.error("Error fetching URL %s: %s", url, exc)
        raise HTTPException(status_code=500, detail=f"Failed to scrape website: {exc}")


async def _fetch_with_browser(url: str, settings: Settings) -> PageContent:
    """Render *url* with a headless browser and normalize the snapshot.

    Propagates errors as HTTP exceptions so the router can return a clean
    error response to the caller.
    """
    try:
        snapshot = await fetch_snapshot_with_browser(url, timeout=settings.browser_timeout_seconds)
    except ValueError as exc:
        logger.warning("Invalid or blocked URL (browser): %s – %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchTimeoutError as exc:
        logger.error("Browser rendering timed out for %s: %s", url, exc)
        raise HTTPException(status_code=504, detail="Rendering the target URL timed out.")
    except FetchError as exc:
        logger.error("Browser rendering error for %s: %s", url, exc)
        raise HTTPException(status_code=500, detail=f"Failed to scrape website: {exc}")
    return content_from_snapshot(snapshot, limits_from_settings(settings))


async def _save_website_content(store, body: ScrapeRequest, url: str, content, analysis) -> None:
    """Persist the scrape result for the requesting user; failures are only logged."""
    if store is None:
        logger.warning("Primary store not configured – scrape result for %s not saved", url)
        return
    result = await store.insert_row(
        WEBSITE_CONTENT_TABLE,
        {
            "user_id": body.user_id,
            "website_url": url,
            "website_name": body.website_name,
            "content": content.model_dump(by_alias=True),
            "gpt_analysis": analysis.model_dump(by_alias=True),
        },
    )
    if isinstance(result, Err):
        logger.error("Failed to save scrape result for %s: %s", url, result)
