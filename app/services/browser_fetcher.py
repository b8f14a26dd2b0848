"""Playwright-based fetcher for JavaScript-rendered (dynamic) web pages.

Each call launches its own Chromium process and closes it before returning,
whether the render succeeded, failed, or ran past its deadline.
"""

import asyncio
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from app.services.errors import FetchError, FetchTimeoutError
from app.services.fetcher import BROWSER_USER_AGENT, validate_url

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30.0
NAVIGATION_TIMEOUT_MS = 25_000

# Sub-resources that cost load time but carry no text.
BLOCKED_RESOURCE_TYPES = {"image", "font", "media"}

_LAUNCH_ARGS = [
    # --no-sandbox is required when running as root inside a container
    # (Docker drops the user namespace needed by Chromium's sandbox).
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]

# Masks the most common headless fingerprints before any page script runs.
_STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = window.chrome || { runtime: {} };
"""

# Runs inside the page and returns a snapshot dict that
# app.services.extractor.content_from_snapshot understands.
_EXTRACT_SCRIPT = """
() => {
  const text = (el) => (el && el.innerText ? el.innerText : '').trim();
  document.querySelectorAll('script, style, iframe, noscript').forEach((el) => el.remove());
  const meta = document.querySelector('meta[name="description"]')
    || document.querySelector('meta[property="og:description"]');
  const regions = Array.from(
    document.querySelectorAll('main, article, .content, #content, .main, [role="main"]')
  ).filter((el, _, all) => !all.some((other) => other !== el && other.contains(el)));
  return {
    title: document.title || '',
    metaDescription: meta ? (meta.getAttribute('content') || '') : '',
    mainContent: regions.map(text).filter(Boolean).join('\\n'),
    bodyText: text(document.body),
    headings: Array.from(document.querySelectorAll('h1, h2, h3')).map(text).filter(Boolean),
    paragraphs: Array.from(document.querySelectorAll('p')).map(text).filter(Boolean),
    links: Array.from(document.querySelectorAll('a[href]')).map((a) => ({
      href: a.href,
      rawHref: a.getAttribute('href') || '',
      text: text(a),
    })),
  };
}
"""


async def _block_heavy_resources(route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


async def _render_snapshot(url: str) -> dict:
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=True, args=_LAUNCH_ARGS)
        try:
            context = await browser.new_context(
                user_agent=BROWSER_USER_AGENT,
                viewport={"width": 1366, "height": 768},
                locale="en-US",
                java_script_enabled=True,
            )
            await context.add_init_script(_STEALTH_SCRIPT)
            await context.route("**/*", _block_heavy_resources)
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
            return await page.evaluate(_EXTRACT_SCRIPT)
        finally:
            await browser.close()


async def fetch_snapshot_with_browser(url: str, *, timeout: float = TIMEOUT_SECONDS) -> dict:
    """Render *url* with a headless Chromium browser and return a DOM snapshot.

    The whole launch-navigate-extract sequence races a hard deadline of
    *timeout* seconds. On expiry the render task is cancelled and its
    ``finally`` block still closes the browser.

    Raises:
        ValueError: if the URL fails SSRF / scheme validation.
        FetchTimeoutError: if rendering exceeds *timeout*.
        FetchError: on browser launch, navigation, or evaluation errors.
    """
    await validate_url(url)

    try:
        snapshot = await asyncio.wait_for(_render_snapshot(url), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise FetchTimeoutError(f"Rendering {url} timed out after {timeout}s.") from exc
    except PlaywrightTimeoutError as exc:
        raise FetchTimeoutError(f"Navigation to {url} timed out.") from exc
    except PlaywrightError as exc:
        raise FetchError(f"Browser rendering failed for {url}: {exc}") from exc

    if not isinstance(snapshot, dict):
        raise FetchError(f"Browser returned an unexpected snapshot for {url}.")

    logger.info("Rendered %s with headless browser", url)
    return snapshot
