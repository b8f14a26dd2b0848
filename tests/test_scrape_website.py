"""Tests for the /api/scrape-website endpoint.

These tests exercise the full scrape router including:
- URL normalisation and required-field validation
- render_mode selection (http / browser / auto)
- SPA auto-detection and browser fallback
- Error propagation
- Saving the result when a userId is supplied

Fetching, the Playwright browser, the LLM, and the primary store are replaced
with lightweight fakes so the tests run without internet access.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.deps import get_analyzer, get_optional_store
from app.main import app
from app.models.analysis import AnalysisResult
from app.services.errors import FetchError, FetchTimeoutError
from app.services.result import Err, Ok

client = TestClient(app)

_ANALYSIS = AnalysisResult(
    description="Example builds widgets.",
    categories=["Tools", "Widgets", "B2B"],
    features=["Fast", "Cheap", "Reliable"],
    analysis_date="2024-05-01T12:00:00+00:00",
)


class _FakeAnalyzer:
    def __init__(self):
        self.calls = []

    async def analyze(self, content, website_name):
        self.calls.append((content, website_name))
        return _ANALYSIS


class _FakeStore:
    def __init__(self, result=None):
        self.result = result or Ok({"id": 1})
        self.inserts = []

    async def insert_row(self, table, values):
        self.inserts.append((table, values))
        return self.result


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Clear the slowapi in-memory counter before every test."""
    app.state.limiter._storage.reset()
    yield


@pytest.fixture
def analyzer():
    fake = _FakeAnalyzer()
    app.dependency_overrides[get_analyzer] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_analyzer, None)


@pytest.fixture
def store():
    fake = _FakeStore()
    app.dependency_overrides[get_optional_store] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_optional_store, None)


# ---------------------------------------------------------------------------
# Shared HTML fixtures
# ---------------------------------------------------------------------------

_SIMPLE_HTML = "<html><head><title>Example</title></head><body><h1>Hello</h1></body></html>"

_STATIC_HTML = """
<!DOCTYPE html>
<html>
<head>
  <title>Static Site Page</title>
  <meta name="description" content="A plain static page.">
</head>
<body>
  <main>
    <h1>Hello World</h1>
    <p>This is a fully server-rendered page with plenty of readable content
    that satisfies the word-count threshold for SSR detection.</p>
    <p>Lorem ipsum dolor sit amet, consectetur adipiscing elit. Sed do eiusmod
    tempor incididunt ut labore et dolore magna aliqua.</p>
    <a href="/pricing">Pricing</a>
  </main>
</body>
</html>
"""

_SPA_SHELL_HTML = """
<!DOCTYPE html>
<html>
<head><title>React App</title></head>
<body>
  <div id="root"></div>
  <script src="/static/js/main.js"></script>
</body>
</html>
"""

_RENDERED_SNAPSHOT = {
    "title": "React App",
    "metaDescription": "Rendered by the browser.",
    "mainContent": "Welcome to the SPA. This content was produced by client-side rendering.",
    "bodyText": "Welcome to the SPA.",
    "headings": ["Welcome to the SPA"],
    "paragraphs": ["This content was produced by client-side rendering."],
    "links": [{"href": "https://example.com/docs", "rawHref": "/docs", "text": "Docs"}],
}


def _post(website_url="https://example.com", **kwargs):
    """POST to /api/scrape-website with sensible defaults."""
    payload = {"websiteUrl": website_url, **kwargs}
    return client.post("/api/scrape-website", json=payload)


# ---------------------------------------------------------------------------
# renderMode=http  –  plain HTTP, no browser
# ---------------------------------------------------------------------------

class TestScrapeHttpMode:
    def test_bare_domain_is_normalized_and_analyzed(self, analyzer):
        fetch = AsyncMock(return_value=_SIMPLE_HTML)
        with patch("app.routers.scrape.fetch_url", new=fetch):
            resp = _post("example.com", websiteName="Example Inc")

        assert resp.status_code == 200
        assert fetch.await_args.args[0] == "https://example.com"
        data = resp.json()
        assert data["content"]["title"] == "Example"
        assert "Hello" in data["content"]["headings"]
        assert data["gptAnalysis"]["categories"] == ["Tools", "Widgets", "B2B"]
        assert data["message"] == "Website successfully analyzed"
        assert analyzer.calls[0][1] == "Example Inc"

    def test_response_uses_camel_case_keys(self, analyzer):
        with patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_STATIC_HTML)):
            resp = _post()

        content = resp.json()["content"]
        for field in ("title", "metaDescription", "mainContent", "headings", "paragraphs", "links"):
            assert field in content, f"Missing field: {field}"
        assert content["links"][0] == {"href": "https://example.com/pricing", "text": "Pricing"}
        assert "analysisDate" in resp.json()["gptAnalysis"]

    def test_http_mode_does_not_trigger_browser_for_spa(self, analyzer):
        """renderMode=http must never invoke the browser even for SPAs."""
        with (
            patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_SPA_SHELL_HTML)),
            patch(
                "app.routers.scrape.fetch_snapshot_with_browser",
                new=AsyncMock(side_effect=AssertionError("browser must not be called")),
            ),
        ):
            resp = _post(renderMode="http")

        assert resp.status_code == 200
        assert resp.json()["content"]["title"] == "React App"


# ---------------------------------------------------------------------------
# renderMode=auto  –  HTTP first, browser fallback for SPAs
# ---------------------------------------------------------------------------

class TestScrapeAutoMode:
    def test_auto_mode_ssr_page_no_browser(self, analyzer):
        with (
            patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_STATIC_HTML)),
            patch(
                "app.routers.scrape.fetch_snapshot_with_browser",
                new=AsyncMock(side_effect=AssertionError("browser must not be called")),
            ),
        ):
            resp = _post(renderMode="auto")

        assert resp.status_code == 200
        assert resp.json()["content"]["title"] == "Static Site Page"

    def test_auto_mode_spa_triggers_browser_fallback(self, analyzer):
        with (
            patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_SPA_SHELL_HTML)),
            patch(
                "app.routers.scrape.fetch_snapshot_with_browser",
                new=AsyncMock(return_value=_RENDERED_SNAPSHOT),
            ),
        ):
            resp = _post(renderMode="auto")

        assert resp.status_code == 200
        content = resp.json()["content"]
        assert content["headings"] == ["Welcome to the SPA"]
        assert content["metaDescription"] == "Rendered by the browser."

    def test_auto_mode_browser_failure_keeps_http_result(self, analyzer):
        with (
            patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_SPA_SHELL_HTML)),
            patch(
                "app.routers.scrape.fetch_snapshot_with_browser",
                new=AsyncMock(side_effect=FetchError("browser crashed")),
            ),
        ):
            resp = _post(renderMode="auto")

        assert resp.status_code == 200
        assert resp.json()["content"]["title"] == "React App"


# ---------------------------------------------------------------------------
# renderMode=browser  –  always use headless browser
# ---------------------------------------------------------------------------

class TestScrapeBrowserMode:
    def test_browser_mode_uses_browser_fetcher(self, analyzer):
        with (
            patch(
                "app.routers.scrape.fetch_snapshot_with_browser",
                new=AsyncMock(return_value=_RENDERED_SNAPSHOT),
            ),
            patch(
                "app.routers.scrape.fetch_url",
                new=AsyncMock(side_effect=AssertionError("http must not be called")),
            ),
        ):
            resp = _post(renderMode="browser")

        assert resp.status_code == 200
        assert resp.json()["content"]["links"] == [{"href": "https://example.com/docs", "text": "Docs"}]

    def test_browser_mode_timeout_returns_504(self, analyzer):
        with patch(
            "app.routers.scrape.fetch_snapshot_with_browser",
            new=AsyncMock(side_effect=FetchTimeoutError("timed out")),
        ):
            resp = _post(renderMode="browser")

        assert resp.status_code == 504

    def test_invalid_render_mode_is_rejected(self, analyzer):
        assert _post(renderMode="teleport").status_code == 422


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class TestScrapePersistence:
    def test_result_is_saved_for_user(self, analyzer, store):
        with patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_SIMPLE_HTML)):
            resp = _post("example.com", websiteName="Example Inc", userId="user-1")

        assert resp.status_code == 200
        table, values = store.inserts[0]
        assert table == "website_content"
        assert values["user_id"] == "user-1"
        assert values["website_url"] == "https://example.com"
        assert values["content"]["title"] == "Example"
        assert values["gpt_analysis"]["description"] == "Example builds widgets."

    def test_nothing_is_saved_without_user(self, analyzer, store):
        with patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_SIMPLE_HTML)):
            _post()

        assert store.inserts == []

    def test_save_failure_does_not_fail_the_request(self, analyzer, store):
        store.result = Err("http_error", "HTTP 500")
        with patch("app.routers.scrape.fetch_url", new=AsyncMock(return_value=_SIMPLE_HTML)):
            resp = _post(userId="user-1")

        assert resp.status_code == 200
        assert len(store.inserts) == 1


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

class TestScrapeErrorHandling:
    @pytest.mark.parametrize("payload", [{}, {"websiteUrl": ""}, {"websiteUrl": "   "}])
    def test_missing_url_returns_400(self, analyzer, payload):
        resp = client.post("/api/scrape-website", json=payload)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Website URL is required"

    def test_fetch_failure_returns_500(self, analyzer):
        with patch(
            "app.routers.scrape.fetch_url",
            new=AsyncMock(side_effect=FetchError("HTTP 503 fetching https://example.com")),
        ):
            resp = _post()

        assert resp.status_code == 500
        assert "Failed to scrape website" in resp.json()["detail"]
        assert analyzer.calls == []

    def test_timeout_returns_504(self, analyzer):
        with patch("app.routers.scrape.fetch_url", new=AsyncMock(side_effect=FetchTimeoutError("timed out"))):
            resp = _post()

        assert resp.status_code == 504

    def test_blocked_url_returns_400(self, analyzer):
        with patch("app.routers.scrape.fetch_url", new=AsyncMock(side_effect=ValueError("private address"))):
            resp = _post("http://127.0.0.1")

        assert resp.status_code == 400
