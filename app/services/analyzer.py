"""LLM-based directory-listing analysis of scraped page content.

:class:`DirectoryAnalyzer` never raises to its caller: a missing API key, a
failed completion, or an unusable reply all degrade to the fallback values
below, so the scrape response always carries a complete analysis.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from app.models.analysis import AnalysisResult
from app.models.content import PageContent
from app.prompts.directory_analysis import (
    DIRECTORY_ANALYSIS_PROMPT,
    DIRECTORY_ANALYSIS_SYSTEM_PROMPT,
)
from app.services.result import Err, Ok, Result

logger = logging.getLogger(__name__)

LIST_LENGTH = 3

DEFAULT_DESCRIPTION = "No description could be generated for this website."
DEFAULT_CATEGORIES = ["Business", "Technology", "Services"]
DEFAULT_FEATURES = ["Online presence", "Product information", "Contact options"]

# Prompt-side caps, tighter than the normalizer's so the request stays small.
SUMMARY_TITLE_CHARS = 200
SUMMARY_DESCRIPTION_CHARS = 300
SUMMARY_HEADINGS = 5
SUMMARY_PARAGRAPHS = 3
SUMMARY_PARAGRAPH_CHARS = 300
SUMMARY_LINKS = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_content_summary(content: PageContent, website_name: Optional[str]) -> str:
    """Condense *content* into the bounded text block sent to the LLM."""
    paragraphs = " ".join(p[:SUMMARY_PARAGRAPH_CHARS] for p in content.paragraphs[:SUMMARY_PARAGRAPHS])
    lines = [
        f"Website Name: {website_name or content.title or 'Unknown'}",
        f"Title: {content.title[:SUMMARY_TITLE_CHARS]}",
        f"Description: {content.meta_description[:SUMMARY_DESCRIPTION_CHARS]}",
        f"Main Headings: {', '.join(content.headings[:SUMMARY_HEADINGS])}",
        f"Content Sample: {paragraphs}",
        f"Key Links: {', '.join(link.text for link in content.links[:SUMMARY_LINKS])}",
    ]
    return "\n".join(lines)


def _parse_json(reply: Any) -> Optional[dict]:
    """Parse an LLM reply into a dict, tolerating markdown code fences."""
    if not isinstance(reply, str):
        return None
    text = reply.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1:]
        if text.endswith("```"):
            text = text[:-3].rstrip()
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _clamp(values: Any, defaults: List[str]) -> List[str]:
    """Return exactly :data:`LIST_LENGTH` strings, padding from *defaults*."""
    items: List[str] = []
    if isinstance(values, list):
        items = [v.strip() for v in values if isinstance(v, str) and v.strip()]
    if not items:
        return list(defaults[:LIST_LENGTH])
    items = items[:LIST_LENGTH]
    for default in defaults:
        if len(items) >= LIST_LENGTH:
            break
        if default not in items:
            items.append(default)
    return items


def normalize_analysis(payload: Any, analysis_date: datetime) -> AnalysisResult:
    """Validate an LLM payload and coerce it into an :class:`AnalysisResult`.

    Deterministic: the same payload and date always produce the same result.
    Anything missing or mistyped is replaced by its default.
    """
    data = payload if isinstance(payload, dict) else {}

    description = data.get("description")
    if not isinstance(description, str) or not description.strip():
        description = DEFAULT_DESCRIPTION

    count = data.get("suggestedDirectoryCount")
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        count = None

    return AnalysisResult(
        description=description.strip(),
        categories=_clamp(data.get("categories"), DEFAULT_CATEGORIES),
        features=_clamp(data.get("features"), DEFAULT_FEATURES),
        analysis_date=analysis_date.isoformat(),
        suggested_directory_count=count,
    )


def fallback_analysis(analysis_date: datetime) -> AnalysisResult:
    return normalize_analysis(None, analysis_date)


class DirectoryAnalyzer:
    """Asks an OpenAI chat model for directory-listing metadata."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        client: Any = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.clock = clock
        self._client = client

    def _get_client(self):
        """Lazy load the OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def _complete(self, prompt: str) -> Result[dict]:
        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": DIRECTORY_ANALYSIS_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self.temperature,
            )
            reply = response.choices[0].message.content
        except Exception as exc:
            return Err("completion_failed", str(exc))

        parsed = _parse_json(reply)
        if parsed is None:
            return Err("malformed_reply", reply)
        return Ok(parsed)

    async def analyze(self, content: PageContent, website_name: Optional[str]) -> AnalysisResult:
        """Return directory metadata for *content*; falls back to defaults on any failure."""
        if not self.api_key and self._client is None:
            logger.warning("OpenAI API key not configured – returning fallback analysis")
            return fallback_analysis(self.clock())

        prompt = DIRECTORY_ANALYSIS_PROMPT.format(
            content_summary=build_content_summary(content, website_name)
        )
        logger.info("Calling %s for directory analysis", self.model)
        result = await self._complete(prompt)
        completed_at = self.clock()

        if isinstance(result, Err):
            logger.error("Directory analysis failed (%s) – using fallback values", result)
            return fallback_analysis(completed_at)
        return normalize_analysis(result.payload, completed_at)
