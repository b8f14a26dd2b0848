"""Normalise raw HTML or a rendered DOM snapshot into a bounded PageContent record.

Every list and text field is capped here; nothing downstream truncates again.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from app.models.content import LinkItem, PageContent
from app.services.sanitizer import sanitize

# Containers that usually hold the page's primary content, checked as one group.
MAIN_CONTENT_SELECTORS = "main, article, .content, #content, .main, [role='main']"

_SKIP_HREF_PREFIXES = ("#", "javascript:")


@dataclass(frozen=True)
class ContentLimits:
    max_main_content_chars: int = 5000
    max_headings: int = 20
    max_paragraphs: int = 20
    max_paragraph_chars: int = 1000
    max_links: int = 50
    max_link_text_chars: int = 200


DEFAULT_LIMITS = ContentLimits()


def _collapse(text: Any) -> str:
    """Collapse runs of whitespace; non-string input becomes an empty string."""
    if not isinstance(text, str):
        return ""
    return " ".join(text.split())


def _truncate(text: str, limit: int) -> str:
    return text[: max(limit, 0)]


def _node_text(node: Tag) -> str:
    return _collapse(node.get_text(" ", strip=True))


def _extract_title(soup: BeautifulSoup) -> str:
    title_tag = soup.find("title")
    return _node_text(title_tag) if title_tag else ""


def _extract_description(soup: BeautifulSoup) -> str:
    meta = soup.find("meta", attrs={"name": "description"})
    if meta and meta.get("content"):
        return _collapse(str(meta["content"]))
    og_desc = soup.find("meta", attrs={"property": "og:description"})
    if og_desc and og_desc.get("content"):
        return _collapse(str(og_desc["content"]))
    return ""


def _outermost(nodes: List[Tag]) -> List[Tag]:
    """Drop nodes nested inside another selected node so no text is counted twice."""
    selected = {id(node) for node in nodes}
    return [
        node for node in nodes
        if not any(id(parent) in selected for parent in node.parents)
    ]


def _extract_main_content(soup: BeautifulSoup) -> str:
    regions = _outermost(soup.select(MAIN_CONTENT_SELECTORS))
    text = "\n".join(t for t in (_node_text(node) for node in regions) if t)
    if text:
        return text
    body = soup.find("body") or soup
    return _node_text(body)


def _first_texts(nodes: Iterable[Tag], count: int, char_limit: Optional[int] = None) -> List[str]:
    texts: List[str] = []
    for node in nodes:
        if len(texts) >= count:
            break
        text = _node_text(node)
        if text:
            texts.append(_truncate(text, char_limit) if char_limit is not None else text)
    return texts


def _usable_href(href: str) -> bool:
    return bool(href) and not href.lower().startswith(_SKIP_HREF_PREFIXES)


def _extract_links(soup: BeautifulSoup, base_url: Optional[str], limits: ContentLimits) -> List[LinkItem]:
    links: List[LinkItem] = []
    for a in soup.find_all("a", href=True):
        if len(links) >= limits.max_links:
            break
        href = str(a["href"]).strip()
        text = _node_text(a)
        if not text or not _usable_href(href):
            continue
        resolved = urljoin(base_url, href) if base_url else href
        links.append(LinkItem(href=resolved, text=_truncate(text, limits.max_link_text_chars)))
    return links


def extract_content(
    html: str,
    base_url: Optional[str] = None,
    limits: ContentLimits = DEFAULT_LIMITS,
) -> PageContent:
    """Extract a :class:`PageContent` record from raw *html*.

    Relative link targets are resolved against *base_url* when it is given.
    An empty document produces a record with every field empty.
    """
    soup = sanitize(html)

    return PageContent(
        title=_extract_title(soup),
        meta_description=_extract_description(soup),
        main_content=_truncate(_extract_main_content(soup), limits.max_main_content_chars),
        headings=_first_texts(soup.find_all(["h1", "h2", "h3"]), limits.max_headings),
        paragraphs=_first_texts(
            soup.find_all("p"), limits.max_paragraphs, limits.max_paragraph_chars
        ),
        links=_extract_links(soup, base_url, limits),
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [text for text in (_collapse(item) for item in value) if text]


def content_from_snapshot(
    snapshot: Mapping[str, Any],
    limits: ContentLimits = DEFAULT_LIMITS,
) -> PageContent:
    """Build a :class:`PageContent` from a browser-produced DOM snapshot.

    The snapshot is the dict returned by the in-page extraction script in
    :mod:`app.services.browser_fetcher`. Missing or mistyped keys fall back
    to empty values, and the same caps as :func:`extract_content` apply.
    """
    main_content = _collapse(snapshot.get("mainContent")) or _collapse(snapshot.get("bodyText"))

    links: List[LinkItem] = []
    raw_links = snapshot.get("links")
    for item in raw_links if isinstance(raw_links, list) else []:
        if len(links) >= limits.max_links:
            break
        if not isinstance(item, Mapping):
            continue
        raw_href = _collapse(item.get("rawHref")) or _collapse(item.get("href"))
        href = _collapse(item.get("href"))
        text = _collapse(item.get("text"))
        if not text or not _usable_href(raw_href) or not href:
            continue
        links.append(LinkItem(href=href, text=_truncate(text, limits.max_link_text_chars)))

    return PageContent(
        title=_collapse(snapshot.get("title")),
        meta_description=_collapse(snapshot.get("metaDescription")),
        main_content=_truncate(main_content, limits.max_main_content_chars),
        headings=_string_list(snapshot.get("headings"))[: limits.max_headings],
        paragraphs=[
            _truncate(text, limits.max_paragraph_chars)
            for text in _string_list(snapshot.get("paragraphs"))[: limits.max_paragraphs]
        ],
        links=links,
    )


def limits_from_settings(settings) -> ContentLimits:
    """Build :class:`ContentLimits` from the application settings."""
    return ContentLimits(
        max_main_content_chars=settings.max_main_content_chars,
        max_headings=settings.max_headings,
        max_paragraphs=settings.max_paragraphs,
        max_paragraph_chars=settings.max_paragraph_chars,
        max_links=settings.max_links,
        max_link_text_chars=settings.max_link_text_chars,
    )
