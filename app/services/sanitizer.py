import re

from bs4 import BeautifulSoup, Comment, Tag

# Matches `display:none` or `visibility:hidden` in inline style attributes
_HIDDEN_STYLE_RE = re.compile(
    r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE
)

# Tags whose entire subtree should be removed (non-content / binary / scripting)
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "iframe",
    "object",
    "embed",
    "applet",
    # Vector / canvas graphics produce raw coordinate/path noise in plain text
    "svg",
    "canvas",
    # Template elements may contain raw JS template markup
    "template",
}


def parse_html(html: str) -> BeautifulSoup:
    """Parse *html* with lxml; an empty or unparsable document yields an empty tree."""
    return BeautifulSoup(html or "", "lxml")


def sanitize(html: str) -> BeautifulSoup:
    """Remove non-content elements from *html* and return the cleaned BeautifulSoup tree.

    ``<title>`` and ``<meta>`` survive so the caller can still read page
    metadata from the same tree.
    """
    soup = parse_html(html)

    for tag in soup.find_all(_REMOVE_TAGS):
        tag.decompose()

    # Remove HTML comment nodes (may contain debugging info or conditional blocks)
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    # Elements hidden via inline CSS never render as page text
    for tag in soup.find_all(style=_HIDDEN_STYLE_RE):
        if isinstance(tag, Tag) and not tag.decomposed:
            tag.decompose()

    return soup
