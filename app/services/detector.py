"""Detect JavaScript single-page-application shells in statically fetched HTML.

The scrape router uses :func:`needs_browser_render` in ``auto`` render mode to
decide whether the plain HTTP result is good enough or the page has to be
rendered in a headless browser first.
"""

import re

# ---------------------------------------------------------------------------
# SPA framework fingerprints
# Present in the *un-rendered* HTML shell when a SPA mounts on the client.
# ---------------------------------------------------------------------------
_SPA_PATTERN = re.compile(
    # React / Next.js mount targets
    r'<div\s[^>]*\bid=["\']root["\']'
    r'|<div\s[^>]*\bid=["\']__next["\']'
    # Vue / generic SPA mount target
    r'|<div\s[^>]*\bid=["\']app["\']'
    # Nuxt.js
    r'|<div\s[^>]*\bid=["\']__nuxt["\']'
    r"|window\.__NUXT__"
    # Next.js inline data script
    r"|__NEXT_DATA__"
    # Angular attribute added at runtime (present in HTML template)
    r"|ng-version="
    # React legacy server attribute
    r"|data-reactroot",
    re.IGNORECASE,
)

# Below this many words of extracted text, a page carrying an SPA marker is
# assumed to render its content client-side.
SPA_MIN_WORDS = 20


def needs_browser_render(html: str, word_count: int) -> bool:
    """Return True when *html* looks like an SPA shell with too little readable text.

    Both conditions must hold: an SPA framework fingerprint is present in
    the raw HTML, and fewer than :data:`SPA_MIN_WORDS` words were extracted.
    """
    return word_count < SPA_MIN_WORDS and bool(_SPA_PATTERN.search(html or ""))
