import asyncio
import ipaddress
import socket
from urllib.parse import urljoin, urlparse

import httpx

from app.services.errors import FetchError, FetchTimeoutError

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}

# Sent on every direct fetch; many sites reject the default httpx agent.
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def normalize_url(raw: str) -> str:
    """Trim *raw* and prepend ``https://`` when it carries no http(s) scheme."""
    url = raw.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url
    return url


async def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = await asyncio.get_running_loop().getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        raw_ip = info[4][0]
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = raw_ip.split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


async def validate_url(url: str) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if await _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


async def fetch_url(url: str, *, timeout: float = TIMEOUT) -> str:
    """Fetch *url* and return the response body as a string.

    Redirects are followed manually so that every redirect destination is
    validated against the SSRF rules before the next request is made.

    Raises:
        ValueError: if the URL fails SSRF / scheme validation.
        FetchTimeoutError: if the server does not answer within *timeout*.
        FetchError: on network errors, HTTP error statuses, oversized bodies,
            or redirect loops.
    """
    await validate_url(url)

    current_url = url
    try:
        async with httpx.AsyncClient(
            follow_redirects=False, timeout=timeout, headers=DEFAULT_HEADERS
        ) as client:
            for _ in range(MAX_REDIRECTS + 1):
                async with client.stream("GET", current_url) as response:
                    if response.is_redirect:
                        location = response.headers.get("location", "")
                        next_url = urljoin(current_url, location)
                        await validate_url(next_url)
                        current_url = next_url
                        continue

                    response.raise_for_status()

                    content_length = response.headers.get("content-length")
                    if content_length and int(content_length) > MAX_CONTENT_SIZE:
                        raise FetchError("Response body exceeds the maximum allowed size.")

                    chunks = []
                    total = 0
                    async for chunk in response.aiter_bytes():
                        total += len(chunk)
                        if total > MAX_CONTENT_SIZE:
                            raise FetchError("Response body exceeds the maximum allowed size.")
                        chunks.append(chunk)

                    return b"".join(chunks).decode(errors="replace")
    except httpx.TimeoutException as exc:
        raise FetchTimeoutError(f"Timed out fetching {current_url} after {timeout}s.") from exc
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"Target URL returned HTTP {exc.response.status_code}."
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Error fetching {current_url}: {exc}") from exc

    raise FetchError("Too many redirects.")
