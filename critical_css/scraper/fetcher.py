"""HTTP fetcher for rendered page HTML."""

from __future__ import annotations

import httpx

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; critical-css/1.0)",
}


class FetchError(RuntimeError):
    """Raised when a page responds with a non-2xx status."""

    def __init__(self, url: str, status_code: int, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {status_code} {reason}")
        self.url = url
        self.status_code = status_code
        self.reason = reason


def build_client(timeout: float | None = None) -> httpx.Client:
    """Return an ``httpx.Client`` for fetching pages.

    A *timeout* of ``None`` waits indefinitely.
    """
    return httpx.Client(headers=_DEFAULT_HEADERS, timeout=timeout, follow_redirects=True)


def fetch_html(url: str, client: httpx.Client | None = None) -> str:
    """GET *url* and return the response body as text.

    Network errors (``httpx.TransportError`` and friends) propagate unchanged.
    There are no retries.

    Raises:
        FetchError: If the server answers with a non-2xx status code.
    """
    if client is None:
        with build_client() as own_client:
            return fetch_html(url, own_client)

    response = client.get(url)
    if not response.is_success:
        raise FetchError(url, response.status_code, response.reason_phrase)
    return response.text
