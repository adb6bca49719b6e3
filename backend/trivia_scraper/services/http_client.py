"""Outbound HTTP fetching with uniform error classification.

No retries happen here; callers decide retry policy per job type.
"""

import logging
from typing import Any

import httpx

from trivia_scraper.config import get_settings
from trivia_scraper.errors import (
    FetchConnectionError,
    FetchError,
    FetchTimeout,
    HttpStatusError,
    MalformedResponse,
)

logger = logging.getLogger(__name__)


class FetchClient:
    """Thin wrapper around ``httpx.Client`` that raises ``FetchError`` subclasses.

    An existing ``httpx.Client`` can be injected (tests pass one backed by
    ``httpx.MockTransport``); otherwise one is created from settings.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.user_agent = user_agent or settings.user_agent
        self._owns_client = client is None
        self._client = client or httpx.Client()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "FetchClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch(
        self,
        url: str,
        timeout: float | None = None,
        follow_redirects: bool = True,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        request_headers = {"User-Agent": self.user_agent}
        if headers:
            request_headers.update(headers)

        try:
            response = self._client.get(
                url,
                params=params,
                headers=request_headers,
                timeout=timeout if timeout is not None else self.timeout,
                follow_redirects=follow_redirects,
            )
        except httpx.TimeoutException as e:
            raise FetchTimeout(f"Timed out fetching {url}: {e}", url=url) from e
        except httpx.InvalidURL as e:
            raise MalformedResponse(f"Invalid URL {url}: {e}", url=url) from e
        except (httpx.TransportError, httpx.TooManyRedirects) as e:
            raise FetchConnectionError(f"Connection error fetching {url}: {e}", url=url) from e

        if response.status_code >= 400:
            logger.debug(f"HTTP {response.status_code} for {url}")
            raise HttpStatusError(response.status_code, url=url)

        return response

    def fetch_text(self, url: str, **kwargs) -> str:
        response = self.fetch(url, **kwargs)
        try:
            return response.text
        except (UnicodeDecodeError, LookupError) as e:
            raise MalformedResponse(f"Undecodable body from {url}: {e}", url=url) from e

    def fetch_json(self, url: str, **kwargs) -> Any:
        headers = {"Accept": "application/json"}
        headers.update(kwargs.pop("headers", None) or {})
        response = self.fetch(url, headers=headers, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Invalid JSON from {url}: {e}", url=url) from e

    def fetch_bytes(self, url: str, **kwargs) -> tuple[bytes, str | None]:
        """Fetch a binary body. Returns (content, content_type)."""
        response = self.fetch(url, **kwargs)
        return response.content, response.headers.get("content-type")


def fetch(url: str, **kwargs) -> httpx.Response:
    """One-off fetch with a short-lived client."""
    with FetchClient() as client:
        return client.fetch(url, **kwargs)


__all__ = ["FetchClient", "FetchError", "fetch"]
