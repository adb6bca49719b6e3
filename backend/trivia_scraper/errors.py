"""Error taxonomy for the scrape pipeline.

Every failure the pipeline produces is a ``ScraperError`` subclass. Each
error carries a ``kind`` string used in structured run logs and a
``retryable`` flag consulted by ``RetryPolicy``.
"""

from typing import Any


class ScraperError(Exception):
    """Base class for all pipeline errors."""

    kind = "scraper_error"
    retryable = False

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self)}


# --- Fetch errors ---------------------------------------------------------


class FetchError(ScraperError):
    """Outbound HTTP request failed."""

    kind = "fetch_error"
    retryable = True

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.url:
            data["url"] = self.url
        return data


class FetchTimeout(FetchError):
    kind = "timeout"


class FetchConnectionError(FetchError):
    kind = "connection_error"


class HttpStatusError(FetchError):
    """Non-2xx response. 5xx, 408 and 429 are retryable; other 4xx are terminal."""

    kind = "http_status"

    def __init__(self, status_code: int, url: str | None = None):
        super().__init__(f"HTTP {status_code}", url=url)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500 or self.status_code in (408, 429)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class MalformedResponse(FetchError):
    kind = "malformed"
    retryable = False


# --- Extract errors -------------------------------------------------------


class ExtractError(ScraperError):
    """Fetched content could not be turned into a record. Never retried."""

    kind = "extract_error"


class MissingRequiredField(ExtractError):
    kind = "missing_required_field"

    def __init__(self, field: str, source_url: str | None = None):
        message = f"Missing required field: {field}"
        if source_url:
            message += f" ({source_url})"
        super().__init__(message)
        self.field = field
        self.source_url = source_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class ParseError(ExtractError):
    kind = "parse_error"


class UnsupportedFormat(ExtractError):
    kind = "unsupported_format"


# --- Everything else ------------------------------------------------------


class UpsertError(ScraperError):
    """The store rejected a write (constraint or validation failure)."""

    kind = "upsert_error"

    def __init__(self, message: str, attrs: dict[str, Any] | None = None):
        super().__init__(message)
        self.attrs = attrs or {}


class ImageError(ScraperError):
    """Image download or storage failed. Never fatal to the owning job."""

    kind = "image_error"


class SchedulingError(ScraperError):
    """A single job could not be enqueued."""

    kind = "scheduling_error"


class UnknownSourceError(ScraperError):
    kind = "unknown_source"


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Structured error dict for run records and logs."""
    if isinstance(exc, ScraperError):
        return exc.to_dict()
    return {"kind": type(exc).__name__, "message": str(exc)[:2000]}
