"""Exception hierarchy shared by the crawler core and its collaborators."""
from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base class for every error raised by shopcrawl."""


class ConfigError(CrawlerError, ValueError):
    """Invalid or inconsistent crawl configuration (a setup failure)."""


class NormalizeError(CrawlerError, ValueError):
    """A raw link could not be turned into a canonical http(s) URL."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"cannot normalize {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class FetchError(CrawlerError):
    """A page could not be fetched."""

    retryable = True

    def __init__(self, url: str, message: str = "") -> None:
        super().__init__(message or f"fetch failed for {url}")
        self.url = url


class FetchTimeout(FetchError):
    def __init__(self, url: str) -> None:
        super().__init__(url, f"timed out fetching {url}")


class ConnectionFailed(FetchError):
    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(url, f"connection failed for {url}: {cause!r}")
        self.cause = cause


class HTTPStatusError(FetchError):
    def __init__(self, url: str, status: int) -> None:
        super().__init__(url, f"HTTP {status} for {url}")
        self.status = status
        # Client errors other than throttling will not change on retry.
        self.retryable = status >= 500 or status == 429


class ResponseTooLarge(FetchError):
    retryable = False

    def __init__(self, url: str, limit: int) -> None:
        super().__init__(url, f"response body of {url} exceeds {limit} bytes")
        self.limit = limit


class ExtractionError(CrawlerError):
    """Page content could not be parsed into records and links."""


class SinkWriteError(CrawlerError):
    """A product record could not be persisted. Always fatal to the crawl."""
