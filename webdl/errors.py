# File: webdl/errors.py
"""webdl.errors: exception hierarchy shared by the crawler, config and CLI."""

from __future__ import annotations

__all__ = [
    "WebdlError",
    "ConfigError",
    "InvalidSeedError",
    "InvalidSelector",
    "InvalidHref",
    "FetchError",
    "ExtractError",
    "CrawlCancelled",
    "UnsafePathError",
]


class WebdlError(Exception):
    """Base class for every error raised by webdl itself."""


class ConfigError(WebdlError, ValueError):
    """The configuration file or one of its values is unusable."""


class InvalidSeedError(WebdlError, ValueError):
    """A seed URL could not be parsed. Raised before any request is made."""

    def __init__(self, url: str, reason: str = "malformed URL") -> None:
        super().__init__(f"invalid seed URL {url!r}: {reason}")
        self.url = url


class InvalidSelector(WebdlError, ValueError):
    """A CSS query does not compile."""

    def __init__(self, query: str, reason: str) -> None:
        super().__init__(f"invalid selector {query!r}: {reason}")
        self.query = query


class InvalidHref(WebdlError, ValueError):
    """A single href could not be turned into an absolute URL."""


class FetchError(WebdlError):
    """An HTTP request for one task failed."""

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status = status


class ExtractError(WebdlError):
    """A fetched page could not be parsed or queried."""


class CrawlCancelled(WebdlError):
    """The crawl was cancelled before the frontier was exhausted."""


class UnsafePathError(WebdlError, ValueError):
    """A rendered download path points outside the destination directory."""
