"""Error taxonomy shared by sources, services and jobs."""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for collector failures."""


class UpstreamHTTPError(CollectorError):
    """Raised when an external HTTP call fails at the transport or status level."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class BadUpstreamDataError(CollectorError):
    """Raised when an upstream answered but the content is unusable."""
