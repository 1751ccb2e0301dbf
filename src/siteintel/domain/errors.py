"""Domain-specific errors.

Routes map these to HTTP status codes; the crawl pipeline decides which ones are
fatal for a job and which ones only skip a page or an optional step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class CrawlerDomainError(Exception):
    """Base class for all domain errors."""


@dataclass(frozen=True)
class DomainErrorInfo:
    code: str
    message: str
    detail: Optional[str] = None


class InvalidInputError(CrawlerDomainError):
    """Raised when request/config validation fails."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="INVALID_INPUT", message=message, detail=detail)


class InvalidURLError(CrawlerDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="INVALID_URL", message=message, detail=detail)


class NetworkTimeoutError(CrawlerDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="NETWORK_TIMEOUT", message=message, detail=detail)


class NavigationError(CrawlerDomainError):
    """Navigation failed for a reason other than a timeout (DNS, reset, browser crash)."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="NAVIGATION_ERROR", message=message, detail=detail)


class AntiBotChallengeError(CrawlerDomainError):
    """An interstitial challenge page did not clear within the poll window."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="ANTI_BOT_CHALLENGE", message=message, detail=detail)


class ContentProcessingError(CrawlerDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="CONTENT_PROCESSING_ERROR", message=message, detail=detail)


class VisionServiceError(CrawlerDomainError):
    """The optional vision classifier rejected the request (rate limit, auth, 5xx)."""

    def __init__(self, message: str, detail: str | None = None, status: int | None = None):
        super().__init__(message)
        self.status = status
        self.info = DomainErrorInfo(code="VISION_SERVICE_ERROR", message=message, detail=detail)


class StorageError(CrawlerDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="STORAGE_ERROR", message=message, detail=detail)


class JobNotFoundError(CrawlerDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="JOB_NOT_FOUND", message=message, detail=detail)


class ConfigNotFoundError(CrawlerDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="CONFIG_NOT_FOUND", message=message, detail=detail)


# Failures that the navigation retry loop treats as transient.
TRANSIENT_NAVIGATION_ERRORS = (NetworkTimeoutError, NavigationError, AntiBotChallengeError)
