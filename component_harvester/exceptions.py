"""Custom exceptions for component-harvester."""

from typing import Optional


class HarvesterError(Exception):
    """Base exception for all harvester operations."""


class ConfigurationError(HarvesterError):
    """Raised when configuration validation fails."""


class MalformedSpecError(HarvesterError):
    """Raised when a component coordinate cannot be parsed."""


class DownloadError(HarvesterError):
    """Raised when an HTTP transfer fails (non-2xx status or transport error)."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class DecompressionError(HarvesterError):
    """Raised when an archive is unsupported or corrupt."""


class IndexParseError(HarvesterError):
    """Raised when a cached index document cannot be parsed."""


# Failures the caller may retry. Everything else is either a skip or a bug.
TRANSIENT_ERRORS = (DownloadError, DecompressionError, IndexParseError)
