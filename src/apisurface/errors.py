"""Exceptions raised by apisurface."""

from __future__ import annotations


class ApiSurfaceError(Exception):
    """Base exception for fatal generation errors."""

    def __init__(self, message: str, location: str | None = None) -> None:
        self.location = location
        full_message = f"{message}" if not location else f"[{location}] {message}"
        super().__init__(full_message)


class ConfigError(ApiSurfaceError):
    """Raised when the configuration file is missing, unreadable or invalid."""


class SourceError(ApiSurfaceError):
    """Raised when a source unit cannot be read into the source model."""


class ExtractionError(ApiSurfaceError):
    """Raised for annotation shapes the extractors refuse to guess about."""

    def __init__(
        self,
        message: str,
        location: str | None = None,
        annotation: str | None = None,
    ) -> None:
        self.annotation = annotation
        if annotation:
            message = f"@{annotation}: {message}"
        super().__init__(message, location)
