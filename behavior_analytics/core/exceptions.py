"""
Application-level exceptions.

Every engine failure aborts the whole operation with no partial mutation.
Each error carries a stable numeric code and the HTTP status the API layer
maps it to.
"""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for engine errors."""

    code: int = 0
    http_status: int = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict[str, object]:
        return {"error": self.__class__.__name__, "code": self.code, "detail": self.message}


class Unauthorized(AnalyticsError):
    """Caller is not the trusted operator."""

    code = 100
    http_status = 403


class NotFound(AnalyticsError):
    """Operation references an unregistered account."""

    code = 101
    http_status = 404


class AlreadyExists(AnalyticsError):
    """Account is already registered."""

    code = 102
    http_status = 409


class InvalidAmount(AnalyticsError):
    """Transfer amount is zero."""

    code = 103
    http_status = 422


class ConfigError(ValueError):
    """Invalid configuration value (env or explicit)."""
