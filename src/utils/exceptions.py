"""
src/utils/exceptions.py — Exception hierarchy for Alpha.

    AlphaError
    ├── ConfigurationError     — a required credential / URL is not set
    ├── ModelInvocationError   — the model API call failed or returned nothing
    └── NotificationPayloadError (also ValueError) — bad owner-notification input
"""

from typing import Any


class AlphaError(Exception):
    """Base exception for all Alpha errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(AlphaError):
    """Raised at call time when a feature's configuration is missing.

    Configuration is never pre-validated at startup, so this surfaces from
    the first operation that needs the missing value.
    """

    def __init__(self, setting: str, message: str | None = None):
        self.setting = setting
        super().__init__(
            message or f"{setting.upper()} is not configured",
            details={"setting": setting},
        )


class ModelInvocationError(AlphaError):
    """The language model call failed (transport, non-2xx, or empty reply)."""


class NotificationPayloadError(AlphaError, ValueError):
    """Owner notification title/content failed validation."""
