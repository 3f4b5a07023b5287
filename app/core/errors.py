"""
Gateway error taxonomy.

Each error carries the HTTP status it maps to and an optional diagnostic
string that is serialized into the ``details`` field of the response body.
"""
from typing import Optional
from fastapi import status


class GatewayError(Exception):
    """Base class for every failure the gateway reports to callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigError(GatewayError):
    """A required secret or setting is missing (e.g. the provider key)."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InputError(GatewayError):
    """Malformed JSON, unknown mode, or missing prompt/image."""
    status_code = status.HTTP_400_BAD_REQUEST


class QuotaExceeded(GatewayError):
    """The caller has used up today's request allowance."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, message: str = "Daily limit reached", details: Optional[str] = None):
        super().__init__(message, details)


class StorageError(GatewayError):
    """
    Identity or quota store failure.

    Recovered by the rate limiter (fail open); it never reaches a response body.
    """


class ProviderError(GatewayError):
    """The generative-AI call failed or returned no usable text."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
