"""
Exception hierarchy for the ingestion pipeline.

Every error that the HTTP boundary turns into a response derives from
:class:`FeedRelayError` and carries the status code it maps to. The status
codes follow the redelivery contract: 4xx means the caller must fix the
request, 5xx means the caller should redeliver later.
"""

from __future__ import annotations


class FeedRelayError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(FeedRelayError):
    """A required setting (e.g. the webhook shared secret) is missing."""

    status_code = 500


class AuthenticationError(FeedRelayError):
    """The request signature is missing or does not match."""

    status_code = 401


class ValidationError(FeedRelayError):
    """The payload is malformed; ``field`` names the offending field."""

    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class RateLimitError(FeedRelayError):
    """The origin exceeded its request budget for the current window."""

    status_code = 429

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after_seconds = retry_after_seconds


class ClassificationError(Exception):
    """The content classifier could not score an item."""


class DispatchError(Exception):
    """Posting to the chat platform failed.

    Attributes:
        retryable: True for transient failures (network, 5xx, timeouts),
            False when redelivering the same item can never succeed.
    """

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable
