"""
LinkFeed Custom Exceptions
=========================

Error hierarchy for LinkFeed. Each error carries a code, context for the
logs, a short message fit for end users, and whether a later scheduled run
may succeed where this one failed.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_PARSE_ERROR = "C002"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_UNAVAILABLE = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_UNKNOWN_FORMAT = "F006"

    # Cache errors (K001-K099)
    CACHE_WRITE_FAILED = "K001"


# Codes for conditions that tend to clear up by themselves
RETRYABLE_CODES = frozenset({
    ErrorCode.FEED_UNAVAILABLE,
    ErrorCode.FEED_FETCH_TIMEOUT,
    ErrorCode.CACHE_WRITE_FAILED,
})


class LinkFeedError(Exception):
    """Base exception for all LinkFeed errors.

    Subclasses set ``default_code``, ``default_recoverable`` and
    ``default_user_message``; any of them can be overridden per instance.
    """

    default_code: Optional[ErrorCode] = None
    default_recoverable = False
    default_user_message: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        """Initialize LinkFeed error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether a later run may succeed
        """
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.user_message = user_message or self.default_user_message or message
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.error_code.value}] {message}" if self.error_code else message


class ConfigurationError(LinkFeedError):
    """Settings could not be loaded or are unusable."""

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        kwargs.setdefault("user_message", f"Configuration error: {message}")
        super().__init__(message, **kwargs)
        if config_key:
            self.context["config_key"] = config_key


class FeedError(LinkFeedError):
    """Base for errors tied to one feed URL."""

    default_code = ErrorCode.FEED_UNAVAILABLE
    default_recoverable = True

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.feed_url = feed_url
        if feed_url:
            self.context["feed_url"] = feed_url


class FeedUnavailable(FeedError):
    """Neither a live fetch nor the cache could produce the feed."""

    default_user_message = "Cannot load feed"


class InvalidFeed(FeedError):
    """Feed bytes are not well-formed XML or not RSS/Atom."""

    default_code = ErrorCode.FEED_PARSE_ERROR
    default_recoverable = False
    default_user_message = "Invalid feed"


def is_retryable_error(exception: LinkFeedError) -> bool:
    """Whether the calling pipeline should try again on its next run.

    LinkFeed never retries by itself.
    """
    return exception.recoverable and exception.error_code in RETRYABLE_CODES


def get_user_friendly_message(exception: Exception) -> str:
    """Message suitable for CLI output for any exception."""
    if isinstance(exception, LinkFeedError):
        return exception.user_message
    return "An unexpected error occurred. Please try again later."
