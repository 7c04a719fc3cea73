"""
LinkFeed - Feed Ingestion and Link Canonicalization
==================================================

Loads RSS/Atom feeds through a TTL file cache, parses them into items and
canonicalizes item links so the aggregation pipeline can deduplicate them.

Main Components:
- URLs: canonical form and relative link resolution
- Ingestion: cached loader, RSS/Atom parser, feed reader
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__author__ = "LinkFeed Development Team"
__description__ = "Feed ingestion and URL canonicalization"

from .config.settings import get_settings
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import LinkFeedError, FeedUnavailable, InvalidFeed
from .urls import normalize, absolutize

__all__ = [
    "get_settings",
    "configure_application_logging",
    "get_logger_for_component",
    "LinkFeedError",
    "FeedUnavailable",
    "InvalidFeed",
    "normalize",
    "absolutize",
]
