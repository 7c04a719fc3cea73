"""
LinkFeed Ingestion Module
========================

Feed loading and parsing components.

This module handles:
- Cached HTTP loading of RSS/Atom documents
- Parsing into items with namespace-flattened fields and timestamps
- Harvesting canonical item links for the ingestion run
"""

from .feed_cache import FeedCache
from .feed_loader import FeedLoader
from .feed_parser import Feed, FeedItem, FeedNode, parse, parse_rss, parse_atom
from .feed_reader import FeedReader, HarvestedLink, ReadResult

__all__ = [
    'FeedCache',
    'FeedLoader',
    'Feed',
    'FeedItem',
    'FeedNode',
    'parse',
    'parse_rss',
    'parse_atom',
    'FeedReader',
    'HarvestedLink',
    'ReadResult',
]
