"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and sample documents for LinkFeed tests.
"""

import pytest
import tempfile
import os
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "linkfeed_tests"
os.environ["LINKFEED_FEEDS__CACHE_DIR"] = str(_TEST_DIR / "cache")
os.environ["LINKFEED_LOGGING__FILE_PATH"] = ""
os.environ["LINKFEED_DEBUG"] = "true"


# ============================================================================
# Sample documents
# ============================================================================

SAMPLE_RSS_FEED = b'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:atom="http://www.w3.org/2005/Atom">
    <channel>
        <title>Test RSS Feed</title>
        <link>http://example.com/</link>
        <description>Test feed for unit testing</description>
        <atom:link href="http://example.com/feed.xml" rel="self" type="application/rss+xml"/>
        <item>
            <title>First</title>
            <link>http://example.com/first?b=2&amp;a=1#comments</link>
            <description>First item</description>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
            <dc:date>2024-09-01T08:30:00Z</dc:date>
            <dc:creator>Alice</dc:creator>
            <media:thumbnail url="http://example.com/thumb1.jpg" width="75" height="50"/>
            <category>Tech</category>
            <category>Science</category>
        </item>
        <item>
            <title>Second</title>
            <link>/second/index.html</link>
            <pubDate>Wed, 04 Sep 2024 15:30:00 GMT</pubDate>
        </item>
        <item>
            <title>Third</title>
            <link>http://example.com/first?a=1&amp;b=2</link>
            <pubDate>sometime soon</pubDate>
        </item>
    </channel>
</rss>'''

SAMPLE_ATOM_FEED = b'''<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:media="http://search.yahoo.com/mrss/">
    <title>Test Atom Feed</title>
    <link rel="self" href="http://example.org/feed.atom"/>
    <link rel="alternate" href="http://example.org/"/>
    <id>urn:uuid:feed</id>
    <updated>2024-09-07T00:00:01Z</updated>
    <media:rating>nonadult</media:rating>
    <entry>
        <title>Atom Entry</title>
        <link href="http://example.org/2024/entry"/>
        <id>urn:uuid:entry-1</id>
        <updated>2024-09-05T12:00:00+02:00</updated>
        <summary>Summary text</summary>
    </entry>
    <entry>
        <title>Relative Entry</title>
        <link rel="alternate" href="posts/2"/>
        <id>urn:uuid:entry-2</id>
    </entry>
</feed>'''


# ============================================================================
# Fake HTTP transport
# ============================================================================


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, content: bytes = b"", status_code: int = 200):
        self.content = content
        self.status_code = status_code
        self.closed = False

    def close(self):
        self.closed = True


class CountingTransport:
    """Session-like transport that records every GET."""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else FakeResponse(SAMPLE_RSS_FEED)
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS_FEED


@pytest.fixture
def sample_atom():
    return SAMPLE_ATOM_FEED


@pytest.fixture
def make_transport():
    """Factory for counting transports."""
    return CountingTransport


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def feed_settings(tmp_path):
    """Feed settings with a private cache directory and a one hour TTL."""
    from linkfeed.config.settings import FeedSettings

    return FeedSettings(cache_dir=str(tmp_path / "cache"), cache_ttl_seconds=3600)


@pytest.fixture
def offline_resolver():
    """Resolver where www.example.com and example.com share an address."""
    from linkfeed.urls import StaticResolver

    return StaticResolver({
        "www.example.com": "93.184.216.34",
        "example.com": "93.184.216.34",
        "www.split.org": "10.0.0.1",
        "split.org": "10.0.0.2",
    })
