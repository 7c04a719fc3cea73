"""
Feed Reader
===========

Entry point for the scheduled ingestion run: loads a feed, parses it and
turns every item link into a canonical URL ready for deduplication.
Storing the links is left to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from .feed_loader import FeedLoader
from .feed_parser import Feed, parse, parse_atom, parse_rss
from ..config.settings import LinkFeedSettings, get_settings
from ..urls import UrlCanonicalizer
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import LinkFeedError


@dataclass
class HarvestedLink:
    """A feed item link in canonical form."""

    url: str
    link: str
    title: Optional[str] = None
    timestamp: Optional[int] = None


@dataclass
class ReadResult:
    """Outcome of reading one feed during a batch run."""

    feed_url: str
    success: bool
    links: List[HarvestedLink] = field(default_factory=list)
    error: Optional[LinkFeedError] = None
    fetch_time: Optional[datetime] = None

    def __post_init__(self):
        if not self.fetch_time:
            self.fetch_time = datetime.now(timezone.utc)


class FeedReader:
    """Load, parse and harvest feeds."""

    def __init__(self, loader: FeedLoader, canonicalizer: Optional[UrlCanonicalizer] = None):
        """Initialize feed reader.

        Args:
            loader: Cached feed loader
            canonicalizer: URL canonicalizer (live DNS resolver by default)
        """
        self.loader = loader
        self.canonicalizer = canonicalizer or UrlCanonicalizer()
        self.logger = get_logger_for_component("feed_reader")

    @classmethod
    def from_settings(cls, settings: Optional[LinkFeedSettings] = None) -> "FeedReader":
        settings = settings or get_settings()
        return cls(FeedLoader(settings.feeds))

    def credentials_for(self, feed_url: str) -> Tuple[Optional[str], Optional[str]]:
        credentials = self.loader.config.credentials_for(feed_url)
        return credentials.user, credentials.password

    def _load(
        self,
        url: str,
        user: Optional[str],
        password: Optional[str],
        parse_fn: Callable[..., Feed],
    ) -> Feed:
        if user is None and password is None:
            user, password = self.credentials_for(url)
        data = self.loader.fetch(url, user, password)
        return parse_fn(data, feed_url=url)

    def read(self, url: str, user: Optional[str] = None, password: Optional[str] = None) -> Feed:
        """Load a feed and parse it as RSS or Atom, whichever it is.

        Credentials default to the ones configured for ``url``.

        Raises:
            FeedUnavailable: If the feed cannot be loaded
            InvalidFeed: If the document is not a feed
        """
        return self._load(url, user, password, parse)

    def read_rss(self, url: str, user: Optional[str] = None, password: Optional[str] = None) -> Feed:
        """Load a feed that must be RSS."""
        return self._load(url, user, password, parse_rss)

    def read_atom(self, url: str, user: Optional[str] = None, password: Optional[str] = None) -> Feed:
        """Load a feed that must be Atom."""
        return self._load(url, user, password, parse_atom)

    def harvest_links(self, feed: Feed, base_url: Optional[str] = None) -> List[HarvestedLink]:
        """Canonical links of all items, duplicates removed, order kept.

        Relative links are resolved against the feed's own site link, or
        ``base_url`` when the feed has none.
        """
        base = feed.link or base_url
        seen = set()
        links = []

        for item in feed:
            raw_link = item.link
            if not raw_link:
                continue

            absolute = self.canonicalizer.absolutize(raw_link, base) if base else raw_link
            canonical = self.canonicalizer.normalize(absolute)
            if canonical in seen:
                continue

            seen.add(canonical)
            links.append(
                HarvestedLink(
                    url=canonical,
                    link=raw_link,
                    title=item.title,
                    timestamp=item.timestamp,
                )
            )

        return links

    def collect(self, feed_urls: Iterable[str]) -> List[ReadResult]:
        """Read and harvest several feeds, one result per feed.

        A failing feed does not stop the run; its error is kept on the
        result so the caller can decide what to do with it.
        """
        results = []
        for feed_url in feed_urls:
            log = self.logger.bind(feed_url=feed_url)
            try:
                feed = self.read(feed_url)
                links = self.harvest_links(feed, base_url=feed_url)
            except LinkFeedError as e:
                log.warning(f"Skipping feed: {e}", extra={"error_code": e.error_code})
                results.append(ReadResult(feed_url=feed_url, success=False, error=e))
                continue

            log.info(f"Harvested {len(links)} links from {len(feed)} items")
            results.append(ReadResult(feed_url=feed_url, success=True, links=links))

        successful = sum(1 for r in results if r.success)
        self.logger.info(f"Feed collection complete: {successful}/{len(results)} feeds successful")
        return results
