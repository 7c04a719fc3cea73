"""
Feed Loader
===========

Fetches raw feed documents over HTTP(S) with a file cache in front.

Loading order for a request:
- a fresh cache entry (within TTL) is returned without touching the network
- otherwise the feed is downloaded and written through to the cache
- if the download fails, the cache entry is served whatever its age
- ``FeedUnavailable`` is raised only when both are exhausted

There are no retries here; the scheduler simply tries again on its next run.
"""

from typing import Optional

import requests
from requests.auth import HTTPBasicAuth

from .feed_cache import FeedCache
from ..config.settings import FeedSettings
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import FeedUnavailable, ErrorCode


class FeedLoader:
    """Cached HTTP loader for feed documents."""

    ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"

    def __init__(self, config: FeedSettings, transport: Optional[requests.Session] = None):
        """Initialize feed loader.

        Args:
            config: Feed settings (cache directory, TTL, user agent, timeout)
            transport: Session-like object with a ``get`` method; a new
                ``requests.Session`` when omitted
        """
        self.config = config
        self.logger = get_logger_for_component("feed_loader")

        self.cache: Optional[FeedCache] = None
        if config.cache_dir:
            self.cache = FeedCache(config.cache_dir, config.cache_ttl_seconds)

        self.session = transport if transport is not None else self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "User-Agent": self.config.user_agent,
                "Accept": self.ACCEPT,
                "Accept-Encoding": "gzip, deflate",
            }
        )
        return session

    def fetch(self, url: str, user: Optional[str] = None, password: Optional[str] = None) -> bytes:
        """Load a feed document.

        Args:
            url: Feed URL
            user: Basic auth user name (optional)
            password: Basic auth password (optional)

        Returns:
            Raw feed bytes, fresh or cached

        Raises:
            FeedUnavailable: If the download failed and nothing is cached.
                The error code tells a timeout, a refused login and a
                malformed URL apart from other failures.
        """
        key = FeedCache.key_for(url, user, password)
        log = self.logger.bind(feed_url=url)

        if self.cache is not None:
            cached = self.cache.read_fresh(key)
            if cached:
                log.debug("Cache hit")
                return cached

        try:
            data = self._download(url, user, password)
        except FeedUnavailable as e:
            log.warning(f"Failed to fetch feed: {e}", extra={"error_code": e.error_code.value})
            if self.cache is not None:
                stale = self.cache.read_any(key)
                if stale:
                    log.warning("Serving stale cache entry", extra={"cache_age_seconds": self.cache.age(key)})
                    return stale
            raise

        if self.cache is not None:
            self.cache.write(key, data)
        return data

    def _download(self, url: str, user: Optional[str], password: Optional[str]) -> bytes:
        """Single GET returning the trimmed body.

        Raises:
            FeedUnavailable: On any network error, non-200 status or empty body
        """
        auth = None
        if user is not None or password is not None:
            auth = HTTPBasicAuth(user or "", password or "")

        try:
            with PerformanceLogger(self.logger, "feed download", feed_url=url):
                response = self.session.get(
                    url,
                    auth=auth,
                    headers={"User-Agent": self.config.user_agent, "Accept": self.ACCEPT},
                    timeout=self.config.request_timeout,
                    allow_redirects=self.config.follow_redirects,
                )
        except requests.Timeout as e:
            raise FeedUnavailable(
                f"Timed out loading feed {url}: {e}", feed_url=url, error_code=ErrorCode.FEED_FETCH_TIMEOUT
            ) from e
        except (requests.exceptions.MissingSchema, requests.exceptions.InvalidSchema,
                requests.exceptions.InvalidURL) as e:
            raise FeedUnavailable(
                f"Invalid feed URL {url}: {e}", feed_url=url,
                error_code=ErrorCode.FEED_INVALID_URL, recoverable=False,
            ) from e
        except requests.RequestException as e:
            raise FeedUnavailable(f"Cannot load feed {url}: {e}", feed_url=url) from e

        try:
            status_code = response.status_code
            data = response.content.strip() if status_code == 200 else b""
        finally:
            response.close()

        if status_code in (401, 403):
            raise FeedUnavailable(
                f"Access denied to feed {url}: HTTP {status_code}", feed_url=url,
                error_code=ErrorCode.FEED_ACCESS_DENIED, recoverable=False,
            )
        if status_code != 200:
            raise FeedUnavailable(f"Cannot load feed {url}: HTTP {status_code}", feed_url=url)
        if not data:
            raise FeedUnavailable(f"Empty response body from {url}", feed_url=url)

        self.logger.debug(f"Downloaded {len(data)} bytes from {url}")
        return data
