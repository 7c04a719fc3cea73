"""
Feed Cache
==========

One file per feed request under a cache directory. The file name is derived
from a hash of (url, user, password) and the file's modification time is
the only freshness signal. Entries are never expired from disk: a stale
entry is still served when the live fetch fails.
"""

import hashlib
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, Union

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode


class FeedCache:
    """TTL file cache for raw feed documents."""

    def __init__(self, cache_dir: Union[str, Path], ttl_seconds: int):
        """Initialize feed cache.

        Args:
            cache_dir: Directory holding the cache files (created on demand)
            ttl_seconds: Maximum age of a fresh entry
        """
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger_for_component("feed_cache")

    @staticmethod
    def key_for(url: str, user: Optional[str] = None, password: Optional[str] = None) -> str:
        """Stable cache key for a feed request."""
        payload = json.dumps([url, user, password], ensure_ascii=False)
        return hashlib.md5(payload.encode("utf-8")).hexdigest()

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"feed.{key}.xml"

    def age(self, key: str) -> Optional[float]:
        """Seconds since the entry was last written, None when absent."""
        try:
            mtime = self.path_for(key).stat().st_mtime
        except FileNotFoundError:
            return None
        return time.time() - mtime

    def is_fresh(self, key: str) -> bool:
        age = self.age(key)
        return age is not None and age <= self.ttl_seconds

    def read_fresh(self, key: str) -> Optional[bytes]:
        """Return the entry if it is within TTL and non-empty."""
        if not self.is_fresh(key):
            return None
        return self.read_any(key)

    def read_any(self, key: str) -> Optional[bytes]:
        """Return the entry regardless of age, None when absent or empty."""
        path = self.path_for(key)
        try:
            with open(path, "rb") as cache_file:
                data = cache_file.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            self.logger.warning(f"Cannot read cache entry {path}: {e}")
            return None

        return data or None

    def write(self, key: str, data: bytes) -> bool:
        """Replace the entry with ``data``.

        The write goes through a temporary file so concurrent readers see
        either the old or the new document. Returns False when the entry
        could not be written.
        """
        path = self.path_for(key)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".feed.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as temp_file:
                    temp_file.write(data)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            self.logger.warning(
                f"Cannot write cache entry {path}: {e}",
                extra={"error_code": ErrorCode.CACHE_WRITE_FAILED.value},
            )
            return False

        self.logger.debug(f"Cached {len(data)} bytes at {path}")
        return True
