"""
Host Resolvers
==============

Address lookup used by URL canonicalization to decide whether a ``www.``
host and its bare counterpart are the same server. Kept behind a small
protocol so canonicalization can run offline and deterministically.
"""

import socket
from functools import lru_cache
from typing import Dict, Optional, Protocol


class HostResolver(Protocol):
    """Anything that maps a host name to an address string."""

    def resolve(self, host: str) -> Optional[str]:
        """Return an address for ``host``, or None when it does not resolve."""
        ...


@lru_cache(maxsize=2048)
def _gethostbyname(host: str) -> Optional[str]:
    try:
        return socket.gethostbyname(host)
    except (OSError, UnicodeError):
        return None


class SocketResolver:
    """Live IPv4 lookup through the system resolver, memoized per process."""

    def resolve(self, host: str) -> Optional[str]:
        return _gethostbyname(host)


class StaticResolver:
    """Mapping-backed resolver for tests and offline runs.

    Hosts missing from the mapping do not resolve.
    """

    def __init__(self, addresses: Optional[Dict[str, str]] = None):
        self.addresses = {k.lower(): v for k, v in (addresses or {}).items()}
        self.lookups = 0

    def resolve(self, host: str) -> Optional[str]:
        self.lookups += 1
        return self.addresses.get(host.lower())
