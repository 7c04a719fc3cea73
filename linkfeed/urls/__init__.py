"""
LinkFeed URL Module
==================

URL canonicalization for link deduplication and relative link resolution.
"""

from .canonicalizer import UrlCanonicalizer, normalize, absolutize
from .resolver import HostResolver, SocketResolver, StaticResolver

__all__ = [
    'UrlCanonicalizer',
    'normalize',
    'absolutize',
    'HostResolver',
    'SocketResolver',
    'StaticResolver',
]
