"""
URL Canonicalizer
=================

Turns raw links into a canonical string so the ingestion pipeline can
compare them for equality. Normalization follows RFC 3986 (case, percent
encoding, dot segments) plus a few cosmetic rules: default ports, default
index documents, ``www.`` aliases and sorted query parameters.

Canonicalization never raises. Malformed input is processed best-effort.
"""

import re
import string
from typing import NamedTuple, Optional
from urllib.parse import urlsplit

from .resolver import HostResolver, SocketResolver
from ..utils.logging import get_logger_for_component


DEFAULT_PORTS = {"http": 80, "https": 443}

# Order matters: longer names first where one is a prefix of another
DEFAULT_INDEXES = (
    "default.aspx",
    "default.asp",
    "index.html",
    "index.htm",
    "default.html",
    "default.htm",
    "index.php",
    "index.jsp",
)

UNRESERVED_CHARACTERS = frozenset(string.ascii_letters + string.digits + "-._~")

_PERCENT_TRIPLET = re.compile(r"%[0-9a-fA-F]{2}")
_LEADING_SLASHES = re.compile(r"^/{2,}")
_FIRST_SEGMENT = re.compile(r"/?[^/]*")
_ALPHABETIC_TLD = re.compile(r"[a-z]+\Z")
_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_AUTHORITY_PREFIX = re.compile(r"^\s*(?:[A-Za-z][A-Za-z0-9+.\-]*:)?//")
_LAST_SEGMENT = re.compile(r"/[^/]*$")
_REDUNDANT_SEGMENTS = (
    re.compile(r"/\.?/"),
    re.compile(r"/(?!\.\.)[^/]+/\.\./"),
)

logger = get_logger_for_component("urls")


class UrlComponents(NamedTuple):
    """Transient pieces of a URL used while normalizing."""

    scheme: str
    has_authority: bool
    host: str
    port: Optional[str]
    path: str
    query: str
    fragment: str


def split_url(raw_url: str) -> UrlComponents:
    """Split a URL into components without validating it.

    User info is dropped. Unparseable input comes back as a bare path.
    """
    try:
        parts = urlsplit(raw_url)
    except ValueError:
        return UrlComponents("", False, "", None, raw_url, "", "")

    host_port = parts.netloc.rpartition("@")[2]
    port = None
    if host_port.startswith("["):
        end = host_port.find("]")
        if end == -1:
            host = host_port
        else:
            host, rest = host_port[:end + 1], host_port[end + 1:]
            if rest.startswith(":"):
                port = rest[1:]
    else:
        host, sep, port_part = host_port.rpartition(":")
        if sep:
            port = port_part
        else:
            host = host_port

    return UrlComponents(
        scheme=parts.scheme,
        has_authority=bool(parts.netloc) or bool(_AUTHORITY_PREFIX.match(raw_url)),
        host=host,
        port=port or None,
        path=parts.path,
        query=parts.query,
        fragment=parts.fragment,
    )


def _uppercase_escape(match: "re.Match") -> str:
    return match.group(0).upper()


def _decode_unreserved(match: "re.Match") -> str:
    character = chr(int(match.group(0)[1:], 16))
    if character in UNRESERVED_CHARACTERS:
        return character
    return match.group(0)


def strip_default_index(path: str) -> str:
    """Drop trailing ``/index.html``-style segments, however many there are."""
    while True:
        head, sep, last = path.rpartition("/")
        if not (sep and last in DEFAULT_INDEXES):
            return path
        path = head


def remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments (RFC 3986 section 5.2.4)."""
    output = ""
    while path:
        if path.startswith("../"):
            path = path[3:]
        elif path.startswith("./"):
            path = path[2:]
        elif path.startswith("/./"):
            path = path[2:]
        elif path == "/.":
            path = "/"
        elif path.startswith("/../") or path == "/..":
            path = "/" + path[4:]
            output = output[:output.rfind("/")] if "/" in output else ""
        elif path in (".", ".."):
            path = ""
        else:
            segment = _FIRST_SEGMENT.match(path).group(0)
            output += segment
            path = path[len(segment):]
    return output


def normalize_path(path: str) -> str:
    """Apply the path rules of canonicalization in order."""
    path = _PERCENT_TRIPLET.sub(_uppercase_escape, path)
    path = _LEADING_SLASHES.sub("/", path)
    path = _PERCENT_TRIPLET.sub(_decode_unreserved, path)
    path = strip_default_index(path)
    # Dot removal can expose a new leading "//" (e.g. "/.//a")
    return _LEADING_SLASHES.sub("/", remove_dot_segments(path))


def sort_query(query: str) -> str:
    """Sort ``&``-joined query parameters lexicographically."""
    if "&" in query:
        return "&".join(sorted(query.split("&")))
    return query


class UrlCanonicalizer:
    """Canonical form and absolute resolution of links.

    Args:
        resolver: Host resolver used for the ``www.`` alias rule. Defaults
            to live DNS through ``SocketResolver``.
    """

    def __init__(self, resolver: Optional[HostResolver] = None):
        self.resolver = resolver or SocketResolver()

    def normalize(self, raw_url: str) -> str:
        """Return the canonical form of ``raw_url``.

        Normalizing an already canonical URL returns it unchanged.
        """
        parts = split_url(raw_url)
        scheme = parts.scheme.lower()

        port = parts.port
        if port and port.isdigit() and int(port) == DEFAULT_PORTS.get(scheme):
            port = None

        canonical = f"{scheme}:" if scheme else ""

        if parts.has_authority:
            host = self._strip_www_alias(parts.host.lower())
            canonical += f"//{host}"
            if port:
                canonical += f":{port}"

        if parts.path:
            canonical += normalize_path(parts.path)

        # The fragment never takes part in the canonical form
        query = sort_query(parts.query)
        if query:
            canonical += f"?{query}"

        return canonical

    def _strip_www_alias(self, host: str) -> str:
        # Repeated so that "www.www.example.com" settles in one pass
        while host.startswith("www.") and _ALPHABETIC_TLD.search(host):
            bare_host = host[4:]
            try:
                address = self.resolver.resolve(host)
                same_server = address is not None and address == self.resolver.resolve(bare_host)
            except Exception as e:
                logger.debug(f"Host lookup failed for {host}, keeping www alias: {e}")
                return host

            if not same_server:
                return host
            host = bare_host
        return host

    def absolutize(self, relative_url: str, base_url: str) -> str:
        """Resolve a link found on ``base_url`` into an absolute URL.

        Links that already carry a scheme or start with ``//`` are returned
        as they are. ``../`` segments that climb above the root of
        ``base_url`` are left in the result.
        """
        if relative_url.startswith("//") or _SCHEME_PREFIX.match(relative_url):
            return relative_url

        if not relative_url:
            return base_url

        if relative_url[0] in "#?":
            return base_url + relative_url

        base = split_url(base_url)
        authority = base.host + (f":{base.port}" if base.port else "")

        path = "" if relative_url.startswith("/") else _LAST_SEGMENT.sub("", base.path)
        absolute = f"{authority}{path}/{relative_url}"

        replaced = 1
        while replaced:
            replaced = 0
            for pattern in _REDUNDANT_SEGMENTS:
                absolute, count = pattern.subn("/", absolute)
                replaced += count

        prefix = f"{base.scheme}://" if base.scheme else "//"
        return prefix + absolute


_default_canonicalizer: Optional[UrlCanonicalizer] = None


def _get_default_canonicalizer() -> UrlCanonicalizer:
    global _default_canonicalizer
    if _default_canonicalizer is None:
        _default_canonicalizer = UrlCanonicalizer()
    return _default_canonicalizer


def normalize(raw_url: str, resolver: Optional[HostResolver] = None) -> str:
    """Canonicalize a URL, see ``UrlCanonicalizer.normalize``."""
    if resolver is not None:
        return UrlCanonicalizer(resolver).normalize(raw_url)
    return _get_default_canonicalizer().normalize(raw_url)


def absolutize(relative_url: str, base_url: str) -> str:
    """Resolve a relative link, see ``UrlCanonicalizer.absolutize``."""
    return _get_default_canonicalizer().absolutize(relative_url, base_url)
