"""
Feed Parser
===========

Parses RSS (0.9x/1.0/2.0) and Atom (0.3/1.0) documents into a tree of
``FeedNode`` objects and a flat list of ``FeedItem``.

Namespace-qualified elements are renamed ``prefix.localname`` at every level
(``<media:thumbnail>`` becomes ``media.thumbnail``) so consumers can look
fields up by a plain string. Every item gets a ``timestamp`` (unix epoch
seconds) derived from its date fields.
"""

from dataclasses import dataclass, field
from datetime import timezone, timedelta
from typing import Dict, List, Optional, Union

from dateutil import parser as date_parser
from lxml import etree

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import InvalidFeed, ErrorCode


ATOM_NAMESPACES = (
    "http://www.w3.org/2005/Atom",
    "http://purl.org/atom/ns#",
)
RSS_NAMESPACES = (
    "http://purl.org/rss/1.0/",
    "http://my.netscape.com/rdf/simple/0.9/",
)
DUBLIN_CORE_NAMESPACE = "http://purl.org/dc/elements/1.1/"

# Common timezone abbreviations seen in RFC 822 dates
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UT": timezone.utc,
    "UTC": timezone.utc,
    "Z": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
    "CET": timezone(timedelta(hours=1)),
    "CEST": timezone(timedelta(hours=2)),
}

logger = get_logger_for_component("feed_parser")

NodeValue = Union[str, "FeedNode", List[Union[str, "FeedNode"]]]


class FeedNode:
    """An element of a parsed feed document.

    Children are looked up by (flattened) tag name. ``value`` is the typed
    accessor: it returns None when the child is missing, the text of a
    childless child, the child node itself when it has children, or an
    ordered list when several children share the name.
    """

    def __init__(
        self,
        tag: str,
        text: str = "",
        attributes: Optional[Dict[str, str]] = None,
        children: Optional[List["FeedNode"]] = None,
        namespace: Optional[str] = None,
        local_name: Optional[str] = None,
    ):
        self.tag = tag
        self.text = text
        self.attributes = attributes or {}
        self.children = children or []
        self.namespace = namespace
        self.local_name = local_name or tag

    def __repr__(self) -> str:
        return f"FeedNode({self.tag!r}, children={len(self.children)})"

    def __contains__(self, name: str) -> bool:
        return any(child.tag == name for child in self.children)

    def get(self, name: str) -> Optional["FeedNode"]:
        """First child named ``name``."""
        for child in self.children:
            if child.tag == name:
                return child
        return None

    def get_all(self, name: str) -> List["FeedNode"]:
        """All children named ``name`` in document order."""
        return [child for child in self.children if child.tag == name]

    def find_ns(self, namespace: str, local_name: str) -> Optional["FeedNode"]:
        """First child in ``namespace`` with ``local_name``, whatever its prefix."""
        for child in self.children:
            if child.namespace == namespace and child.local_name == local_name:
                return child
        return None

    def text_of(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Text of the first child named ``name``."""
        child = self.get(name)
        if child is None:
            return default
        return child.text

    def scalar(self) -> Union[str, "FeedNode"]:
        return self if self.children else self.text

    def value(self, name: str) -> Optional[NodeValue]:
        nodes = self.get_all(name)
        if not nodes:
            return None
        if len(nodes) == 1:
            return nodes[0].scalar()
        return [node.scalar() for node in nodes]

    def names(self) -> List[str]:
        """Distinct child tag names in document order."""
        seen = []
        for child in self.children:
            if child.tag not in seen:
                seen.append(child.tag)
        return seen

    def append(self, child: "FeedNode") -> None:
        self.children.append(child)

    def to_dict(self) -> Union[str, Dict[str, object]]:
        """Project the node to plain Python values.

        A childless node becomes its text. Otherwise each tag maps to the
        projection of its only child, or to a list when the tag repeats.
        Attributes are not part of the projection.
        """
        if not self.children:
            return self.text

        counts: Dict[str, int] = {}
        for child in self.children:
            counts[child.tag] = counts.get(child.tag, 0) + 1

        projection: Dict[str, object] = {}
        for child in self.children:
            if counts[child.tag] == 1:
                projection[child.tag] = child.to_dict()
            else:
                projection.setdefault(child.tag, []).append(child.to_dict())
        return projection


@dataclass
class FeedItem:
    """One RSS item or Atom entry."""

    node: FeedNode
    timestamp: Optional[int] = None

    @property
    def title(self) -> Optional[str]:
        return self.node.text_of("title")

    @property
    def link(self) -> Optional[str]:
        """RSS ``<link>`` text, or the Atom alternate link's href."""
        for link in self.node.get_all("link"):
            if link.text:
                return link.text
            href = link.attributes.get("href")
            if href and link.attributes.get("rel", "alternate") == "alternate":
                return href
        return None

    @property
    def description(self) -> Optional[str]:
        for name in ("description", "summary", "content"):
            text = self.node.text_of(name)
            if text:
                return text
        return None

    @property
    def guid(self) -> Optional[str]:
        return self.node.text_of("guid") or self.node.text_of("id")

    def get(self, name: str) -> Optional[FeedNode]:
        return self.node.get(name)

    def value(self, name: str) -> Optional[NodeValue]:
        return self.node.value(name)

    def to_dict(self) -> Dict[str, object]:
        projection = self.node.to_dict()
        return projection if isinstance(projection, dict) else {}


@dataclass
class Feed:
    """A parsed feed: the document-level node and its items."""

    format: str
    node: FeedNode
    items: List[FeedItem] = field(default_factory=list)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def title(self) -> Optional[str]:
        return self.node.text_of("title")

    @property
    def link(self) -> Optional[str]:
        """Site link of the feed (RSS channel link or Atom alternate link)."""
        return FeedItem(self.node).link

    def value(self, name: str) -> Optional[NodeValue]:
        return self.node.value(name)

    def to_dict(self) -> Union[str, Dict[str, object]]:
        return self.node.to_dict()


def parse_timestamp(raw: Optional[str]) -> Optional[int]:
    """Permissively parse a feed date into unix epoch seconds.

    Dates without a zone are taken as UTC. Returns None when the string
    cannot be parsed; callers must not treat that as epoch 0.
    """
    if not raw or not raw.strip():
        return None
    try:
        parsed = date_parser.parse(raw.strip(), tzinfos=TZINFOS)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        # dateutil accepts offsets of a day or more that datetime rejects here
        return int(parsed.timestamp())
    except (ValueError, OverflowError) as e:
        logger.warning(f"Unparseable feed date {raw!r}: {e}")
        return None


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        strip_cdata=True,
    )


def _qualified_name(qname: etree.QName, prefix: Optional[str], primary: tuple) -> str:
    if qname.namespace is None or qname.namespace in primary or not prefix:
        return qname.localname
    return f"{prefix}.{qname.localname}"


def _attribute_prefix(element: etree._Element, namespace: Optional[str]) -> Optional[str]:
    if namespace is None:
        return None
    for prefix, uri in element.nsmap.items():
        if uri == namespace and prefix:
            return prefix
    return None


def _build_node(element: etree._Element, primary: tuple) -> FeedNode:
    """Convert an lxml element (and its subtree) into a FeedNode."""
    qname = etree.QName(element)

    attributes = {}
    for key, attribute_value in element.attrib.items():
        attribute_qname = etree.QName(key)
        prefix = _attribute_prefix(element, attribute_qname.namespace)
        attributes[_qualified_name(attribute_qname, prefix, primary)] = attribute_value

    text_parts = [element.text or ""]
    children = []
    for child in element:
        if isinstance(child.tag, str):
            children.append(_build_node(child, primary))
        text_parts.append(child.tail or "")

    return FeedNode(
        tag=_qualified_name(qname, element.prefix, primary),
        text="".join(text_parts).strip(),
        attributes=attributes,
        children=children,
        namespace=qname.namespace,
        local_name=qname.localname,
    )


def _load_document(data: Union[bytes, str], feed_url: Optional[str]) -> etree._Element:
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        return etree.fromstring(data, _make_parser())
    except (etree.XMLSyntaxError, ValueError) as e:
        raise InvalidFeed(
            f"Feed is not well-formed XML: {e}",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        ) from e


def _find_channel(root: etree._Element) -> Optional[etree._Element]:
    for child in root:
        if isinstance(child.tag, str) and etree.QName(child).localname == "channel":
            return child
    return None


def _document_namespaces(root: etree._Element) -> List[str]:
    namespaces = [uri for uri in root.nsmap.values() if uri]
    own = etree.QName(root).namespace
    if own:
        namespaces.append(own)
    return namespaces


def _atom_namespace(root: etree._Element) -> Optional[str]:
    declared = _document_namespaces(root)
    for namespace in ATOM_NAMESPACES:
        if namespace in declared:
            return namespace
    return None


def _rss_timestamp(item: FeedNode) -> Optional[int]:
    # Dublin Core date first, then the RSS publish date
    candidates = [item.find_ns(DUBLIN_CORE_NAMESPACE, "date"), item.get("pubDate")]
    for candidate in candidates:
        if candidate is not None and candidate.text:
            timestamp = parse_timestamp(candidate.text)
            if timestamp is not None:
                return timestamp
    return None


def _atom_timestamp(entry: FeedNode) -> Optional[int]:
    # Atom 1.0 uses <updated>, Atom 0.3 <modified>
    for name in ("updated", "modified"):
        raw = entry.text_of(name)
        if raw:
            return parse_timestamp(raw)
    return None


def _stamp(node: FeedNode, timestamp: Optional[int]) -> FeedItem:
    if timestamp is not None:
        node.append(FeedNode("timestamp", str(timestamp)))
    return FeedItem(node=node, timestamp=timestamp)


def _rss_from_root(root: etree._Element, feed_url: Optional[str]) -> Feed:
    channel_element = _find_channel(root)
    if channel_element is None:
        raise InvalidFeed("Invalid feed: no RSS channel", feed_url=feed_url,
                          error_code=ErrorCode.FEED_UNKNOWN_FORMAT)

    channel = _build_node(channel_element, RSS_NAMESPACES)
    item_nodes = channel.get_all("item")
    if not item_nodes:
        # RSS 1.0 keeps items next to the channel rather than inside it
        item_nodes = [
            _build_node(child, RSS_NAMESPACES)
            for child in root
            if isinstance(child.tag, str) and etree.QName(child).localname == "item"
        ]

    items = [_stamp(node, _rss_timestamp(node)) for node in item_nodes]
    logger.debug(f"Parsed RSS feed with {len(items)} items", extra={"feed_url": feed_url})
    return Feed(format="rss", node=channel, items=items)


def _atom_from_root(root: etree._Element, feed_url: Optional[str]) -> Feed:
    namespace = _atom_namespace(root)
    if namespace is None:
        raise InvalidFeed("Invalid feed: not an Atom document", feed_url=feed_url,
                          error_code=ErrorCode.FEED_UNKNOWN_FORMAT)

    document = _build_node(root, (namespace,))
    items = [_stamp(node, _atom_timestamp(node)) for node in document.get_all("entry")]
    logger.debug(f"Parsed Atom feed with {len(items)} entries", extra={"feed_url": feed_url})
    return Feed(format="atom", node=document, items=items)


def parse(data: Union[bytes, str], feed_url: Optional[str] = None) -> Feed:
    """Parse a feed document, detecting RSS or Atom.

    Args:
        data: Raw feed bytes
        feed_url: Source URL, used for error context only

    Returns:
        Parsed feed

    Raises:
        InvalidFeed: If the document is not well-formed or neither format
    """
    root = _load_document(data, feed_url)
    if _find_channel(root) is not None:
        return _rss_from_root(root, feed_url)
    return _atom_from_root(root, feed_url)


def parse_rss(data: Union[bytes, str], feed_url: Optional[str] = None) -> Feed:
    """Parse a document that must be RSS."""
    return _rss_from_root(_load_document(data, feed_url), feed_url)


def parse_atom(data: Union[bytes, str], feed_url: Optional[str] = None) -> Feed:
    """Parse a document that must be Atom."""
    return _atom_from_root(_load_document(data, feed_url), feed_url)
