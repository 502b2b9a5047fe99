"""RSS and Atom parsing into canonical Article records."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Iterator, List, Optional, Union

from dateutil.parser import parse as parse_date_string
from lxml import etree

from .errors import ParseError, UnrecognizedFormatError
from .interfaces import Article, FeedFormat

# Common timezone abbreviations seen in RFC 822 pubDates
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
    "UTC": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
}

UNTITLED = "Untitled"


@dataclass
class ParsedFeed:
    """Everything extracted from one feed document."""
    format: FeedFormat
    title: str
    articles: List[Article] = field(default_factory=list)
    raw_payload: str = ""


def parse_xml(payload: Union[str, bytes], url: Optional[str] = None) -> etree._Element:
    """Parse a feed payload strictly; malformed or empty input raises ParseError.

    Bytes are handed to lxml undecoded so the XML declaration picks the
    encoding. Text has already been decoded, so its declaration is ignored.
    """
    if not payload or not payload.strip():
        raise ParseError("Empty document", url=url)

    if isinstance(payload, bytes):
        data = payload.lstrip(b" \t\r\n")
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
    else:
        data = payload.lstrip("\ufeff \t\r\n").encode("utf-8")
        parser = etree.XMLParser(encoding="utf-8", resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Invalid XML: {e}", url=url) from e


def decode_payload(payload: Union[str, bytes], document) -> str:
    """Text form of a payload, decoded with the document's own encoding."""
    if isinstance(payload, str):
        return payload
    encoding = document.getroottree().docinfo.encoding or "utf-8"
    try:
        return payload.decode(encoding, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a feed timestamp to an aware UTC datetime, or None."""
    if not value or not value.strip():
        return None

    try:
        dt = parse_date_string(value.strip(), tzinfos=TZINFOS)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        # Offsets of 24h or more parse but cannot be converted
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


# Element helpers. Names are matched on local name so that prefixed and
# namespaced vocabularies (dc:, media:, itunes:, RSS 1.0) are all accepted.

def _local(el) -> str:
    tag = el.tag
    if not isinstance(tag, str):  # comments, processing instructions
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(el, name: str) -> Iterator[etree._Element]:
    for child in el:
        if _local(child) == name:
            yield child


def _child(el, name: str) -> Optional[etree._Element]:
    return next(_children(el, name), None)


def _find_all(el, name: str) -> Iterator[etree._Element]:
    """Matching elements in document order, including el itself."""
    for node in el.iter():
        if _local(node) == name:
            yield node


def _text(el) -> str:
    if el is None:
        return ""
    return "".join(el.itertext()).strip()


def _markup(el) -> str:
    """Inner content of el with any child markup serialized verbatim."""
    if el is None:
        return ""
    parts = [el.text or ""]
    for child in el:
        parts.append(etree.tostring(child, encoding="unicode"))
    return "".join(parts)


def _is_image_type(el) -> bool:
    return (el.get("type") or "").strip().lower().startswith("image/")


def _media_image(el, require_image_medium: bool) -> Optional[str]:
    """First media content/thumbnail url under el, in document order."""
    for node in el.iter():
        name = _local(node)
        if name not in ("content", "thumbnail") or not node.get("url"):
            continue
        if name == "content" and require_image_medium:
            medium = node.get("medium")
            if medium is not None and medium != "image":
                continue
        return node.get("url")
    return None


class FeedParser:
    """Turns one feed vocabulary into canonical Articles."""

    format = FeedFormat.UNKNOWN

    def entries(self, document) -> Iterator[etree._Element]:
        raise NotImplementedError

    def parse_entry(self, element, source_id: str, source_url: str) -> Article:
        raise NotImplementedError

    def feed_title(self, document) -> str:
        raise NotImplementedError

    def parse(self, document, source_id: str, source_url: str) -> List[Article]:
        """Parse every entry of the document."""
        return [
            self.parse_entry(element, source_id, source_url)
            for element in self.entries(document)
        ]


class RSSParser(FeedParser):
    """RSS 2.0 (and RSS 1.0/RDF) items."""

    format = FeedFormat.RSS

    def entries(self, document):
        return _find_all(document, "item")

    def feed_title(self, document) -> str:
        channel = next(_find_all(document, "channel"), None)
        if channel is None:
            return ""
        return _text(_child(channel, "title"))

    def parse_entry(self, item, source_id: str, source_url: str) -> Article:
        # atom:link self-references share the local name but carry no text
        link = next((t for t in map(_text, _children(item, "link")) if t), "")

        return Article(
            id=_text(_child(item, "guid")) or link or str(uuid.uuid4()),
            source_id=source_id,
            source_url=source_url,
            title=_text(_child(item, "title")) or UNTITLED,
            link=link,
            description=_markup(_child(item, "description")),
            published_at=parse_date(
                _text(_child(item, "pubDate")) or _text(_child(item, "date"))
            ),
            author=_text(_child(item, "author")) or _text(_child(item, "creator")),
            image=self._image(item),
        )

    def _image(self, item) -> Optional[str]:
        for enclosure in _children(item, "enclosure"):
            if _is_image_type(enclosure) and enclosure.get("url"):
                return enclosure.get("url")

        image = _media_image(item, require_image_medium=False)
        if image:
            return image

        # itunes:image
        for node in _find_all(item, "image"):
            if node.get("href"):
                return node.get("href")
        return None


class AtomParser(FeedParser):
    """Atom 1.0 entries."""

    format = FeedFormat.ATOM

    def entries(self, document):
        return _find_all(document, "entry")

    def feed_title(self, document) -> str:
        feed = next(_find_all(document, "feed"), None)
        if feed is None:
            return ""
        return _text(_child(feed, "title"))

    def parse_entry(self, entry, source_id: str, source_url: str) -> Article:
        link = self._link(entry)

        description = _markup(_child(entry, "summary"))
        if not description:
            content = next((c for c in _children(entry, "content") if c.get("url") is None), None)
            description = _markup(content)

        author = _child(entry, "author")

        return Article(
            id=_text(_child(entry, "id")) or link or str(uuid.uuid4()),
            source_id=source_id,
            source_url=source_url,
            title=_text(_child(entry, "title")) or UNTITLED,
            link=link,
            description=description,
            published_at=parse_date(
                _text(_child(entry, "published")) or _text(_child(entry, "updated"))
            ),
            author=_text(_child(author, "name")) if author is not None else "",
            image=self._image(entry),
        )

    def _link(self, entry) -> str:
        links = list(_children(entry, "link"))
        # A link without rel is an alternate link (RFC 4287 4.2.7.2)
        for link in links:
            if link.get("rel", "alternate") == "alternate" and link.get("href"):
                return link.get("href")
        if links:
            return links[0].get("href") or ""
        return ""

    def _image(self, entry) -> Optional[str]:
        for link in _children(entry, "link"):
            if link.get("rel") == "enclosure" and _is_image_type(link) and link.get("href"):
                return link.get("href")
        return _media_image(entry, require_image_medium=True)


_PARSERS = {
    FeedFormat.RSS: RSSParser(),
    FeedFormat.ATOM: AtomParser(),
}


def detect_format(document) -> FeedFormat:
    """Classify a parsed document as RSS, Atom or Unknown."""
    root_name = _local(document)
    if root_name == "rss":
        return FeedFormat.RSS
    for channel in _find_all(document, "channel"):
        if _child(channel, "item") is not None:
            return FeedFormat.RSS
    # RSS 1.0 keeps items beside the channel rather than inside it
    if root_name == "RDF" and _child(document, "channel") is not None:
        return FeedFormat.RSS

    if root_name == "feed" or next(_find_all(document, "feed"), None) is not None:
        return FeedFormat.ATOM
    return FeedFormat.UNKNOWN


def get_parser(feed_format: FeedFormat, url: Optional[str] = None) -> FeedParser:
    """Parser for a detected format; Unknown raises UnrecognizedFormatError."""
    try:
        return _PARSERS[feed_format]
    except KeyError:
        raise UnrecognizedFormatError("Not a valid RSS or Atom feed", url=url) from None


def parse(document, feed_format: FeedFormat, source_id: str, source_url: str) -> List[Article]:
    """Produce one Article per item (RSS) or entry (Atom)."""
    return get_parser(feed_format, url=source_url).parse(document, source_id, source_url)


def get_feed_title(document, feed_format: FeedFormat) -> str:
    """Feed-level title, or an empty string."""
    feed_parser = _PARSERS.get(feed_format)
    if feed_parser is None:
        return ""
    return feed_parser.feed_title(document)


def parse_feed(payload: Union[str, bytes], source_id: str, source_url: str) -> ParsedFeed:
    """Parse a raw payload end to end.

    Raises ParseError or UnrecognizedFormatError before producing any
    Article, so a source is either parsed completely or not at all.
    """
    document = parse_xml(payload, url=source_url)
    feed_format = detect_format(document)
    feed_parser = get_parser(feed_format, url=source_url)
    return ParsedFeed(
        format=feed_format,
        title=feed_parser.feed_title(document),
        articles=feed_parser.parse(document, source_id, source_url),
        raw_payload=decode_payload(payload, document),
    )
