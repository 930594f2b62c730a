"""RSS/Atom feed parser producing the normalized feed model.

Uses the feedparser library to read the document, classifies it as RSS or
Atom, and maps each format onto the same ``NormalizedFeed`` /
``NormalizedEpisode`` types consumed by the library synchronizer.
"""

import logging
import uuid
import xml.sax
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

import feedparser
import httpx
from dateutil import parser as date_parser

from .feed_resolver import FeedResolver

logger = logging.getLogger(__name__)

UNKNOWN_PODCAST_TITLE = "Unknown Podcast"
UNTITLED_EPISODE_TITLE = "Untitled Episode"
DEFAULT_MEDIA_TYPE = "audio/mpeg"
DEFAULT_LANGUAGE = "en"


@dataclass
class NormalizedEpisode:
    """An episode with a playable media reference."""

    title: str
    media_url: str
    guid: str
    description: str = ""
    published_at: Optional[datetime] = None
    media_type: str = DEFAULT_MEDIA_TYPE
    media_length: int = 0
    duration: timedelta = field(default_factory=timedelta)
    image_url: str = ""


@dataclass
class NormalizedFeed:
    """A podcast feed reduced to the fields the library needs."""

    source_url: str
    title: str
    description: str = ""
    author: str = ""
    image_url: str = ""
    language: str = DEFAULT_LANGUAGE
    episodes: List[NormalizedEpisode] = field(default_factory=list)


class FeedFormat(Enum):
    """Syndication formats understood by the parser."""

    RSS = "rss"
    ATOM = "atom"


# feedparser reports RDF documents as rss090/rss10; their root is not <rss>
_RDF_VERSIONS = ("rss090", "rss10")


def classify_feed(parsed: feedparser.FeedParserDict) -> Optional[FeedFormat]:
    """Determine the wire format of a parsed document.

    Returns:
        FeedFormat for <rss> and <feed> roots, None for anything else.
    """
    version = parsed.get("version") or ""
    if version.startswith("atom"):
        return FeedFormat.ATOM
    if version.startswith("rss") and version not in _RDF_VERSIONS:
        return FeedFormat.RSS
    return None


def parse_duration(value: Optional[str]) -> timedelta:
    """Parse an iTunes duration value.

    Bare integers are seconds ("45" is 45 seconds, not 45 minutes). Otherwise
    ``H:MM:SS`` or ``MM:SS`` clock values are accepted. Anything else is zero.
    """
    if not value:
        return timedelta(0)

    value_str = str(value).strip()

    if value_str.isdecimal():
        return timedelta(seconds=int(value_str))

    parts = value_str.split(":")
    if len(parts) not in (2, 3) or not all(part.isdecimal() for part in parts):
        return timedelta(0)

    numbers = [int(part) for part in parts]
    if len(numbers) == 2:
        minutes, seconds = numbers
        return timedelta(minutes=minutes, seconds=seconds)

    hours, minutes, seconds = numbers
    return timedelta(hours=hours, minutes=minutes, seconds=seconds)


def parse_length(value) -> int:
    """Parse an enclosure length, 0 when absent or not numeric."""
    try:
        length = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(length, 0)


def parse_published(entry: feedparser.FeedParserDict) -> Optional[datetime]:
    """Extract the publish date of an entry as a naive UTC datetime.

    Falls back to permissive parsing of the raw string when feedparser could
    not parse it. Unparseable dates yield None (sorted as oldest).
    """
    if entry.get("published_parsed"):
        try:
            return datetime(*entry.published_parsed[:6])
        except (TypeError, ValueError):
            pass

    raw = entry.get("published")
    if not raw:
        return None

    try:
        published = date_parser.parse(raw)
    except (ValueError, OverflowError):
        return None

    if published.tzinfo is not None:
        published = published.astimezone(timezone.utc).replace(tzinfo=None)
    return published


class FeedParser:
    """Parser for podcast RSS/Atom feeds.

    Fetches the document (after resolving podcast directory URLs), parses it
    with feedparser and normalizes it. Failures are logged and reported as
    None so one broken feed never stops the others.

    Example:
        async with httpx.AsyncClient() as client:
            parser = FeedParser(client)
            feed = await parser.parse("https://example.com/feed.xml")
            if feed:
                print(f"{feed.title}: {len(feed.episodes)} episodes")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        resolver: Optional[FeedResolver] = None,
    ):
        self.http_client = http_client
        self.resolver = resolver or FeedResolver(http_client)
        self._extractors: Dict[FeedFormat, Callable] = {
            FeedFormat.RSS: self._parse_rss,
            FeedFormat.ATOM: self._parse_atom,
        }

    async def parse(self, feed_url: str) -> Optional[NormalizedFeed]:
        """Fetch and parse a podcast feed.

        Args:
            feed_url: Feed URL or podcast directory URL.

        Returns:
            NormalizedFeed, or None if the feed could not be fetched or parsed.
        """
        try:
            resolved_url = await self.resolver.resolve(feed_url)
            logger.info(f"Fetching podcast feed from {resolved_url}")

            response = await self.http_client.get(resolved_url)
            response.raise_for_status()

            return self.parse_string(response.content, feed_url)
        except Exception as e:
            logger.error(f"Error parsing podcast feed from {feed_url}: {e}")
            return None

    def parse_string(self, content, feed_url: str = "") -> Optional[NormalizedFeed]:
        """Parse feed content already in memory.

        Args:
            content: RSS/Atom document as str or bytes.
            feed_url: Original URL of the feed (for reference).

        Returns:
            NormalizedFeed, or None for malformed XML and unknown formats.
        """
        parsed = feedparser.parse(content)

        if parsed.bozo and parsed.get("bozo_exception"):
            if isinstance(parsed.bozo_exception, xml.sax.SAXException):
                logger.error(f"Malformed feed XML from {feed_url}: {parsed.bozo_exception}")
                return None
            logger.warning(f"Feed parsing warning for {feed_url}: {parsed.bozo_exception}")

        feed_format = classify_feed(parsed)
        if feed_format is None:
            logger.warning(f"Unknown feed format for {feed_url}")
            return None

        return self._extractors[feed_format](parsed, feed_url)

    def _parse_rss(
        self, parsed: feedparser.FeedParserDict, feed_url: str
    ) -> Optional[NormalizedFeed]:
        channel = parsed.feed
        if not channel and not parsed.entries:
            logger.warning(f"RSS feed has no channel: {feed_url}")
            return None

        feed = NormalizedFeed(
            source_url=feed_url,
            title=channel.get("title") or UNKNOWN_PODCAST_TITLE,
            description=channel.get("description") or "",
            author=channel.get("author") or "",
            image_url=self._image_href(channel),
            language=channel.get("language") or DEFAULT_LANGUAGE,
        )

        for item in parsed.entries:
            enclosure = self._first_enclosure(item)
            if enclosure is None:
                logger.debug(f"Skipping item without enclosure: {item.get('title')}")
                continue

            feed.episodes.append(
                NormalizedEpisode(
                    title=item.get("title") or UNTITLED_EPISODE_TITLE,
                    description=item.get("description") or "",
                    published_at=parse_published(item),
                    media_url=enclosure["href"],
                    media_type=enclosure.get("type") or DEFAULT_MEDIA_TYPE,
                    media_length=parse_length(enclosure.get("length")),
                    duration=parse_duration(item.get("itunes_duration")),
                    image_url=self._image_href(item) or feed.image_url,
                    guid=item.get("id") or str(uuid.uuid4()),
                )
            )

        logger.info(f"Parsed RSS feed: {feed.title} with {len(feed.episodes)} episodes")
        return feed

    def _parse_atom(
        self, parsed: feedparser.FeedParserDict, feed_url: str
    ) -> Optional[NormalizedFeed]:
        root = parsed.feed
        author_detail = root.get("author_detail") or {}

        feed = NormalizedFeed(
            source_url=feed_url,
            title=root.get("title") or UNKNOWN_PODCAST_TITLE,
            description=root.get("subtitle") or "",
            author=author_detail.get("name") or root.get("author") or "",
            image_url=self._link_href(root, "icon"),
            language=DEFAULT_LANGUAGE,
        )

        for entry in parsed.entries:
            enclosure = self._first_enclosure(entry)
            if enclosure is None:
                logger.debug(f"Skipping entry without enclosure link: {entry.get('title')}")
                continue

            feed.episodes.append(
                NormalizedEpisode(
                    title=entry.get("title") or UNTITLED_EPISODE_TITLE,
                    description=entry.get("summary") or "",
                    published_at=parse_published(entry),
                    media_url=enclosure["href"],
                    media_type=enclosure.get("type") or DEFAULT_MEDIA_TYPE,
                    media_length=parse_length(enclosure.get("length")),
                    image_url=feed.image_url,
                    guid=entry.get("id") or str(uuid.uuid4()),
                )
            )

        logger.info(f"Parsed Atom feed: {feed.title} with {len(feed.episodes)} episodes")
        return feed

    def _first_enclosure(self, entry: feedparser.FeedParserDict) -> Optional[dict]:
        """Return the first enclosure carrying a media URL, if any."""
        for link in entry.get("links", []):
            if link.get("rel") == "enclosure" and link.get("href"):
                return link
        return None

    def _image_href(self, node: feedparser.FeedParserDict) -> str:
        image = node.get("image")
        if isinstance(image, dict):
            return image.get("href") or ""
        return ""

    def _link_href(self, node: feedparser.FeedParserDict, rel: str) -> str:
        for link in node.get("links", []):
            if link.get("rel") == rel and link.get("href"):
                return link["href"]
        return ""
