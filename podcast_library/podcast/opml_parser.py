"""OPML import of podcast subscriptions into the feed source list.

Podcast apps (Apple Podcasts, Overcast, Pocket Casts, AntennaPod) export
subscriptions as OPML; each ``outline`` carrying a feed URL becomes a
``FeedSource``. Folder outlines are walked recursively.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..config import FeedSource, PluginConfiguration

logger = logging.getLogger(__name__)


@dataclass
class OPMLFeed:
    """A subscription found in an OPML document."""

    feed_url: str
    title: Optional[str] = None


@dataclass
class OPMLImportResult:
    """Feeds found in an OPML document."""

    feeds: List[OPMLFeed] = field(default_factory=list)
    skipped_no_url: int = 0
    title: Optional[str] = None


class OPMLParser:
    """Parser for OPML subscription lists.

    Example:
        parser = OPMLParser()
        result = parser.parse_file("subscriptions.opml")
        for feed in result.feeds:
            print(f"{feed.title}: {feed.feed_url}")
    """

    # Feed URL attribute names differ between exporting apps
    URL_ATTRIBUTES = ("xmlUrl", "xmlurl", "url", "feedUrl", "feedurl")
    TITLE_ATTRIBUTES = ("title", "text", "name")

    def parse_file(self, file_path: Union[str, Path]) -> OPMLImportResult:
        """
        Parse an OPML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ET.ParseError: If the file is not well-formed XML.
            ValueError: If the document is not OPML or has no body.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"OPML file not found: {file_path}")

        logger.info(f"Parsing OPML file: {file_path}")
        return self.parse_string(file_path.read_text(encoding="utf-8"))

    def parse_string(self, content: str) -> OPMLImportResult:
        """Parse OPML content; see ``parse_file`` for errors."""
        root = ET.fromstring(content)
        if root.tag.lower() != "opml":
            raise ValueError(f"Invalid OPML: root element is '{root.tag}', expected 'opml'")

        # An empty Element is falsy, so compare with None
        body = root.find("body")
        if body is None:
            raise ValueError("Invalid OPML: missing body element")

        result = OPMLImportResult()
        head = root.find("head")
        if head is not None:
            title = head.findtext("title")
            result.title = title.strip() if title else None

        self._collect(body, result)

        logger.info(
            f"Parsed OPML: {len(result.feeds)} feeds found, "
            f"{result.skipped_no_url} outlines skipped (no URL)"
        )
        return result

    def _collect(self, parent: ET.Element, result: OPMLImportResult) -> None:
        for outline in parent.findall("outline"):
            feed_url = self._get_attribute(outline, self.URL_ATTRIBUTES)
            if feed_url:
                feed = self._to_feed(outline, feed_url)
                if feed:
                    result.feeds.append(feed)
            elif outline.find("outline") is not None:
                self._collect(outline, result)
            else:
                result.skipped_no_url += 1

    def _to_feed(self, outline: ET.Element, feed_url: str) -> Optional[OPMLFeed]:
        if not feed_url.startswith(("http://", "https://", "feed://")):
            logger.warning(f"Skipping invalid feed URL: {feed_url}")
            return None

        if feed_url.startswith("feed://"):
            feed_url = "https://" + feed_url[len("feed://"):]

        return OPMLFeed(
            feed_url=feed_url,
            title=self._get_attribute(outline, self.TITLE_ATTRIBUTES),
        )

    @staticmethod
    def _get_attribute(element: ET.Element, names) -> Optional[str]:
        for name in names:
            value = element.get(name)
            if value and value.strip():
                return value.strip()
        return None


def import_opml_feeds(
    result: OPMLImportResult,
    configuration: PluginConfiguration,
    use_titles: bool = False,
) -> dict:
    """
    Add OPML subscriptions to the configuration's feed sources.

    Feeds whose URL is already configured are skipped.

    Args:
        result: Parsed OPML document.
        configuration: Configuration to update in place.
        use_titles: Use the OPML titles as custom podcast names.

    Returns:
        dict: ``added``, ``skipped`` and ``total`` counts.
    """
    existing = {source.url for source in configuration.podcast_feeds}
    stats = {"added": 0, "skipped": 0, "total": len(result.feeds)}

    for feed in result.feeds:
        if feed.feed_url in existing:
            logger.debug(f"Skipping existing feed: {feed.feed_url}")
            stats["skipped"] += 1
            continue

        configuration.podcast_feeds.append(
            FeedSource(
                url=feed.feed_url,
                custom_name=feed.title if use_titles else None,
            )
        )
        existing.add(feed.feed_url)
        stats["added"] += 1

    logger.info(f"OPML import complete: {stats['added']} added, {stats['skipped']} skipped")
    return stats
