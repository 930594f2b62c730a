"""Podcast feed handling.

Provides functionality for:
- Resolving podcast directory URLs to feed URLs
- Parsing RSS/Atom feeds into a normalized model
- Importing OPML subscription lists
"""

from .feed_parser import (
    FeedFormat,
    FeedParser,
    NormalizedEpisode,
    NormalizedFeed,
    classify_feed,
    parse_duration,
)
from .feed_resolver import FeedResolver
from .opml_parser import OPMLParser, import_opml_feeds

__all__ = [
    "FeedFormat",
    "FeedParser",
    "FeedResolver",
    "NormalizedEpisode",
    "NormalizedFeed",
    "OPMLParser",
    "classify_feed",
    "import_opml_feeds",
    "parse_duration",
]
