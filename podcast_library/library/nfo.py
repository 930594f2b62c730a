"""NFO metadata sidecars read by the media server's TV-show scanner."""

import xml.etree.ElementTree as ET
from typing import Optional

from ..podcast.feed_parser import NormalizedEpisode, NormalizedFeed

GENRE = "Podcast"
SEASON_NUMBER = 1


def _add(parent: ET.Element, tag: str, text) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = str(text)
    return element


def _serialize(root: ET.Element) -> bytes:
    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    declaration = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    return (declaration + body + "\n").encode("utf-8")


def render_show_nfo(feed: NormalizedFeed, podcast_name: Optional[str] = None) -> bytes:
    """Build ``tvshow.nfo`` for a podcast.

    Args:
        feed: Parsed feed supplying plot, studio and artwork.
        podcast_name: Display title; defaults to the feed title.
    """
    root = ET.Element("tvshow")
    _add(root, "title", podcast_name or feed.title)
    _add(root, "plot", feed.description)
    _add(root, "studio", feed.author)
    _add(root, "genre", GENRE)
    if feed.image_url:
        _add(root, "thumb", feed.image_url)
    return _serialize(root)


def render_episode_nfo(episode: NormalizedEpisode, episode_number: int) -> bytes:
    """Build the ``<base>.nfo`` sidecar for one episode.

    ``aired``/``year`` are omitted for undated episodes, ``runtime`` (whole
    minutes) for episodes without a duration, ``thumb`` without an image.
    """
    root = ET.Element("episodedetails")
    _add(root, "title", episode.title)
    _add(root, "plot", episode.description)
    _add(root, "season", SEASON_NUMBER)
    _add(root, "episode", episode_number)

    if episode.published_at is not None:
        _add(root, "aired", episode.published_at.strftime("%Y-%m-%d"))
        _add(root, "year", episode.published_at.year)

    if episode.duration.total_seconds() > 0:
        _add(root, "runtime", int(episode.duration.total_seconds() // 60))

    _add(root, "genre", GENRE)

    if episode.image_url:
        _add(root, "thumb", episode.image_url)

    return _serialize(root)
