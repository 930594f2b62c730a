"""File and directory naming for the library tree.

Layout written by the synchronizer::

    <root>/<podcast>/tvshow.nfo
    <root>/<podcast>/folder.jpg
    <root>/<podcast>/Season 1/<base>.strm
    <root>/<podcast>/Season 1/<base>.nfo
    <root>/<podcast>/Season 1/<base>-thumb.jpg
    <root>/<podcast>/Season 1/<base>.audiourl
"""

import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

SEASON_DIR_NAME = "Season 1"
SHOW_NFO_NAME = "tvshow.nfo"
FOLDER_IMAGE_NAME = "folder.jpg"

STRM_SUFFIX = ".strm"
NFO_SUFFIX = ".nfo"
AUDIO_URL_SUFFIX = ".audiourl"
THUMB_SUFFIX = "-thumb.jpg"

UNKNOWN_DATE = "unknown"
MAX_NAME_LENGTH = 200

VIDEO_EXTENSIONS = (".mp4", ".webm", ".mkv", ".avi", ".mov", ".m4v", ".mpg", ".mpeg")

# Control characters are not portable in file names
_ILLEGAL_CHARS = re.compile(r"[\x00-\x1f]")

_REPLACEMENTS = (
    (":", "-"),
    ("/", "-"),
    ("\\", "-"),
    ("?", ""),
    ("*", ""),
    ('"', "'"),
    ("<", ""),
    (">", ""),
    ("|", "-"),
)


def sanitize_filename(name: str) -> str:
    """Make a string safe to use as a single path component.

    Idempotent, never longer than 200 characters, and never contains a
    path separator.
    """
    sanitized = _ILLEGAL_CHARS.sub("_", name)
    for old, new in _REPLACEMENTS:
        sanitized = sanitized.replace(old, new)

    if len(sanitized) > MAX_NAME_LENGTH:
        sanitized = sanitized[:MAX_NAME_LENGTH]

    return sanitized.strip()


def is_video_url(url: str) -> bool:
    """True if the media URL looks like a video file."""
    lowered = url.lower()
    return any(ext in lowered for ext in VIDEO_EXTENSIONS)


def date_prefix(published_at: Optional[datetime]) -> str:
    if published_at is None:
        return UNKNOWN_DATE
    return published_at.strftime("%Y-%m-%d")


def episode_base_name(title: str, published_at: Optional[datetime]) -> str:
    """Base file name shared by all artifacts of one episode."""
    return f"{date_prefix(published_at)} - {sanitize_filename(title)}"


def should_write(path: str) -> bool:
    """Library files are write-once: only write paths that do not exist yet."""
    return not os.path.exists(path)


@dataclass(frozen=True)
class EpisodePaths:
    """Paths of every artifact belonging to one episode."""

    season_dir: str
    base_name: str

    def _path(self, suffix: str) -> str:
        return os.path.join(self.season_dir, f"{self.base_name}{suffix}")

    @property
    def strm(self) -> str:
        return self._path(STRM_SUFFIX)

    @property
    def nfo(self) -> str:
        return self._path(NFO_SUFFIX)

    @property
    def audio_url(self) -> str:
        return self._path(AUDIO_URL_SUFFIX)

    @property
    def thumb(self) -> str:
        return self._path(THUMB_SUFFIX)

    def all(self) -> tuple:
        return (self.strm, self.nfo, self.audio_url, self.thumb)

    @classmethod
    def from_strm(cls, strm_path: str) -> "EpisodePaths":
        season_dir, filename = os.path.split(strm_path)
        return cls(season_dir=season_dir, base_name=filename[: -len(STRM_SUFFIX)])
