"""Lookup of the files the stream proxy needs inside a season directory."""

import glob
import logging
import os

from ..exceptions import (
    ArtworkNotFoundError,
    AudioUrlNotFoundError,
    EpisodeDirectoryNotFoundError,
)
from ..library.naming import AUDIO_URL_SUFFIX, FOLDER_IMAGE_NAME, THUMB_SUFFIX

logger = logging.getLogger(__name__)


def _first_match(directory: str, pattern: str):
    matches = sorted(glob.glob(os.path.join(glob.escape(directory), pattern)))
    return matches[0] if matches else None


def is_inside_library(path: str, library_path: str) -> bool:
    """True if ``path`` resolves to a location under the library root."""
    if not library_path:
        return False
    root = os.path.realpath(library_path)
    resolved = os.path.realpath(path)
    try:
        return os.path.commonpath([root, resolved]) == root
    except ValueError:
        return False


def check_episode_directory(season_dir: str, library_path: str) -> str:
    """Season directory decoded from a stream token, confined to the library.

    Raises:
        EpisodeDirectoryNotFoundError: If the directory is outside the
            library root or does not exist.
    """
    if not is_inside_library(season_dir, library_path) or not os.path.isdir(season_dir):
        raise EpisodeDirectoryNotFoundError(f"Episode directory not found: {season_dir}")
    return season_dir


def read_audio_url(season_dir: str) -> str:
    """Original audio URL stored next to the episode's pointer file.

    Raises:
        AudioUrlNotFoundError: If the directory holds no ``.audiourl`` file.
    """
    audio_url_file = _first_match(season_dir, f"*{AUDIO_URL_SUFFIX}")
    if audio_url_file is None:
        raise AudioUrlNotFoundError(f"No .audiourl file found in directory: {season_dir}")

    with open(audio_url_file, "r", encoding="utf-8") as f:
        return f.read().strip()


def find_artwork(season_dir: str) -> str:
    """Still image used as the video track.

    Tries an episode thumbnail, then any JPEG in the season directory, then
    the podcast's ``folder.jpg``.

    Raises:
        ArtworkNotFoundError: If none of these exist.
    """
    artwork = _first_match(season_dir, f"*{THUMB_SUFFIX}") or _first_match(season_dir, "*.jpg")
    if artwork is not None:
        return artwork

    folder_image = os.path.join(os.path.dirname(os.path.normpath(season_dir)), FOLDER_IMAGE_NAME)
    if os.path.isfile(folder_image):
        return folder_image

    raise ArtworkNotFoundError(f"No artwork found for episode directory: {season_dir}")
