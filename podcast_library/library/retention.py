"""Removal of episode artifacts from the library tree.

Two operations:
- Retention cleanup: delete episodes whose pointer file was created more
  than N days ago, then drop season directories left empty.
- Bulk cleanup (maintenance): delete every file in every season directory,
  keeping podcast-level metadata.
"""

import logging
import os
import time
from typing import Iterator, Optional

from ..exceptions import LibraryPathNotFoundError
from .naming import FOLDER_IMAGE_NAME, SHOW_NFO_NAME, STRM_SUFFIX, EpisodePaths

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

PROTECTED_FILENAMES = (SHOW_NFO_NAME, FOLDER_IMAGE_NAME)


def creation_time(path: str) -> float:
    """File creation time, falling back to ctime where birth time is unknown."""
    stat = os.stat(path)
    return getattr(stat, "st_birthtime", stat.st_ctime)


def _subdirectories(path: str) -> Iterator[str]:
    with os.scandir(path) as entries:
        directories = [entry.path for entry in entries if entry.is_dir()]
    yield from sorted(directories)


def _delete_if_exists(path: str) -> bool:
    if not os.path.isfile(path):
        return False
    os.remove(path)
    return True


def cleanup_old_episodes(
    library_path: str,
    days_to_keep: int,
    now: Optional[float] = None,
) -> int:
    """Delete episodes older than the retention window.

    Age is measured from the ``.strm`` file's creation time, not from the
    episode's publish date.

    Args:
        library_path: Library root containing podcast directories.
        days_to_keep: Retention window in days.
        now: Current time as a UNIX timestamp (defaults to ``time.time()``).

    Returns:
        Number of files deleted.
    """
    if not os.path.isdir(library_path):
        logger.warning(f"Library path does not exist, skipping cleanup: {library_path}")
        return 0

    logger.info(f"Starting cleanup of episodes older than {days_to_keep} days")
    cutoff = (now if now is not None else time.time()) - days_to_keep * SECONDS_PER_DAY
    deleted = 0

    for podcast_dir in _subdirectories(library_path):
        for season_dir in _subdirectories(podcast_dir):
            for filename in sorted(os.listdir(season_dir)):
                if not filename.endswith(STRM_SUFFIX):
                    continue

                strm_path = os.path.join(season_dir, filename)
                try:
                    if creation_time(strm_path) >= cutoff:
                        continue
                    for path in EpisodePaths.from_strm(strm_path).all():
                        if _delete_if_exists(path):
                            deleted += 1
                    logger.debug(f"Deleted old episode: {strm_path}")
                except OSError as e:
                    logger.error(f"Failed to delete old episode {strm_path}: {e}")

            if not os.listdir(season_dir):
                try:
                    os.rmdir(season_dir)
                    logger.debug(f"Deleted empty season directory: {season_dir}")
                except OSError as e:
                    logger.error(f"Failed to delete season directory {season_dir}: {e}")

    logger.info(f"Retention cleanup deleted {deleted} files")
    return deleted


def cleanup_all_episodes(library_path: str) -> int:
    """Delete every episode file while keeping podcast metadata.

    Every file inside a ``Season *`` directory is removed except the
    protected podcast-level names.

    Returns:
        Number of files deleted.

    Raises:
        LibraryPathNotFoundError: If the library root does not exist.
    """
    if not library_path or not os.path.isdir(library_path):
        raise LibraryPathNotFoundError(f"Library path not found: {library_path}")

    logger.info("Starting podcast cleanup")
    deleted = 0

    for podcast_dir in _subdirectories(library_path):
        for season_dir in _subdirectories(podcast_dir):
            if not os.path.basename(season_dir).startswith("Season "):
                continue

            with os.scandir(season_dir) as entries:
                files = [entry for entry in entries if entry.is_file()]

            for entry in files:
                if entry.name in PROTECTED_FILENAMES:
                    continue
                os.remove(entry.path)
                deleted += 1
                logger.debug(f"Deleted: {entry.path}")

    logger.info(f"Cleanup completed. Deleted {deleted} files")
    return deleted
