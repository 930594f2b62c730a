"""Library synchronization: mirror podcast feeds into the library tree.

For each enabled feed source the synchronizer parses the feed, writes the
podcast-level metadata and artwork, and materializes pointer, metadata and
thumbnail files for the most recent episodes. Every file is write-once, so
running a cycle again only adds what is missing.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import httpx

from ..config import FeedSource, PluginConfiguration
from ..podcast.feed_parser import FeedParser, NormalizedEpisode, NormalizedFeed
from .naming import (
    FOLDER_IMAGE_NAME,
    SEASON_DIR_NAME,
    SHOW_NFO_NAME,
    EpisodePaths,
    episode_base_name,
    sanitize_filename,
    should_write,
)
from .nfo import render_episode_nfo, render_show_nfo
from .pointer import DEFAULT_STREAM_URL_TEMPLATE, strm_content, uses_stream_proxy
from .retention import cleanup_old_episodes

logger = logging.getLogger(__name__)

FALLBACK_PODCAST_DIR = "Unknown Podcast"


@dataclass
class SyncResult:
    """Result of a synchronization run.

    Attributes:
        feeds_processed: Feed sources mirrored successfully.
        feeds_failed: Feed sources that could not be parsed or written.
        episodes_processed: Episodes whose files were materialized.
        episodes_failed: Episodes that raised while being materialized.
        files_deleted: Files removed by retention cleanup.
        errors: Error messages for failed units.
    """

    feeds_processed: int = 0
    feeds_failed: int = 0
    episodes_processed: int = 0
    episodes_failed: int = 0
    files_deleted: int = 0
    errors: list[str] = field(default_factory=list)

    def __add__(self, other: "SyncResult") -> "SyncResult":
        """Combine two SyncResults."""
        return SyncResult(
            feeds_processed=self.feeds_processed + other.feeds_processed,
            feeds_failed=self.feeds_failed + other.feeds_failed,
            episodes_processed=self.episodes_processed + other.episodes_processed,
            episodes_failed=self.episodes_failed + other.episodes_failed,
            files_deleted=self.files_deleted + other.files_deleted,
            errors=self.errors + other.errors,
        )


def select_episodes(
    episodes: List[NormalizedEpisode], max_episodes: int
) -> List[NormalizedEpisode]:
    """Most recent episodes first, at most ``max_episodes``.

    Undated episodes sort as the oldest.
    """
    ordered = sorted(
        episodes,
        key=lambda episode: episode.published_at or datetime.min,
        reverse=True,
    )
    return ordered[: max(max_episodes, 0)]


def podcast_directory_name(source: FeedSource, feed: NormalizedFeed) -> str:
    name = sanitize_filename(source.custom_name or feed.title)
    if name in ("", ".", ".."):
        return FALLBACK_PODCAST_DIR
    return name


def _write_text(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def _write_bytes(path: str, content: bytes) -> None:
    with open(path, "wb") as f:
        f.write(content)


class LibrarySynchronizer:
    """Synchronizes configured feeds into the library tree.

    Example:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            synchronizer = LibrarySynchronizer(FeedParser(client), client)
            result = await synchronizer.synchronize(configuration)
            print(f"Episodes: {result.episodes_processed}")
    """

    def __init__(
        self,
        feed_parser: FeedParser,
        http_client: httpx.AsyncClient,
        stream_url_template: str = DEFAULT_STREAM_URL_TEMPLATE,
        max_concurrent_feeds: int = 4,
    ):
        """Initialize the synchronizer.

        Args:
            feed_parser: Parser used to fetch and normalize feeds.
            http_client: HTTP client used for artwork downloads.
            stream_url_template: URL template for proxied pointer files.
            max_concurrent_feeds: Feed sources processed at the same time.
        """
        self.feed_parser = feed_parser
        self.http_client = http_client
        self.stream_url_template = stream_url_template
        self.max_concurrent_feeds = max_concurrent_feeds

    async def synchronize(
        self, configuration: Optional[PluginConfiguration]
    ) -> SyncResult:
        """Run one refresh cycle over every enabled feed source.

        Feed sources are independent: a failure in one never affects the
        others. Retention cleanup runs once after all sources, if enabled.
        """
        if configuration is None:
            logger.warning("Plugin configuration is not available")
            return SyncResult(errors=["Plugin configuration is not available"])

        library_path = configuration.library_path
        if not library_path:
            logger.warning("Library path is not configured")
            return SyncResult(errors=["Library path is not configured"])

        os.makedirs(library_path, exist_ok=True)

        sources = configuration.enabled_feeds()
        logger.info(f"Starting podcast library refresh. Processing {len(sources)} feeds")

        semaphore = asyncio.Semaphore(self.max_concurrent_feeds)

        async def sync_with_semaphore(source: FeedSource) -> SyncResult:
            async with semaphore:
                return await self._sync_source(source, configuration)

        results = await asyncio.gather(*(sync_with_semaphore(s) for s in sources))

        result = SyncResult()
        for source_result in results:
            result = result + source_result

        if configuration.enable_auto_cleanup:
            result.files_deleted += cleanup_old_episodes(
                library_path, configuration.days_to_keep_episodes
            )

        logger.info(
            f"Podcast library refresh completed: "
            f"{result.feeds_processed} feeds, {result.feeds_failed} failed, "
            f"{result.episodes_processed} episodes, {result.episodes_failed} failed"
        )
        return result

    async def _sync_source(
        self, source: FeedSource, configuration: PluginConfiguration
    ) -> SyncResult:
        try:
            return await self.synchronize_feed(source, configuration)
        except Exception as e:
            error_msg = f"Error processing podcast feed {source.url}: {e}"
            logger.exception(error_msg)
            return SyncResult(feeds_failed=1, errors=[error_msg])

    async def synchronize_feed(
        self, source: FeedSource, configuration: PluginConfiguration
    ) -> SyncResult:
        """Mirror a single feed source into the library."""
        logger.info(f"Processing podcast feed: {source.url}")

        feed = await self.feed_parser.parse(source.url)
        if feed is None:
            logger.warning(f"Failed to parse feed: {source.url}")
            return SyncResult(feeds_failed=1, errors=[f"Failed to parse feed: {source.url}"])

        podcast_name = source.custom_name or feed.title
        podcast_dir = os.path.join(
            configuration.library_path, podcast_directory_name(source, feed)
        )
        os.makedirs(podcast_dir, exist_ok=True)

        if configuration.download_thumbnails and feed.image_url:
            await self.download_image(
                feed.image_url, os.path.join(podcast_dir, FOLDER_IMAGE_NAME)
            )

        show_nfo_path = os.path.join(podcast_dir, SHOW_NFO_NAME)
        if should_write(show_nfo_path):
            _write_bytes(show_nfo_path, render_show_nfo(feed, podcast_name))
            logger.debug(f"Created podcast NFO: {show_nfo_path}")

        episodes = select_episodes(feed.episodes, configuration.max_episodes_per_podcast)
        logger.info(f"Creating files for {len(episodes)} episodes of {podcast_name}")

        result = SyncResult(feeds_processed=1)
        for episode_number, episode in enumerate(episodes, start=1):
            try:
                await self.materialize_episode(podcast_dir, episode, episode_number, configuration)
                result.episodes_processed += 1
            except Exception as e:
                error_msg = f"Error creating files for episode {episode.title}: {e}"
                logger.exception(error_msg)
                result.episodes_failed += 1
                result.errors.append(error_msg)

        logger.info(f"Finished processing all episodes for {podcast_name}")
        return result

    async def materialize_episode(
        self,
        podcast_dir: str,
        episode: NormalizedEpisode,
        episode_number: int,
        configuration: PluginConfiguration,
    ) -> EpisodePaths:
        """Write any missing files for one episode.

        Args:
            podcast_dir: Podcast directory inside the library.
            episode: Episode to materialize.
            episode_number: Position in the selection, starting at 1.
            configuration: Current plugin configuration.

        Returns:
            Paths of the episode's artifacts.
        """
        season_dir = os.path.join(podcast_dir, SEASON_DIR_NAME)
        os.makedirs(season_dir, exist_ok=True)

        paths = EpisodePaths(
            season_dir=season_dir,
            base_name=episode_base_name(episode.title, episode.published_at),
        )

        if should_write(paths.strm):
            proxied = uses_stream_proxy(episode.media_url, configuration)
            if proxied and should_write(paths.audio_url):
                _write_text(paths.audio_url, episode.media_url)

            content = strm_content(
                episode.media_url, season_dir, configuration, self.stream_url_template
            )
            _write_text(paths.strm, content)
            logger.debug(
                f"Created .strm file: {paths.strm} "
                f"(proxied: {proxied}, mode: {configuration.compatibility_mode})"
            )

        if should_write(paths.nfo):
            _write_bytes(paths.nfo, render_episode_nfo(episode, episode_number))
            logger.debug(f"Created .nfo file: {paths.nfo}")

        if configuration.download_thumbnails and episode.image_url:
            await self.download_image(episode.image_url, paths.thumb)

        return paths

    async def download_image(self, image_url: str, save_path: str) -> bool:
        """Download an image unless the target already exists.

        Returns:
            True if a file was written. Failures are logged, never raised.
        """
        if not should_write(save_path):
            return False

        try:
            response = await self.http_client.get(image_url)
            response.raise_for_status()
            _write_bytes(save_path, response.content)
        except Exception as e:
            logger.warning(f"Failed to download image from {image_url}: {e}")
            return False

        logger.debug(f"Downloaded image: {save_path}")
        return True
