"""Periodic library refresh.

A refresh cycle loads the current plugin configuration and synchronizes
every enabled feed into the library. The web application runs it every
``REFRESH_INTERVAL_HOURS`` on an ``AsyncIOScheduler``; the CLI and the
admin API trigger it on demand.
"""

import logging
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config import Config, ConfigurationStore, JsonConfigurationStore
from .library.synchronizer import LibrarySynchronizer, SyncResult
from .podcast.feed_parser import FeedParser
from .podcast.feed_resolver import FeedResolver

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "podcast_library_refresh"


def create_store(config: Config) -> JsonConfigurationStore:
    """Configuration store described by the service settings."""
    return JsonConfigurationStore(
        config.PLUGIN_CONFIG_PATH,
        library_path_override=config.LIBRARY_PATH_OVERRIDE,
    )


def create_http_client(config: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """HTTP client shared by the resolver, parser and image downloads of one cycle."""
    return httpx.AsyncClient(
        timeout=config.HTTP_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": config.HTTP_USER_AGENT},
        transport=transport,
    )


async def run_refresh_cycle(
    config: Config,
    store: ConfigurationStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SyncResult:
    """Run one synchronization cycle with the current configuration.

    Args:
        config: Service settings.
        store: Source of the plugin configuration.
        transport: Optional httpx transport (tests pass a MockTransport).

    Returns:
        SyncResult: Statistics for the cycle.
    """
    configuration = store.load()

    async with create_http_client(config, transport) as client:
        parser = FeedParser(client, resolver=FeedResolver(client))
        synchronizer = LibrarySynchronizer(
            feed_parser=parser,
            http_client=client,
            stream_url_template=config.STREAM_URL_TEMPLATE,
            max_concurrent_feeds=config.MAX_CONCURRENT_FEEDS,
        )
        return await synchronizer.synchronize(configuration)


async def scheduled_refresh(config: Config, store: ConfigurationStore) -> None:
    """Scheduler job: run a cycle and log, never raise."""
    try:
        result = await run_refresh_cycle(config, store)
    except Exception:
        logger.exception("Scheduled podcast library refresh failed")
        return

    logger.info(
        f"Scheduled refresh complete: {result.feeds_processed} feeds, "
        f"{result.episodes_processed} episodes, {result.files_deleted} files deleted"
    )


def create_scheduler(config: Config, store: ConfigurationStore) -> AsyncIOScheduler:
    """Build the refresh scheduler (not started).

    Adds an interval job every ``REFRESH_INTERVAL_HOURS`` and, when
    ``REFRESH_ON_STARTUP`` is set, a one-off job that runs immediately.
    """
    scheduler = AsyncIOScheduler()

    if config.REFRESH_ON_STARTUP:
        scheduler.add_job(
            scheduled_refresh, 'date', args=[config, store], misfire_grace_time=600
        )

    scheduler.add_job(
        scheduled_refresh,
        'interval',
        hours=config.REFRESH_INTERVAL_HOURS,
        args=[config, store],
        id=REFRESH_JOB_ID,
        misfire_grace_time=600,
    )

    logger.info(f"Podcast library refresh scheduled every {config.REFRESH_INTERVAL_HOURS} hours")
    return scheduler
