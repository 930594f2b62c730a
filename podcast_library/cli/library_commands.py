"""CLI commands for the podcast library.

Provides commands for:
- Running a refresh cycle and library maintenance
- Resolving and parsing feeds for inspection
- Managing the configured feed sources
- Issuing admin tokens and running the web application
"""

import argparse
import asyncio
import logging
import sys

from ..argparse_shared import (
    add_dry_run_argument,
    add_env_file_argument,
    add_log_level_argument,
    add_url_argument,
    setup_logging,
)
from ..config import Config, FeedSource, PluginConfiguration
from ..exceptions import LibraryPathNotFoundError
from ..library.retention import cleanup_all_episodes, cleanup_old_episodes
from ..podcast.feed_parser import FeedParser
from ..podcast.feed_resolver import FeedResolver
from ..podcast.opml_parser import OPMLParser, import_opml_feeds
from ..scheduler import create_http_client, create_store, run_refresh_cycle

logger = logging.getLogger(__name__)


def _load_configuration(config: Config) -> PluginConfiguration:
    """Load the plugin configuration or exit with an error."""
    configuration = create_store(config).load()
    if configuration is None:
        print(f"Error: no valid plugin configuration at {config.PLUGIN_CONFIG_PATH}")
        sys.exit(1)
    return configuration


def _load_or_create_configuration(config: Config) -> PluginConfiguration:
    """Load the plugin configuration, starting from defaults if the file is missing."""
    store = create_store(config)
    if not store.path.exists():
        return PluginConfiguration()
    return _load_configuration(config)


def refresh_library(args, config: Config):
    """Run one synchronization cycle and print its statistics."""
    result = asyncio.run(run_refresh_cycle(config, create_store(config)))

    print(f"\nRefresh complete:")
    print(f"  Feeds processed: {result.feeds_processed}")
    print(f"  Feeds failed: {result.feeds_failed}")
    print(f"  Episodes processed: {result.episodes_processed}")
    print(f"  Episodes failed: {result.episodes_failed}")
    print(f"  Files deleted: {result.files_deleted}")

    if result.errors:
        print("\nErrors:")
        for error in result.errors:
            print(f"  - {error}")


def cleanup_library(args, config: Config):
    """
    Delete every episode file from the library.

    Podcast-level ``tvshow.nfo`` and ``folder.jpg`` are kept. Asks for
    confirmation unless ``--yes`` is given.
    """
    configuration = _load_configuration(config)

    if not args.yes:
        confirm = input(f"Delete all episode files under {configuration.library_path}? [y/N] ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return

    try:
        files_deleted = cleanup_all_episodes(configuration.library_path)
    except LibraryPathNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Deleted {files_deleted} files")


def prune_library(args, config: Config):
    """Delete episodes older than the retention window."""
    configuration = _load_configuration(config)
    days = args.days if args.days is not None else configuration.days_to_keep_episodes

    files_deleted = cleanup_old_episodes(configuration.library_path, days)
    print(f"Deleted {files_deleted} files older than {days} days")


async def _resolve(url: str, config: Config) -> str:
    async with create_http_client(config) as client:
        return await FeedResolver(client).resolve(url)


def resolve_url(args, config: Config):
    """Print the feed URL behind a podcast directory URL."""
    print(asyncio.run(_resolve(args.url, config)))


async def _parse(url: str, config: Config):
    async with create_http_client(config) as client:
        parser = FeedParser(client, resolver=FeedResolver(client))
        return await parser.parse(url)


def parse_feed(args, config: Config):
    """Print the normalized form of a feed."""
    feed = asyncio.run(_parse(args.url, config))
    if feed is None:
        print(f"Error: could not parse feed {args.url}")
        sys.exit(1)

    print(f"\n{feed.title}")
    print(f"  Author: {feed.author or '-'}")
    print(f"  Language: {feed.language}")
    print(f"  Image: {feed.image_url or '-'}")
    print(f"  Episodes: {len(feed.episodes)}")

    limit = args.limit if args.limit else len(feed.episodes)
    print(f"\n{'Published':<12}  {'Duration':<10}  {'Title'}")
    print("-" * 80)
    for episode in feed.episodes[:limit]:
        published = episode.published_at.strftime("%Y-%m-%d") if episode.published_at else "unknown"
        print(f"{published:<12}  {str(episode.duration):<10}  {episode.title[:56]}")


def add_feed(args, config: Config):
    """Add a feed source to the plugin configuration."""
    store = create_store(config)
    configuration = _load_or_create_configuration(config)

    if any(source.url == args.url for source in configuration.podcast_feeds):
        print(f"Feed already configured: {args.url}")
        return

    source = FeedSource(url=args.url, custom_name=args.name)
    configuration.podcast_feeds.append(source)
    store.save(configuration)

    print(f"\nAdded feed: {args.url}")
    print(f"  ID: {source.id}")
    if args.name:
        print(f"  Name: {args.name}")


def remove_feed(args, config: Config):
    """Remove a feed source, matched by URL or ID."""
    store = create_store(config)
    configuration = _load_configuration(config)

    remaining = [
        source for source in configuration.podcast_feeds
        if source.url != args.url and source.id != args.url
    ]
    if len(remaining) == len(configuration.podcast_feeds):
        print(f"Error: feed not found: {args.url}")
        sys.exit(1)

    configuration.podcast_feeds = remaining
    store.save(configuration)
    print(f"Removed feed: {args.url}")


def list_feeds(args, config: Config):
    """List configured feed sources."""
    configuration = _load_configuration(config)

    if not configuration.podcast_feeds:
        print("No feeds configured")
        return

    print(f"\n{'ID':<36}  {'Enabled':<8}  {'Name':<30}  {'URL'}")
    print("-" * 110)
    for source in configuration.podcast_feeds:
        enabled = "yes" if source.enabled else "no"
        name = (source.custom_name or "")[:30]
        print(f"{source.id:<36}  {enabled:<8}  {name:<30}  {source.url}")


def import_opml(args, config: Config):
    """Import feed sources from an OPML subscription export."""
    result = OPMLParser().parse_file(args.file)

    print(f"\nFound {len(result.feeds)} podcast feeds in OPML file")
    if result.title:
        print(f"OPML Title: {result.title}")

    if args.dry_run:
        print("\n[DRY RUN] Would import the following feeds:")
        for feed in result.feeds:
            print(f"  - {feed.title or 'Unknown'}: {feed.feed_url}")
        return

    store = create_store(config)
    configuration = _load_or_create_configuration(config)
    stats = import_opml_feeds(result, configuration, use_titles=args.use_titles)
    store.save(configuration)

    print(f"\nImport complete:")
    print(f"  Added: {stats['added']}")
    print(f"  Skipped: {stats['skipped']}")


def issue_token(args, config: Config):
    """Print a JWT accepted by the admin API."""
    from ..web.auth import create_access_token

    try:
        token = create_access_token({"sub": args.subject, "is_admin": True}, config)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(token)


def serve(args, config: Config):
    """Run the web application with uvicorn."""
    import uvicorn

    from ..web.app import create_app

    host = args.host or config.WEB_HOST
    port = args.port or config.WEB_PORT
    logger.info(f"Starting web application on {host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.LOG_LEVEL.lower())


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Podcast library CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_env_file_argument(parser)
    add_log_level_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # refresh command
    subparsers.add_parser(
        "refresh",
        help="Synchronize all enabled feeds into the library",
    )

    # cleanup command
    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Delete all episode files, keeping podcast metadata",
    )
    cleanup_parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )

    # prune command
    prune_parser = subparsers.add_parser(
        "prune",
        help="Delete episodes older than the retention window",
    )
    prune_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention window in days (default: from configuration)",
    )

    # resolve command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve a podcast directory URL to its feed URL",
    )
    add_url_argument(resolve_parser)

    # parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse a feed and print its episodes",
    )
    add_url_argument(parse_parser)
    parse_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of episodes to print",
    )

    # add command
    add_parser = subparsers.add_parser(
        "add",
        help="Add a feed source",
    )
    add_url_argument(add_parser)
    add_parser.add_argument(
        "--name",
        default=None,
        help="Custom podcast name (default: feed title)",
    )

    # remove command
    remove_parser = subparsers.add_parser(
        "remove",
        help="Remove a feed source by URL or ID",
    )
    remove_parser.add_argument("url", help="Feed URL or feed source ID")

    # list command
    subparsers.add_parser(
        "list",
        help="List configured feed sources",
    )

    # import-opml command
    import_parser = subparsers.add_parser(
        "import-opml",
        help="Import feed sources from an OPML file",
    )
    import_parser.add_argument("file", help="Path to OPML file")
    add_dry_run_argument(import_parser)
    import_parser.add_argument(
        "--use-titles",
        action="store_true",
        help="Use OPML titles as custom podcast names",
    )

    # token command
    token_parser = subparsers.add_parser(
        "token",
        help="Issue an admin API token",
    )
    token_parser.add_argument(
        "--subject",
        default="admin",
        help="Token subject (default: admin)",
    )

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the streaming proxy and admin API",
    )
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    return parser


def main():
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load configuration
    config = Config(env_file=args.env_file)
    setup_logging(args.log_level or config.LOG_LEVEL)

    # Route to appropriate command
    commands = {
        "refresh": refresh_library,
        "cleanup": cleanup_library,
        "prune": prune_library,
        "resolve": resolve_url,
        "parse": parse_feed,
        "add": add_feed,
        "remove": remove_feed,
        "list": list_feeds,
        "import-opml": import_opml,
        "token": issue_token,
        "serve": serve,
    }

    command_func = commands.get(args.command)
    if command_func:
        command_func(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
