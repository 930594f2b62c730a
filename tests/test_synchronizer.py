"""Tests for the library synchronizer."""

import asyncio
import os
import xml.etree.ElementTree as ET
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest

from podcast_library.config import FeedSource, PluginConfiguration
from podcast_library.library.nfo import render_episode_nfo
from podcast_library.library.pointer import decode_stream_token
from podcast_library.library.synchronizer import (
    LibrarySynchronizer,
    SyncResult,
    podcast_directory_name,
    select_episodes,
)
from podcast_library.podcast.feed_parser import FeedParser, NormalizedEpisode, NormalizedFeed


FEED_URL = "https://example.com/feed.xml"
ARTWORK = b"\xff\xd8\xff artwork"
EP1 = "2024-01-01 - Episode 1- Introduction"
EP2 = "2024-01-08 - Episode 2- Deep Dive"


def make_handler(routes):
    """MockTransport handler serving a dict of URL -> body (or status code)."""

    def handler(request):
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="not found")
        if isinstance(body, int):
            return httpx.Response(body, text="error")
        if isinstance(body, bytes):
            return httpx.Response(200, content=body)
        return httpx.Response(200, text=body)

    return handler


def run_sync(configuration, routes, template="http://localhost:8080/stream/{token}"):
    async def run():
        transport = httpx.MockTransport(make_handler(routes))
        async with httpx.AsyncClient(transport=transport) as client:
            synchronizer = LibrarySynchronizer(
                FeedParser(client), client, stream_url_template=template
            )
            return await synchronizer.synchronize(configuration)

    return asyncio.run(run())


def snapshot(root):
    """Map of relative path -> mtime for every file under root."""
    files = {}
    for directory, _, filenames in os.walk(root):
        for filename in filenames:
            path = os.path.join(directory, filename)
            files[os.path.relpath(path, root)] = os.stat(path).st_mtime_ns
    return files


@pytest.fixture
def routes(sample_rss_feed):
    return {
        FEED_URL: sample_rss_feed,
        "https://example.com/artwork.jpg": ARTWORK,
        "https://example.com/ep2.jpg": b"episode two art",
    }


@pytest.fixture
def configuration(library_root):
    return PluginConfiguration(
        library_path=str(library_root),
        podcast_feeds=[FeedSource(url=FEED_URL)],
    )


class TestSynchronize:
    """End-to-end synchronization into a temporary library."""

    def test_materializes_library_tree(self, configuration, routes, library_root):
        result = run_sync(configuration, routes)

        podcast_dir = library_root / "Test Podcast"
        season_dir = podcast_dir / "Season 1"

        assert result.feeds_processed == 1
        assert result.episodes_processed == 2
        assert result.episodes_failed == 0
        assert (podcast_dir / "folder.jpg").read_bytes() == ARTWORK
        assert ET.parse(podcast_dir / "tvshow.nfo").getroot().findtext("title") == "Test Podcast"
        assert sorted(os.listdir(season_dir)) == sorted([
            f"{EP1}.strm", f"{EP1}.nfo", f"{EP1}.audiourl", f"{EP1}-thumb.jpg",
            f"{EP2}.strm", f"{EP2}.nfo", f"{EP2}.audiourl", f"{EP2}-thumb.jpg",
        ])
        assert (season_dir / f"{EP2}-thumb.jpg").read_bytes() == b"episode two art"

    def test_proxied_pointer_and_audio_url(self, configuration, routes, library_root):
        run_sync(configuration, routes, template="http://media:8096/stream/{token}")

        season_dir = library_root / "Test Podcast" / "Season 1"
        strm = (season_dir / f"{EP1}.strm").read_text()

        assert strm.startswith("http://media:8096/stream/")
        assert decode_stream_token(strm.rsplit("/", 1)[1]) == str(season_dir)
        assert (season_dir / f"{EP1}.audiourl").read_text() == "https://example.com/ep1.mp3"

    def test_episode_numbers_follow_newest_first(self, configuration, routes, library_root):
        run_sync(configuration, routes)

        season_dir = library_root / "Test Podcast" / "Season 1"
        newest = ET.parse(season_dir / f"{EP2}.nfo").getroot()
        oldest = ET.parse(season_dir / f"{EP1}.nfo").getroot()

        assert newest.findtext("episode") == "1"
        assert oldest.findtext("episode") == "2"
        assert oldest.findtext("runtime") == "62"

    def test_always_off_writes_direct_urls(self, configuration, routes, library_root):
        configuration.web_player_compatibility_mode = "alwaysOff"

        run_sync(configuration, routes)

        season_dir = library_root / "Test Podcast" / "Season 1"
        assert (season_dir / f"{EP1}.strm").read_text() == "https://example.com/ep1.mp3"
        assert not (season_dir / f"{EP1}.audiourl").exists()

    def test_second_run_changes_nothing(self, configuration, routes, library_root):
        run_sync(configuration, routes)
        before = snapshot(library_root)

        result = run_sync(configuration, routes)

        assert result.episodes_processed == 2
        assert snapshot(library_root) == before

    def test_existing_sidecar_is_not_overwritten(self, configuration, routes, library_root):
        run_sync(configuration, routes)
        show_nfo = library_root / "Test Podcast" / "tvshow.nfo"
        show_nfo.write_text("edited by hand")

        run_sync(configuration, routes)

        assert show_nfo.read_text() == "edited by hand"

    def test_thumbnails_disabled(self, configuration, routes, library_root):
        configuration.download_thumbnails = False

        run_sync(configuration, routes)

        podcast_dir = library_root / "Test Podcast"
        assert not (podcast_dir / "folder.jpg").exists()
        assert not (podcast_dir / "Season 1" / f"{EP1}-thumb.jpg").exists()

    def test_image_download_failure_is_not_fatal(self, configuration, sample_rss_feed, library_root):
        result = run_sync(configuration, {FEED_URL: sample_rss_feed})

        podcast_dir = library_root / "Test Podcast"
        assert result.episodes_processed == 2
        assert not (podcast_dir / "folder.jpg").exists()
        assert (podcast_dir / "Season 1" / f"{EP1}.strm").exists()

    def test_custom_name_used_for_directory(self, configuration, routes, library_root):
        configuration.podcast_feeds = [FeedSource(url=FEED_URL, custom_name="My Show: Live")]

        run_sync(configuration, routes)

        podcast_dir = library_root / "My Show- Live"
        assert podcast_dir.is_dir()
        assert ET.parse(podcast_dir / "tvshow.nfo").getroot().findtext("title") == "My Show: Live"

    def test_disabled_feeds_are_skipped(self, configuration, routes, library_root):
        configuration.podcast_feeds = [FeedSource(url=FEED_URL, enabled=False)]

        result = run_sync(configuration, routes)

        assert result.feeds_processed == 0
        assert os.listdir(library_root) == []


class TestEpisodeLimit:
    """Tests for the per-podcast episode limit."""

    def test_only_newest_episodes_are_kept(self, library_root, rss_feed_builder):
        configuration = PluginConfiguration(
            library_path=str(library_root),
            podcast_feeds=[FeedSource(url=FEED_URL)],
            max_episodes_per_podcast=50,
            download_thumbnails=False,
        )

        result = run_sync(configuration, {FEED_URL: rss_feed_builder(80)})

        season_dir = library_root / "Generated Podcast" / "Season 1"
        strm_files = [name for name in os.listdir(season_dir) if name.endswith(".strm")]
        assert result.episodes_processed == 50
        assert len(strm_files) == 50
        assert any(name.endswith(" - Episode 80.strm") for name in strm_files)
        assert any(name.endswith(" - Episode 31.strm") for name in strm_files)
        assert not any(name.endswith(" - Episode 30.strm") for name in strm_files)

    def test_select_episodes_sorts_undated_last(self):
        dated = NormalizedEpisode(title="dated", media_url="u1", guid="1", published_at=datetime(2024, 1, 1))
        newer = NormalizedEpisode(title="newer", media_url="u2", guid="2", published_at=datetime(2024, 2, 1))
        undated = NormalizedEpisode(title="undated", media_url="u3", guid="3")

        selected = select_episodes([undated, dated, newer], 2)

        assert [episode.title for episode in selected] == ["newer", "dated"]


class TestFailureIsolation:
    """Failures stay inside the unit that failed."""

    def test_failing_feed_does_not_stop_others(self, configuration, routes, library_root):
        configuration.podcast_feeds = [
            FeedSource(url="https://broken.example.com/feed.xml"),
            FeedSource(url=FEED_URL),
        ]
        routes["https://broken.example.com/feed.xml"] = 500

        result = run_sync(configuration, routes)

        assert result.feeds_failed == 1
        assert result.feeds_processed == 1
        assert (library_root / "Test Podcast" / "Season 1" / f"{EP1}.strm").exists()

    def test_failing_episode_keeps_numbering(self, configuration, routes, library_root):
        def flaky_render(episode, episode_number):
            if episode_number == 1:
                raise OSError("disk full")
            return render_episode_nfo(episode, episode_number)

        with patch(
            "podcast_library.library.synchronizer.render_episode_nfo", side_effect=flaky_render
        ):
            result = run_sync(configuration, routes)

        season_dir = library_root / "Test Podcast" / "Season 1"
        assert result.episodes_failed == 1
        assert result.episodes_processed == 1
        assert "disk full" in result.errors[0]
        assert not (season_dir / f"{EP2}.nfo").exists()
        assert ET.parse(season_dir / f"{EP1}.nfo").getroot().findtext("episode") == "2"

    def test_missing_configuration(self):
        result = run_sync(None, {})

        assert result.feeds_processed == 0
        assert result.errors == ["Plugin configuration is not available"]

    def test_missing_library_path(self):
        result = run_sync(PluginConfiguration(library_path=""), {})

        assert result.errors == ["Library path is not configured"]


class TestAutoCleanup:
    """Retention cleanup after a cycle."""

    def test_runs_when_enabled(self, configuration, routes, library_root):
        configuration.enable_auto_cleanup = True
        configuration.days_to_keep_episodes = 14

        with patch(
            "podcast_library.library.synchronizer.cleanup_old_episodes", return_value=3
        ) as mock_cleanup:
            result = run_sync(configuration, routes)

        mock_cleanup.assert_called_once_with(str(library_root), 14)
        assert result.files_deleted == 3

    def test_skipped_when_disabled(self, configuration, routes):
        with patch("podcast_library.library.synchronizer.cleanup_old_episodes") as mock_cleanup:
            run_sync(configuration, routes)

        mock_cleanup.assert_not_called()


class TestHelpers:
    """Tests for SyncResult and directory naming."""

    def test_sync_result_addition(self):
        total = SyncResult(feeds_processed=1, errors=["a"]) + SyncResult(
            feeds_failed=2, episodes_processed=5, errors=["b"]
        )

        assert total.feeds_processed == 1
        assert total.feeds_failed == 2
        assert total.episodes_processed == 5
        assert total.errors == ["a", "b"]

    @pytest.mark.parametrize("title", ["..", ".", "???", "   "])
    def test_unusable_directory_names_fall_back(self, title):
        feed = NormalizedFeed(source_url=FEED_URL, title=title)

        assert podcast_directory_name(FeedSource(url=FEED_URL), feed) == "Unknown Podcast"
