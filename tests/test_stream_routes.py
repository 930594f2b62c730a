"""Tests for the streaming proxy route."""

import asyncio
import sys
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from podcast_library.config import PluginConfiguration
from podcast_library.exceptions import EpisodeDirectoryNotFoundError, TranscoderError
from podcast_library.library.pointer import encode_stream_token
from podcast_library.streaming.episode_assets import check_episode_directory, is_inside_library
from podcast_library.streaming.transcoder import TranscodeProcess
from podcast_library.web.stream_routes import router


WEB_CLIENT = {"X-Emby-Authorization": 'MediaBrowser Client="Jellyfin Web", Device="Firefox"'}
TV_CLIENT = {"X-Emby-Authorization": 'MediaBrowser Client="Jellyfin Android TV", Device="Shield"'}
AUDIO_URL = "https://cdn.example.com/episode.mp3"

ENDLESS_OUTPUT = (
    "import sys\n"
    "while True:\n"
    "    sys.stdout.buffer.write(b'x' * 65536)\n"
    "    sys.stdout.flush()\n"
)


class FakeProcess:
    """Stands in for a running ffmpeg process."""

    def __init__(self):
        self.terminated = False

    async def stream(self):
        yield b"webm-"
        yield b"data"

    async def terminate(self):
        self.terminated = True


@pytest.fixture
def season_dir(library_root):
    season_dir = library_root / "Show" / "Season 1"
    season_dir.mkdir(parents=True)
    (season_dir / "2024-01-01 - Pilot.audiourl").write_text(AUDIO_URL + "\n")
    (season_dir / "2024-01-01 - Pilot-thumb.jpg").write_bytes(b"jpg")
    return season_dir


@pytest.fixture
def plugin_configuration(library_root):
    return PluginConfiguration(library_path=str(library_root))


@pytest.fixture
def app(plugin_configuration):
    """Create FastAPI test app."""
    app = FastAPI()
    app.include_router(router)

    config = Mock()
    config.FFMPEG_PATH = "/opt/ffmpeg"
    store = Mock()
    store.load.return_value = plugin_configuration

    app.state.config = config
    app.state.store = store
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app, raise_server_exceptions=False)


def stream_url(path) -> str:
    return f"/stream/{encode_stream_token(str(path))}"


class TestStreamEpisode:
    """Tests for GET /stream/{token}."""

    def test_transcodes_for_browser(self, client, season_dir):
        process = FakeProcess()
        start = AsyncMock(return_value=process)

        with patch("podcast_library.web.stream_routes.TranscodeProcess.start", start):
            response = client.get(stream_url(season_dir), headers=WEB_CLIENT)

        assert response.status_code == 200
        assert response.content == b"webm-data"
        assert response.headers["content-type"] == "video/webm"
        assert response.headers["accept-ranges"] == "none"
        assert response.headers["cache-control"] == "public, max-age=31536000"
        assert response.headers["x-content-type-options"] == "nosniff"
        start.assert_awaited_once_with(
            "/opt/ffmpeg", str(season_dir / "2024-01-01 - Pilot-thumb.jpg"), AUDIO_URL
        )
        assert process.terminated

    def test_transcodes_without_client_header(self, client, season_dir):
        start = AsyncMock(return_value=FakeProcess())

        with patch("podcast_library.web.stream_routes.TranscodeProcess.start", start):
            response = client.get(stream_url(season_dir))

        assert response.status_code == 200
        start.assert_awaited_once()

    def test_redirects_native_client(self, client, season_dir):
        start = AsyncMock()

        with patch("podcast_library.web.stream_routes.TranscodeProcess.start", start):
            response = client.get(stream_url(season_dir), headers=TV_CLIENT, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == AUDIO_URL
        start.assert_not_awaited()

    def test_always_on_transcodes_native_client(self, client, season_dir, plugin_configuration):
        plugin_configuration.web_player_compatibility_mode = "alwaysOn"
        start = AsyncMock(return_value=FakeProcess())

        with patch("podcast_library.web.stream_routes.TranscodeProcess.start", start):
            response = client.get(stream_url(season_dir), headers=TV_CLIENT)

        assert response.status_code == 200

    def test_always_off_redirects_browser(self, client, season_dir, plugin_configuration):
        plugin_configuration.web_player_compatibility_mode = "alwaysOff"

        response = client.get(stream_url(season_dir), headers=WEB_CLIENT, follow_redirects=False)

        assert response.status_code == 302

    def test_invalid_token(self, client):
        response = client.get("/stream/not*base64")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid episode ID"

    def test_missing_directory(self, client, library_root):
        response = client.get(stream_url(library_root / "Gone" / "Season 1"))

        assert response.status_code == 404
        assert response.json()["detail"] == "Episode not found"

    def test_directory_outside_library(self, client, tmp_path):
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        (outside / "x.audiourl").write_text(AUDIO_URL)

        response = client.get(stream_url(outside))

        assert response.status_code == 404

    def test_missing_audio_url(self, client, season_dir):
        (season_dir / "2024-01-01 - Pilot.audiourl").unlink()

        response = client.get(stream_url(season_dir), headers=WEB_CLIENT)

        assert response.status_code == 404
        assert response.json()["detail"] == "Episode audio URL not found"

    def test_missing_artwork(self, client, season_dir):
        (season_dir / "2024-01-01 - Pilot-thumb.jpg").unlink()

        response = client.get(stream_url(season_dir), headers=WEB_CLIENT)

        assert response.status_code == 404
        assert response.json()["detail"] == "No artwork available"

    def test_transcoder_failure(self, client, season_dir):
        start = AsyncMock(side_effect=TranscoderError("no ffmpeg"))

        with patch("podcast_library.web.stream_routes.TranscodeProcess.start", start):
            response = client.get(stream_url(season_dir), headers=WEB_CLIENT)

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"

    def test_client_disconnect_kills_transcoder(self, app, season_dir):
        """The ffmpeg process must not outlive a client that went away."""
        token = encode_stream_token(str(season_dir))
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": f"/stream/{token}",
            "raw_path": f"/stream/{token}".encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }

        async def run():
            process = await asyncio.create_subprocess_exec(
                sys.executable, "-c", ENDLESS_OUTPUT,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            transcode = TranscodeProcess(process)
            body_sent = asyncio.Event()
            request_received = False

            async def receive():
                nonlocal request_received
                if not request_received:
                    request_received = True
                    return {"type": "http.request", "body": b"", "more_body": False}
                await body_sent.wait()
                return {"type": "http.disconnect"}

            async def send(message):
                if message["type"] == "http.response.body" and message.get("body"):
                    body_sent.set()

            with patch(
                "podcast_library.web.stream_routes.TranscodeProcess.start",
                AsyncMock(return_value=transcode),
            ):
                await asyncio.wait_for(app(scope, receive, send), timeout=10)

            return process, body_sent.is_set()

        process, body_sent = asyncio.run(run())

        assert body_sent
        assert process.returncode is not None

    def test_missing_configuration(self, client, app, season_dir):
        app.state.store.load.return_value = None

        response = client.get(stream_url(season_dir))

        assert response.status_code == 500


class TestIsInsideLibrary:
    """Tests for is_inside_library."""

    def test_inside(self, library_root):
        assert is_inside_library(str(library_root / "Show" / "Season 1"), str(library_root))

    def test_traversal(self, library_root):
        assert not is_inside_library(str(library_root / ".." / "etc"), str(library_root))

    def test_sibling_prefix(self, tmp_path, library_root):
        assert not is_inside_library(str(tmp_path / "library-other"), str(library_root))

    def test_no_library_path(self, library_root):
        assert not is_inside_library(str(library_root), "")


class TestCheckEpisodeDirectory:
    """Tests for check_episode_directory."""

    def test_existing_directory(self, season_dir, library_root):
        assert check_episode_directory(str(season_dir), str(library_root)) == str(season_dir)

    def test_missing_directory(self, library_root):
        with pytest.raises(EpisodeDirectoryNotFoundError):
            check_episode_directory(str(library_root / "Gone" / "Season 1"), str(library_root))

    def test_outside_library(self, tmp_path, library_root):
        outside = tmp_path / "elsewhere"
        outside.mkdir()

        with pytest.raises(EpisodeDirectoryNotFoundError):
            check_episode_directory(str(outside), str(library_root))
