"""
Pytest configuration and fixtures for podcast-library tests.

This module runs before any test imports, setting up the test environment.
Environment variables are explicitly set to ensure deterministic test behavior
regardless of external environment configuration.
"""

import json
import os

import pytest

# Minimum length for JWT secret key (32 bytes for HS256)
_MIN_JWT_SECRET_LENGTH = 32

# Test JWT secret that meets minimum length requirements
_TEST_JWT_SECRET = "test-jwt-secret-key-for-pytest-minimum-32-chars"

# Force DEV_MODE for tests - ensures consistent behavior
os.environ["DEV_MODE"] = "true"

# Force JWT_SECRET_KEY to a compliant test value
# Overwrite if missing or shorter than required minimum
current_secret = os.environ.get("JWT_SECRET_KEY", "")
if len(current_secret) < _MIN_JWT_SECRET_LENGTH:
    os.environ["JWT_SECRET_KEY"] = _TEST_JWT_SECRET

# Settings a developer's .env could otherwise change
for _name in (
    "PLUGIN_CONFIG_PATH",
    "LIBRARY_PATH_OVERRIDE",
    "STREAM_URL_TEMPLATE",
    "FFMPEG_PATH",
    "REFRESH_INTERVAL_HOURS",
    "MAX_CONCURRENT_FEEDS",
    "REFRESH_ON_STARTUP",
    "HTTP_TIMEOUT",
    "ALLOWED_ORIGINS",
    "PORT",
):
    os.environ.pop(_name, None)


SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Test Podcast</title>
    <description>A podcast for testing</description>
    <language>en-us</language>
    <itunes:author>Test Author</itunes:author>
    <itunes:image href="https://example.com/artwork.jpg"/>

    <item>
      <title>Episode 1: Introduction</title>
      <description>The first episode.</description>
      <guid>episode-1-guid</guid>
      <pubDate>Mon, 01 Jan 2024 12:00:00 +0000</pubDate>
      <itunes:duration>1:02:03</itunes:duration>
      <enclosure url="https://example.com/ep1.mp3" length="54000000" type="audio/mpeg"/>
    </item>

    <item>
      <title>Episode 2: Deep Dive</title>
      <description>The second episode.</description>
      <guid>episode-2-guid</guid>
      <pubDate>Mon, 08 Jan 2024 12:00:00 +0000</pubDate>
      <itunes:duration>45</itunes:duration>
      <itunes:image href="https://example.com/ep2.jpg"/>
      <enclosure url="https://example.com/ep2.mp3" length="not-a-number" type="audio/mpeg"/>
    </item>

    <item>
      <title>Trailer without media</title>
      <description>No enclosure here.</description>
      <guid>trailer-guid</guid>
      <pubDate>Mon, 25 Dec 2023 12:00:00 +0000</pubDate>
    </item>
  </channel>
</rss>"""


def build_rss_feed(episode_count: int, title: str = "Generated Podcast") -> str:
    """RSS document with ``episode_count`` dated episodes, one day apart."""
    items = []
    for number in range(1, episode_count + 1):
        day = (number - 1) % 28 + 1
        month = (number - 1) // 28 + 1
        items.append(
            f"""
    <item>
      <title>Episode {number}</title>
      <guid>generated-{number}</guid>
      <pubDate>2024-{month:02d}-{day:02d}T08:00:00Z</pubDate>
      <enclosure url="https://example.com/audio/{number}.mp3" length="1000" type="audio/mpeg"/>
    </item>"""
        )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>{title}</title>
    <description>Generated for tests</description>
    {''.join(items)}
  </channel>
</rss>"""


@pytest.fixture
def library_root(tmp_path):
    """Empty library root directory."""
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def write_plugin_config(tmp_path):
    """Write a plugin configuration JSON file and return its path."""

    def _write(**settings):
        path = tmp_path / "podcast_library.json"
        path.write_text(json.dumps(settings), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_rss_feed():
    """RSS document with two playable episodes and one without media."""
    return SAMPLE_RSS_FEED


@pytest.fixture
def rss_feed_builder():
    """Factory for RSS documents with a given number of episodes."""
    return build_rss_feed
