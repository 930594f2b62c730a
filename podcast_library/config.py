"""Configuration for the podcast library service.

Two layers:
- ``Config``: process settings read from the environment (optionally via a
  ``.env`` file).
- ``PluginConfiguration``: the user-editable settings (feed list, library
  path, episode limits, compatibility mode) persisted as JSON by a
  ``ConfigurationStore``.
"""

import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


def _get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Parse an integer from an environment variable with validation.

    Args:
        name: Environment variable name.
        default: Default value if env var is not set.
        min_val: Minimum allowed value (inclusive), or None for no minimum.
        max_val: Maximum allowed value (inclusive), or None for no maximum.

    Returns:
        The parsed and validated integer value.

    Raises:
        ValueError: If the value cannot be parsed as an integer or is out of range.
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid integer"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


class Config:
    def __init__(self, env_file=None):
        """
        Load environment variables and set service-level settings.

        Parameters:
            env_file (str | None): Optional path to a .env file. If omitted,
                default .env discovery is used.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Where the user-editable plugin configuration lives
        self.PLUGIN_CONFIG_PATH = os.getenv(
            "PLUGIN_CONFIG_PATH", "./podcast_library.json"
        )
        # Overrides PluginConfiguration.library_path when set
        self.LIBRARY_PATH_OVERRIDE = os.getenv("LIBRARY_PATH_OVERRIDE", "") or None

        # Pointer files for proxied audio episodes point here
        self.STREAM_URL_TEMPLATE = os.getenv(
            "STREAM_URL_TEMPLATE", "http://localhost:8080/stream/{token}"
        )
        if "{token}" not in self.STREAM_URL_TEMPLATE:
            raise ValueError(
                f"STREAM_URL_TEMPLATE must contain '{{token}}', got: {self.STREAM_URL_TEMPLATE}"
            )

        # Transcoder binary (None = auto-discover)
        self.FFMPEG_PATH = os.getenv("FFMPEG_PATH", "") or None

        # Refresh cycle
        self.REFRESH_INTERVAL_HOURS = _get_int_env("REFRESH_INTERVAL_HOURS", 2, min_val=1)
        self.MAX_CONCURRENT_FEEDS = _get_int_env("MAX_CONCURRENT_FEEDS", 4, min_val=1)
        self.REFRESH_ON_STARTUP = os.getenv("REFRESH_ON_STARTUP", "true").lower() == "true"

        # Outbound HTTP
        self.HTTP_TIMEOUT = _get_int_env("HTTP_TIMEOUT", 30, min_val=1)
        self.HTTP_USER_AGENT = os.getenv(
            "HTTP_USER_AGENT", "PodcastLibrarySync/1.0"
        )

        # Web application configuration
        self.WEB_ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")
        self.WEB_HOST = os.getenv("HOST", "0.0.0.0")
        self.WEB_PORT = _get_int_env("PORT", 8080, min_val=1, max_val=65535)

        # JWT configuration (admin endpoints)
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
        self.JWT_ALGORITHM = "HS256"
        self.JWT_EXPIRATION_DAYS = _get_int_env("JWT_EXPIRATION_DAYS", 7, min_val=1)

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


class CompatibilityMode(str, Enum):
    """Web player compatibility modes for audio episodes."""

    AUTO = "auto"
    ALWAYS_ON = "alwaysOn"
    ALWAYS_OFF = "alwaysOff"


class FeedSource(BaseModel):
    """A configured podcast feed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="Id")
    url: str = Field(..., alias="Url")
    custom_name: Optional[str] = Field(default=None, alias="CustomName")
    enabled: bool = Field(default=True, alias="Enabled")


class PluginConfiguration(BaseModel):
    """User-editable settings consumed by the synchronizer and stream proxy."""

    model_config = ConfigDict(populate_by_name=True)

    podcast_feeds: List[FeedSource] = Field(default_factory=list, alias="PodcastFeeds")
    library_path: str = Field(default="/config/data/podcasts", alias="LibraryPath")
    preferred_quality: str = Field(default="high", alias="PreferredQuality")
    enable_auto_cleanup: bool = Field(default=False, alias="EnableAutoCleanup")
    days_to_keep_episodes: int = Field(default=30, ge=0, alias="DaysToKeepEpisodes")
    max_episodes_per_podcast: int = Field(default=50, ge=0, alias="MaxEpisodesPerPodcast")
    download_thumbnails: bool = Field(default=True, alias="DownloadThumbnails")
    # Kept as a free string: unrecognized values fall back to direct URLs
    web_player_compatibility_mode: Optional[str] = Field(
        default=CompatibilityMode.AUTO.value, alias="WebPlayerCompatibilityMode"
    )

    @property
    def compatibility_mode(self) -> str:
        """Effective compatibility mode, ``auto`` when unset."""
        return self.web_player_compatibility_mode or CompatibilityMode.AUTO.value

    def enabled_feeds(self) -> List[FeedSource]:
        return [feed for feed in self.podcast_feeds if feed.enabled]


class ConfigurationStore(ABC):
    """Source of the current plugin configuration."""

    @abstractmethod
    def load(self) -> Optional[PluginConfiguration]:
        """Return the current configuration, or None if unavailable."""

    @abstractmethod
    def save(self, configuration: PluginConfiguration) -> None:
        """Persist the configuration."""


class JsonConfigurationStore(ConfigurationStore):
    """Stores the plugin configuration as a JSON document on disk.

    Example:
        store = JsonConfigurationStore("/etc/podcast_library.json",
                                       library_path_override="/media/podcasts")
        configuration = store.load()
    """

    def __init__(self, path: str, library_path_override: Optional[str] = None):
        self.path = Path(path)
        self.library_path_override = library_path_override

    def load(self) -> Optional[PluginConfiguration]:
        if not self.path.is_file():
            logger.warning(f"Plugin configuration not found: {self.path}")
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            configuration = PluginConfiguration.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Invalid plugin configuration in {self.path}: {e}")
            return None

        if self.library_path_override:
            configuration.library_path = self.library_path_override
        return configuration

    def save(self, configuration: PluginConfiguration) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = configuration.model_dump(by_alias=True)
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info(f"Saved plugin configuration to {self.path}")
