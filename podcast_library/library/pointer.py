"""Pointer (.strm) file content and stream tokens.

Audio episodes played through the stream proxy are referenced by a token
that reversibly encodes the absolute season directory path. The proxy
decodes it to find the ``.audiourl`` file and artwork.
"""

import base64
import binascii
import os

from ..config import CompatibilityMode, PluginConfiguration
from ..exceptions import InvalidStreamTokenError
from .naming import is_video_url

DEFAULT_STREAM_URL_TEMPLATE = "http://localhost:8080/stream/{token}"

_PROXIED_MODES = (CompatibilityMode.ALWAYS_ON.value, CompatibilityMode.AUTO.value)


def encode_stream_token(season_dir: str) -> str:
    """Encode a season directory path as a URL-safe token."""
    return base64.urlsafe_b64encode(season_dir.encode("utf-8")).decode("ascii")


def decode_stream_token(token: str) -> str:
    """Decode a token produced by ``encode_stream_token``.

    Raises:
        InvalidStreamTokenError: If the token is not valid base64, not UTF-8,
            or does not decode to an absolute path.
    """
    try:
        raw = base64.b64decode(token.encode("ascii"), altchars=b"-_", validate=True)
        path = raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidStreamTokenError(f"Invalid episode ID: {e}") from e

    if not path or "\x00" in path or not os.path.isabs(path):
        raise InvalidStreamTokenError("Invalid episode ID: not an absolute path")

    return path


def uses_stream_proxy(media_url: str, configuration: PluginConfiguration) -> bool:
    """True if an episode's pointer file should go through the stream proxy.

    Video is never proxied. ``auto`` and ``alwaysOn`` both proxy audio at this
    layer; unrecognized modes behave like ``alwaysOff``.
    """
    if is_video_url(media_url):
        return False
    return configuration.compatibility_mode in _PROXIED_MODES


def strm_content(
    media_url: str,
    season_dir: str,
    configuration: PluginConfiguration,
    url_template: str = DEFAULT_STREAM_URL_TEMPLATE,
) -> str:
    """Content of an episode's ``.strm`` pointer file."""
    if not uses_stream_proxy(media_url, configuration):
        return media_url

    token = encode_stream_token(os.path.abspath(season_dir))
    return url_template.format(token=token)
