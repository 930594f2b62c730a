"""Client-type detection for playback requests.

Media server clients identify themselves in an authorization header such as::

    MediaBrowser Client="Jellyfin Web", Device="Chrome", DeviceId="...", Version="10.9.0"

Browser clients get a transcoded video stream; native clients are
redirected to the original audio URL.
"""

import logging
import re
from typing import Dict, Mapping, Optional

from ..config import CompatibilityMode

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADERS = ("X-Emby-Authorization", "Authorization")
AUTHORIZATION_SCHEMES = ("MediaBrowser", "Emby")

_FIELD_PATTERN = re.compile(r'(\w+)\s*=\s*"([^"]*)"')


def parse_authorization_header(value: Optional[str]) -> Dict[str, str]:
    """Parse a ``MediaBrowser``/``Emby`` authorization header into fields.

    Returns an empty dict for missing headers and for other schemes
    (e.g. ``Bearer``).
    """
    if not value:
        return {}

    scheme, _, params = value.strip().partition(" ")
    if scheme not in AUTHORIZATION_SCHEMES:
        return {}

    return {key: field_value for key, field_value in _FIELD_PATTERN.findall(params)}


def get_client_name(headers: Mapping[str, str]) -> Optional[str]:
    """Client identifier from the request headers, if any."""
    for header in AUTHORIZATION_HEADERS:
        fields = parse_authorization_header(headers.get(header))
        client = fields.get("Client")
        if client:
            return client
    return None


def is_browser_client(client: Optional[str]) -> bool:
    """Unknown clients are treated as browsers."""
    if not client:
        return True
    return "web" in client.lower()


def should_transcode(mode: str, client: Optional[str]) -> bool:
    """Decide whether a playback request is transcoded or redirected.

    Args:
        mode: Effective web player compatibility mode.
        client: Client identifier from the request, or None.

    Returns:
        True to transcode, False to redirect to the original audio URL.
    """
    if mode == CompatibilityMode.ALWAYS_ON.value:
        return True
    if mode == CompatibilityMode.AUTO.value:
        return is_browser_client(client)
    return False
