"""Media library tree management.

Provides functionality for:
- Naming episode artifacts inside the library tree
- Writing pointer (.strm) and NFO metadata files
- Synchronizing configured feeds into the library
- Retention and bulk cleanup of episode files
"""

from .naming import EpisodePaths, episode_base_name, sanitize_filename
from .pointer import decode_stream_token, encode_stream_token, strm_content
from .retention import cleanup_all_episodes, cleanup_old_episodes
from .synchronizer import LibrarySynchronizer, SyncResult

__all__ = [
    "EpisodePaths",
    "LibrarySynchronizer",
    "SyncResult",
    "cleanup_all_episodes",
    "cleanup_old_episodes",
    "decode_stream_token",
    "encode_stream_token",
    "episode_base_name",
    "sanitize_filename",
    "strm_content",
]
