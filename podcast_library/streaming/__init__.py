"""Playback proxy support: client detection, episode assets and transcoding."""

from .client_detection import get_client_name, should_transcode
from .episode_assets import (
    check_episode_directory,
    find_artwork,
    is_inside_library,
    read_audio_url,
)
from .transcoder import TranscodeProcess, build_ffmpeg_arguments, find_ffmpeg

__all__ = [
    "TranscodeProcess",
    "build_ffmpeg_arguments",
    "check_episode_directory",
    "find_artwork",
    "find_ffmpeg",
    "get_client_name",
    "is_inside_library",
    "read_audio_url",
    "should_transcode",
]
