"""
Streaming proxy for proxied audio episodes.

Pointer files of audio episodes reference ``/stream/{token}``, where the
token encodes the episode's season directory. Browser clients receive the
audio wrapped in a WebM video stream; other clients are redirected to the
original audio URL.
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse, StreamingResponse

from podcast_library.config import Config, ConfigurationStore
from podcast_library.exceptions import (
    ArtworkNotFoundError,
    AudioUrlNotFoundError,
    EpisodeDirectoryNotFoundError,
    InvalidStreamTokenError,
)
from podcast_library.library.pointer import decode_stream_token
from podcast_library.streaming.client_detection import get_client_name, should_transcode
from podcast_library.streaming.episode_assets import (
    check_episode_directory,
    find_artwork,
    read_audio_url,
)
from podcast_library.streaming.transcoder import (
    MEDIA_TYPE,
    STREAM_HEADERS,
    TranscodeProcess,
    find_ffmpeg,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["stream"])


class TranscodeStreamingResponse(StreamingResponse):
    """WebM response whose ffmpeg process ends with the response.

    Starlette cancels the body iterator on client disconnect without closing
    it. The process is killed whenever the response call returns or raises.
    """

    def __init__(self, process: TranscodeProcess):
        super().__init__(process.stream(), media_type=MEDIA_TYPE, headers=STREAM_HEADERS)
        self.process = process

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.process.terminate()


@router.get("/stream/{token}")
async def stream_episode(token: str, request: Request):
    """
    Stream a podcast episode, transcoding or redirecting per client.

    Args:
        token: Encoded season directory path from the pointer file.

    Returns:
        StreamingResponse with a WebM body, or a redirect to the audio URL.

    Raises:
        HTTPException: 400 for a malformed token, 404 when the episode, its
            audio URL or its artwork is missing, 500 for anything else.
    """
    logger.info(f"Streaming request for episode ID: {token}")

    try:
        season_dir = decode_stream_token(token)
    except InvalidStreamTokenError as e:
        logger.warning(f"Rejected stream token: {e}")
        raise HTTPException(status_code=400, detail="Invalid episode ID")

    try:
        config: Config = request.app.state.config
        store: ConfigurationStore = request.app.state.store

        configuration = store.load()
        if configuration is None:
            logger.error("Plugin configuration is not available")
            raise HTTPException(status_code=500, detail="Internal server error")

        try:
            check_episode_directory(season_dir, configuration.library_path)
        except EpisodeDirectoryNotFoundError as e:
            logger.error(str(e))
            raise HTTPException(status_code=404, detail="Episode not found")

        try:
            audio_url = read_audio_url(season_dir)
        except AudioUrlNotFoundError as e:
            logger.error(str(e))
            raise HTTPException(status_code=404, detail="Episode audio URL not found")

        client = get_client_name(request.headers)
        mode = configuration.compatibility_mode
        if not should_transcode(mode, client):
            logger.info(f"Redirecting client {client!r} to original audio (mode: {mode})")
            return RedirectResponse(url=audio_url, status_code=302)

        try:
            artwork = find_artwork(season_dir)
        except ArtworkNotFoundError as e:
            logger.warning(str(e))
            raise HTTPException(status_code=404, detail="No artwork available")

        logger.info(f"Wrapping audio in video. Audio URL: {audio_url}, artwork: {artwork}")

        process = await TranscodeProcess.start(find_ffmpeg(config.FFMPEG_PATH), artwork, audio_url)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error streaming episode {token}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return TranscodeStreamingResponse(process)
