"""Audio-to-video transcoding through an external ffmpeg process.

The audio URL is wrapped in a WebM container with a looped still image as
the video track, so web players that handle audio-only items poorly can
play it. WebM streams over a pipe without a trailing index.
"""

import asyncio
import logging
import os
from typing import AsyncIterator, List, Optional

from ..exceptions import TranscoderError

logger = logging.getLogger(__name__)

MEDIA_TYPE = "video/webm"

STREAM_HEADERS = {
    "Accept-Ranges": "none",
    "Cache-Control": "public, max-age=31536000",
    "X-Content-Type-Options": "nosniff",
}

FFMPEG_CANDIDATES = (
    "/usr/lib/jellyfin-ffmpeg/ffmpeg",
    "/usr/bin/ffmpeg",
)

CHUNK_SIZE = 64 * 1024


def find_ffmpeg(configured_path: Optional[str] = None) -> str:
    """Path of the ffmpeg binary.

    Uses the configured path if given, else the first known install
    location that exists, else ``ffmpeg`` from PATH.
    """
    if configured_path:
        return configured_path

    for path in FFMPEG_CANDIDATES:
        if os.path.isfile(path):
            return path

    return "ffmpeg"


def build_ffmpeg_arguments(image_path: str, audio_url: str) -> List[str]:
    """Fixed ffmpeg argument list for wrapping audio in a WebM stream."""
    return [
        "-loop", "1",
        "-i", image_path,
        "-re",
        "-thread_queue_size", "512",
        "-i", audio_url,
        "-c:v", "libvpx",
        "-b:v", "100k",
        "-deadline", "realtime",
        "-cpu-used", "8",
        "-c:a", "libopus",
        "-b:a", "128k",
        "-shortest",
        "-f", "webm",
        "pipe:1",
    ]


class TranscodeProcess:
    """A running ffmpeg process whose stdout is the response body.

    stdin is not used, stdout is consumed by ``stream()`` and stderr is
    drained by a background task so the process never blocks on a full
    pipe. The process is killed when streaming stops for any reason.

    Example:
        process = await TranscodeProcess.start("ffmpeg", image, audio_url)
        async for chunk in process.stream():
            await send(chunk)
    """

    def __init__(self, process: asyncio.subprocess.Process):
        self.process = process
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    @classmethod
    async def start(
        cls, ffmpeg_path: str, image_path: str, audio_url: str
    ) -> "TranscodeProcess":
        """Spawn ffmpeg for one playback request.

        Raises:
            TranscoderError: If the process cannot be started.
        """
        arguments = build_ffmpeg_arguments(image_path, audio_url)
        logger.info(f"Starting ffmpeg: {ffmpeg_path} {' '.join(arguments)}")

        try:
            process = await asyncio.create_subprocess_exec(
                ffmpeg_path,
                *arguments,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscoderError(f"Failed to start ffmpeg at {ffmpeg_path}: {e}") from e

        return cls(process)

    async def _drain_stderr(self) -> None:
        async for line in self.process.stderr:
            message = line.decode("utf-8", errors="replace").rstrip()
            if message:
                logger.debug(f"FFmpeg: {message}")

    async def stream(self, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield stdout chunks until ffmpeg closes its output.

        Cancellation or an early close from the consumer kills the process.
        """
        try:
            while True:
                chunk = await self.process.stdout.read(chunk_size)
                if not chunk:
                    break
                yield chunk

            returncode = await self.process.wait()
            logger.info(f"FFmpeg process completed with exit code {returncode}")
        finally:
            await self.terminate()

    async def terminate(self) -> None:
        """Kill the process if it is still running and wait for it to exit."""
        if self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            else:
                logger.info("Killed ffmpeg process after playback stopped")
            await self.process.wait()

        self._stderr_task.cancel()
