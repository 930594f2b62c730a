"""Exceptions raised by the podcast library service."""


class PodcastLibraryError(Exception):
    """Base class for podcast library errors."""


class InvalidStreamTokenError(PodcastLibraryError, ValueError):
    """A stream token could not be decoded to a season directory path."""


class EpisodeDirectoryNotFoundError(PodcastLibraryError):
    """The season directory referenced by a stream token does not exist."""


class AudioUrlNotFoundError(PodcastLibraryError):
    """No ``.audiourl`` file was found for a proxied episode."""


class ArtworkNotFoundError(PodcastLibraryError):
    """No artwork is available to render the video track."""


class TranscoderError(PodcastLibraryError):
    """The transcoding process could not be started."""


class LibraryPathNotFoundError(PodcastLibraryError):
    """The configured library root does not exist."""
