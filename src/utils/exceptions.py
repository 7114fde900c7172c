"""
Custom exceptions for the music bot.

Defines the error kinds raised by the playback core so callers can
decide what is reported to the user and what is only logged.
"""

class MusicBotException(Exception):
    """
    Base exception for every music bot error.

    Attributes:
        message (str): Detailed error message
        code (int): Optional error code
    """
    def __init__(self, message: str, code: int = None):
        self.message = message
        self.code = code
        super().__init__(self.message)

class QueueError(MusicBotException):
    """
    Raised when the queue state machine receives an event it cannot accept.

    Examples:
        >>> raise QueueError("Session is draining")
    """
    pass

class VoiceError(MusicBotException):
    """
    Raised for voice connection errors.

    Examples:
        >>> raise VoiceError("Unable to join the voice channel")
    """
    pass

class ConnectionTimeout(VoiceError):
    """
    Raised when the voice connection is not ready within the allowed time.

    Examples:
        >>> raise ConnectionTimeout("Voice connection not ready after 30s", code=4080)
    """
    pass

class FetchError(MusicBotException):
    """
    Raised when a remote track cannot be downloaded or converted.

    Attributes:
        url (str): Source URL that failed
        cause (Exception): Underlying error from the download tool
    """
    def __init__(self, url: str, cause: Exception = None):
        self.url = url
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to fetch {url}{detail}")

class PlaybackError(MusicBotException):
    """Error reported by the audio sink while a track was streaming."""
    def __init__(self, track, cause: Exception = None):
        self.track = track
        self.cause = cause
        super().__init__(f"Playback error on {getattr(track, 'source_url', track)}: {cause}")

class CleanupError(MusicBotException):
    """Temporary artifact could not be deleted. Never fatal."""
    def __init__(self, path: str, cause: Exception = None):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not delete {path}: {cause}")
