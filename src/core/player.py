"""
Playback controller.
Drives one voice session's audio sink through a sequence of local artifacts
and reports each finished track exactly once.
"""

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, List, Optional

import discord

from core.interfaces import PlayerState, Track
from utils.constants import DEFAULT_VOLUME, FFMPEG_OPTIONS
from utils.exceptions import PlaybackError

logger = logging.getLogger(__name__)

IdleCallback = Callable[[Track], Awaitable[None]]
ErrorCallback = Callable[[Track, Exception], Awaitable[None]]


def make_audio_source(path: str, volume: float = DEFAULT_VOLUME, executable: str = 'ffmpeg') -> discord.AudioSource:
    """Local file source normalised to the baseline gain"""
    audio = discord.FFmpegPCMAudio(path, executable=executable, **FFMPEG_OPTIONS)
    return discord.PCMVolumeTransformer(audio, volume=volume)


class PlaybackController:
    def __init__(self, voice, *, loop: Optional[asyncio.AbstractEventLoop] = None,
                 source_factory: Callable[[str], discord.AudioSource] = make_audio_source):
        self.voice = voice
        self.loop = loop or asyncio.get_running_loop()
        self.source_factory = source_factory
        self.state = PlayerState.IDLE
        self.current: Optional[Track] = None
        self.stopped = False
        self.last_error: Optional[PlaybackError] = None
        self._idle_callbacks: List[IdleCallback] = []
        self._error_callbacks: List[ErrorCallback] = []
        self._tokens = itertools.count(1)
        self._active_token: Optional[int] = None

    def on_idle(self, callback: IdleCallback) -> None:
        self._idle_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    @property
    def is_playing(self) -> bool:
        return self.state is PlayerState.PLAYING

    def play(self, track: Track) -> None:
        """Start streaming ``track`` into the voice sink."""
        token = next(self._tokens)
        self._active_token = token
        self.current = track
        self.state = PlayerState.PLAYING

        def after_playing(error):
            # Runs in the audio thread
            asyncio.run_coroutine_threadsafe(self._finished(token, track, error), self.loop)

        try:
            self.voice.play(self.source_factory(track.artifact_path), after=after_playing)
        except discord.ClientException as e:
            # Sink refused the source, report it like a stream that ended in error
            after_playing(e)
            return
        logger.info(f"Now playing: {track.source_url}")

    def stop(self) -> None:
        """Cease playback. The pending idle notification still fires."""
        self.stopped = True
        self.voice.stop()

    async def _finished(self, token: int, track: Track, error: Optional[Exception]) -> None:
        failure = PlaybackError(track, error) if error else None
        if failure:
            logger.error(str(failure))
            await self._notify(self._error_callbacks, track, failure)

        if token != self._active_token:
            logger.debug(f"Ignoring stale idle signal for {track.source_url}")
            return
        self._active_token = None
        # Outcome of the play that just ended, read by idle handlers
        self.last_error = failure
        self.current = None
        self.state = PlayerState.IDLE

        await self._notify(self._idle_callbacks, track)

    async def _notify(self, callbacks, *args) -> None:
        for callback in list(callbacks):
            try:
                await callback(*args)
            except Exception:
                logger.error(f"Playback handler failed for {args[0].source_url}", exc_info=True)
