"""
Main controller that coordinates the fetcher, voice sessions and playback
for both the immediate and the queued play commands.
"""

import asyncio
import logging
from functools import partial
from typing import Callable, Dict, Optional, Tuple

from core.downloader import Downloader
from core.interfaces import Track
from core.player import PlaybackController
from core.queue_manager import GuildQueueRegistry
from core.voice_manager import connect
from utils.constants import CONNECT_TIMEOUT, MESSAGES
from utils.exceptions import MusicBotException, QueueError

logger = logging.getLogger(__name__)

# Upper bound on waiting for a stopped sink to report idle
STOP_GRACE_PERIOD = 5.0


class ImmediatePlayback:
    """
    One ``play`` command outside the queue: a single artifact played once,
    or replayed on every idle while looping is enabled.
    """

    def __init__(self, guild_id: int, voice, controller: PlaybackController,
                 fetcher: Downloader, loop_enabled: bool = False,
                 on_finished: Optional[Callable[["ImmediatePlayback"], None]] = None):
        self.guild_id = guild_id
        self.voice = voice
        self.controller = controller
        self.fetcher = fetcher
        self.loop_enabled = loop_enabled
        self.on_finished = on_finished
        self.track: Optional[Track] = None
        self.finished = asyncio.Event()
        controller.on_idle(self._on_idle)

    async def start(self, url: str) -> Optional[Track]:
        """Download ``url`` and start playing it. Returns None if cancelled meanwhile."""
        try:
            path = await self.fetcher.fetch(url)
        except MusicBotException:
            await self._finish()
            raise

        if self.controller.stopped:
            self.fetcher.delete_artifact(path)
            return None

        self.track = Track(url, path)
        self.controller.play(self.track)
        return self.track

    async def _on_idle(self, track: Track) -> None:
        if self.controller.last_error:
            # A track that cannot be played is not replayed
            logger.warning(f"Playback failed in guild {self.guild_id}, ending playback")
        elif self.loop_enabled and not self.controller.stopped:
            logger.info("Looping enabled; replaying track.")
            self.controller.play(track)
            return
        await self._finish()

    async def _finish(self) -> None:
        if self.finished.is_set():
            return
        self.finished.set()
        await self.voice.teardown()
        if self.track:
            self.fetcher.delete_artifact(self.track.artifact_path)
        if self.on_finished:
            self.on_finished(self)

    async def cancel(self) -> None:
        """Stop playback and wait for the normal teardown."""
        was_playing = self.controller.is_playing
        self.controller.stop()
        if was_playing:
            try:
                await asyncio.wait_for(self.finished.wait(), timeout=STOP_GRACE_PERIOD)
                return
            except asyncio.TimeoutError:
                logger.warning(f"No idle signal after stop in guild {self.guild_id}, forcing teardown")
        await self._finish()


class MusicController:
    def __init__(self, fetcher: Downloader, *, connector: Callable = connect,
                 controller_factory: Callable = PlaybackController,
                 connect_timeout: float = CONNECT_TIMEOUT):
        self.fetcher = fetcher
        self.connector = connector
        self.controller_factory = controller_factory
        self.connect_timeout = connect_timeout
        self.registry = GuildQueueRegistry(fetcher.delete_artifact, controller_factory)
        self._immediate: Dict[int, ImmediatePlayback] = {}

    def _connect_fn(self, channel):
        return partial(self.connector, channel, timeout=self.connect_timeout)

    async def _supersede(self, guild_id: int) -> None:
        playback = self._immediate.pop(guild_id, None)
        if playback and not playback.finished.is_set():
            logger.info(f"Superseding immediate playback in guild {guild_id}")
            await playback.cancel()

    async def play_immediate(self, guild_id: int, channel, url: str, loop_enabled: bool = False) -> Optional[Track]:
        """
        Join, download and play ``url`` right away, outside the queue.

        Raises:
            QueueError: If the guild is already playing a queue
            ConnectionTimeout: If the voice join timed out
            FetchError: If the download failed
        """
        if guild_id in self.registry:
            raise QueueError(MESSAGES['QUEUE_BUSY'])
        await self._supersede(guild_id)

        voice = await self._connect_fn(channel)()
        playback = ImmediatePlayback(guild_id, voice, self.controller_factory(voice), self.fetcher,
                                     loop_enabled, on_finished=self._forget)
        self._immediate[guild_id] = playback
        return await playback.start(url)

    def _forget(self, playback: ImmediatePlayback) -> None:
        if self._immediate.get(playback.guild_id) is playback:
            del self._immediate[playback.guild_id]

    async def play_queued(self, guild_id: int, channel, url: str) -> int:
        """
        Join if needed, download ``url`` and append it to the guild's queue.

        Returns:
            int: 1-based queue position of the new track

        Raises:
            ConnectionTimeout: If the voice join timed out
            FetchError: If the download failed; the queue is left untouched
        """
        await self._supersede(guild_id)
        connect_fn = self._connect_fn(channel)
        session = await self.registry.get_or_create(guild_id, connect_fn)

        session.downloads += 1
        try:
            path = await self.fetcher.fetch(url)
        except MusicBotException:
            session.downloads -= 1
            await self.registry.release_if_idle(guild_id)
            raise
        session.downloads -= 1

        track = Track(url, path)
        try:
            return await self.registry.enqueue(guild_id, track, connect_fn)
        except MusicBotException:
            self.fetcher.delete_artifact(path)
            raise

    def list_queue(self, guild_id: int) -> Tuple[Track, ...]:
        return self.registry.pending(guild_id)

    async def shutdown(self) -> None:
        """Stop every playback and remove every temporary file still owned."""
        for guild_id in list(self._immediate):
            await self._supersede(guild_id)
        await self.registry.shutdown()
