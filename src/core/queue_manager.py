"""
Per-guild queue management.

The queue itself is an immutable ``QueueState`` advanced by the pure
``transition`` function. ``GuildQueueSession`` applies the resulting effects
to its voice session and controller, and ``GuildQueueRegistry`` keeps at most
one session per guild behind a per-guild lock.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from core.interfaces import PlayerState, Track
from core.player import PlaybackController
from utils.exceptions import QueueError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueState:
    status: PlayerState = PlayerState.IDLE
    current: Optional[Track] = None
    pending: Tuple[Track, ...] = ()


# Events
@dataclass(frozen=True)
class TrackEnqueued:
    track: Track


@dataclass(frozen=True)
class TrackFinished:
    track: Track


@dataclass(frozen=True)
class PlaybackFailed:
    track: Track
    error: Exception


# Effects
@dataclass(frozen=True)
class PlayTrack:
    track: Track


@dataclass(frozen=True)
class DeleteArtifact:
    track: Track


@dataclass(frozen=True)
class Teardown:
    pass


Event = Union[TrackEnqueued, TrackFinished, PlaybackFailed]
Effect = Union[PlayTrack, DeleteArtifact, Teardown]


def _advance(state: QueueState, effects: List[Effect]) -> Tuple[QueueState, List[Effect]]:
    if state.pending:
        head, rest = state.pending[0], state.pending[1:]
        return QueueState(PlayerState.PLAYING, head, rest), effects + [PlayTrack(head)]
    return QueueState(PlayerState.DRAINING), effects + [Teardown()]


def transition(state: QueueState, event: Event) -> Tuple[QueueState, List[Effect]]:
    """
    Advance the queue by one event.

    Args:
        state: Current queue state
        event: What just happened

    Returns:
        Tuple of the new state and the effects to apply, in order

    Raises:
        QueueError: If a track is enqueued on a draining session
    """
    if isinstance(event, TrackEnqueued):
        if state.status is PlayerState.DRAINING:
            raise QueueError("Cannot enqueue on a draining session")
        state = replace(state, pending=state.pending + (event.track,))
        if state.status is PlayerState.IDLE:
            return _advance(state, [])
        return state, []

    if isinstance(event, TrackFinished):
        # Only the playing track may advance the queue
        if state.status is not PlayerState.PLAYING or event.track != state.current:
            return state, []
        return _advance(state, [DeleteArtifact(event.track)])

    # Errors are reported on their own; the idle that follows advances
    return state, []


@dataclass
class GuildQueueSession:
    guild_id: int
    voice: object
    controller: PlaybackController
    registry: 'GuildQueueRegistry'
    state: QueueState = field(default_factory=QueueState)
    # play -q commands still downloading a track for this session
    downloads: int = 0

    @property
    def pending_tracks(self) -> Tuple[Track, ...]:
        return self.state.pending

    @property
    def is_idle(self) -> bool:
        return self.state.status is PlayerState.IDLE

    async def dispatch(self, event: Event) -> None:
        self.state, effects = transition(self.state, event)
        for effect in effects:
            await self._apply(effect)

    async def _apply(self, effect: Effect) -> None:
        if isinstance(effect, PlayTrack):
            self.controller.play(effect.track)
        elif isinstance(effect, DeleteArtifact):
            self.registry.delete_artifact(effect.track.artifact_path)
        elif isinstance(effect, Teardown):
            logger.info(f"Queue is empty, disconnecting from guild {self.guild_id}")
            await self.registry._drain(self)

    async def _on_idle(self, track: Track) -> None:
        logger.info(f"Track finished, advancing queue for guild {self.guild_id}")
        await self.dispatch(TrackFinished(track))

    async def _on_error(self, track: Track, error: Exception) -> None:
        await self.dispatch(PlaybackFailed(track, error))


ConnectFn = Callable[[], Awaitable[object]]


class GuildQueueRegistry:
    """Process-wide table of queue sessions, at most one per guild."""

    def __init__(self, delete_artifact: Callable[[str], bool],
                 controller_factory: Callable[[object], PlaybackController] = PlaybackController):
        self.delete_artifact = delete_artifact
        self.controller_factory = controller_factory
        self._sessions: Dict[int, GuildQueueSession] = {}
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __contains__(self, guild_id: int) -> bool:
        return guild_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, guild_id: int) -> Optional[GuildQueueSession]:
        return self._sessions.get(guild_id)

    def pending(self, guild_id: int) -> Tuple[Track, ...]:
        session = self._sessions.get(guild_id)
        return session.pending_tracks if session else ()

    async def _get_or_create(self, guild_id: int, connect: ConnectFn) -> GuildQueueSession:
        session = self._sessions.get(guild_id)
        if session is not None:
            if session.state.status is not PlayerState.DRAINING:
                return session
            # Drained while we waited for the lock
            del self._sessions[guild_id]
            await session.voice.teardown()

        voice = await connect()
        controller = self.controller_factory(voice)
        session = GuildQueueSession(guild_id, voice, controller, self)
        controller.on_idle(session._on_idle)
        controller.on_error(session._on_error)
        self._sessions[guild_id] = session
        logger.info(f"Created queue session for guild {guild_id}")
        return session

    async def get_or_create(self, guild_id: int, connect: ConnectFn) -> GuildQueueSession:
        """Return the live session, joining voice through ``connect`` if there is none."""
        async with self._locks[guild_id]:
            return await self._get_or_create(guild_id, connect)

    async def enqueue(self, guild_id: int, track: Track, connect: ConnectFn) -> int:
        """
        Append ``track`` to the guild's queue, starting playback if idle.

        The session is resolved again here so a queue that drained while the
        track was downloading gets a fresh session instead of a defunct one.

        Returns:
            int: 1-based position the track took in the pending list
        """
        async with self._locks[guild_id]:
            session = await self._get_or_create(guild_id, connect)
            position = len(session.pending_tracks) + 1
            await session.dispatch(TrackEnqueued(track))
            logger.info(f"[QUEUE] Added {track.source_url} to guild {guild_id} | pending: {len(session.pending_tracks)}")
            return position

    async def release_if_idle(self, guild_id: int) -> bool:
        """Tear down a session that has nothing playing, pending or downloading."""
        async with self._locks[guild_id]:
            session = self._sessions.get(guild_id)
            if session is None or not session.is_idle or session.pending_tracks or session.downloads:
                return False
            session.state = QueueState(PlayerState.DRAINING)
            self._sessions.pop(guild_id, None)
            await session.voice.teardown()
            return True

    async def _drain(self, session: GuildQueueSession) -> None:
        async with self._locks[session.guild_id]:
            if self._sessions.get(session.guild_id) is session:
                del self._sessions[session.guild_id]
            await session.voice.teardown()
        logger.info(f"Removed queue session for guild {session.guild_id}")

    async def shutdown(self) -> None:
        """Tear down every session and delete every artifact it still owns."""
        for guild_id in list(self._sessions):
            session = self._sessions.pop(guild_id)
            tracks = list(session.pending_tracks)
            if session.state.current:
                tracks.insert(0, session.state.current)
            session.state = QueueState(PlayerState.DRAINING)
            await session.voice.teardown()
            for track in tracks:
                self.delete_artifact(track.artifact_path)
