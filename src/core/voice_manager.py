"""
Voice session handling.

A VoiceSession owns one guild's ``discord.VoiceClient``: it is created by a
bounded-wait join, acts as the audio sink for the playback controller and is
torn down exactly once.
"""

import asyncio
import logging
from typing import Callable, Optional

import discord

from utils.constants import CONNECT_TIMEOUT
from utils.exceptions import ConnectionTimeout, VoiceError

logger = logging.getLogger(__name__)


class VoiceSession:
    def __init__(self, voice_client: discord.VoiceClient):
        self.voice_client = voice_client
        self.guild_id = voice_client.guild.id
        self.closed = False

    def play(self, source: discord.AudioSource, after: Callable[[Optional[Exception]], None]) -> None:
        self.voice_client.play(source, after=after)

    def stop(self) -> None:
        if self.voice_client.is_playing() or self.voice_client.is_paused():
            self.voice_client.stop()

    def is_playing(self) -> bool:
        return self.voice_client.is_playing()

    async def teardown(self) -> None:
        """Disconnect from voice. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            self.stop()
            await self.voice_client.disconnect(force=True)
            logger.info(f"Voice session closed for guild {self.guild_id}")
        except (discord.DiscordException, OSError) as e:
            logger.error(f"Error during voice connection cleanup for guild {self.guild_id}: {e}")


async def connect(channel: discord.VoiceChannel, *, timeout: float = CONNECT_TIMEOUT) -> VoiceSession:
    """
    Join ``channel`` and wait until the connection is ready.

    Args:
        channel: The voice channel to connect to
        timeout: Seconds to wait for the connection to become ready

    Returns:
        VoiceSession: Ready session bound to the guild's voice client

    Raises:
        ConnectionTimeout: If the connection was not ready in time
        VoiceError: If Discord refused the connection
    """
    guild = channel.guild
    logger.info(f"Connecting to voice channel {channel.name} in guild {guild.id}")
    try:
        voice_client = await channel.connect(timeout=timeout, reconnect=False, self_deaf=False, self_mute=False)
    except asyncio.TimeoutError as e:
        await _discard_half_joined(guild)
        raise ConnectionTimeout(f"Voice connection not ready after {timeout:g}s") from e
    except discord.ClientException as e:
        raise VoiceError(str(e)) from e

    logger.info(f"Voice connection is ready in guild {guild.id}")
    return VoiceSession(voice_client)


async def _discard_half_joined(guild) -> None:
    if guild.voice_client:
        logger.warning(f"Found lingering guild voice client for guild {guild.id}, cleaning up")
        try:
            await guild.voice_client.disconnect(force=True)
        except (discord.DiscordException, OSError) as e:
            logger.error(f"Error disconnecting lingering voice client: {e}")
