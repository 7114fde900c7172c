from functools import partial
from discord.ext import commands
import discord
import logging

from core.controller import MusicController
from core.downloader import Downloader
from core.message_handler import MusicCommands
from core.player import PlaybackController, make_audio_source

logger = logging.getLogger(__name__)

class MusicBot(commands.Bot):
    def __init__(self, config: dict):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.voice_states = True

        super().__init__(
            command_prefix=config['command_prefix'],
            intents=intents
        )
        self.config = config
        self.music = None

    async def setup_hook(self):
        downloader = Downloader(self.config['download_dir'], self.config['ffmpeg_path'])
        source_factory = partial(
            make_audio_source,
            volume=self.config['volume'],
            executable=self.config['ffmpeg_path']
        )
        self.music = MusicController(
            downloader,
            controller_factory=partial(PlaybackController, source_factory=source_factory),
            connect_timeout=self.config['connect_timeout']
        )
        await self.add_cog(MusicCommands(self, self.music))

    async def on_ready(self):
        logger.info(f'Bot is ready! Logged in as {self.user}')

    async def close(self):
        """Clean up voice sessions and temporary files when shutting down."""
        if self.music:
            await self.music.shutdown()
        await super().close()
