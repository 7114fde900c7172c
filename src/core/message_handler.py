from dataclasses import dataclass
from typing import Optional, Sequence
from discord.ext import commands
import logging

from core.controller import MusicController
from utils.constants import MESSAGES, LOOP_FLAG, QUEUE_FLAG
from utils.exceptions import ConnectionTimeout, FetchError, QueueError, VoiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayRequest:
    url: Optional[str]
    loop: bool = False
    queued: bool = False

    @property
    def loop_ignored(self) -> bool:
        """Queued mode wins when both flags are given"""
        return self.loop and self.queued


def parse_play_args(args: Sequence[str]) -> PlayRequest:
    flags = {LOOP_FLAG, QUEUE_FLAG}
    rest = [arg for arg in args if arg not in flags]
    return PlayRequest(
        url=rest[0] if rest else None,
        loop=LOOP_FLAG in args,
        queued=QUEUE_FLAG in args,
    )


def format_queue(tracks) -> str:
    lines = [MESSAGES['QUEUE_HEADER']]
    for i, track in enumerate(tracks, 1):
        lines.append(f"{i}. {track.source_url}")
    return "\n".join(lines)


class MusicCommands(commands.Cog):
    def __init__(self, bot, music: MusicController):
        self.bot = bot
        self.music = music

    async def _voice_channel(self, ctx):
        """The author's voice channel if the bot may join and speak there"""
        voice_state = getattr(ctx.author, 'voice', None)
        if not voice_state or not voice_state.channel:
            await ctx.reply(MESSAGES['VOICE_CHANNEL_REQUIRED'])
            return None

        channel = voice_state.channel
        permissions = channel.permissions_for(ctx.guild.me)
        if not permissions.connect or not permissions.speak:
            await ctx.reply(MESSAGES['MISSING_PERMISSIONS'])
            return None
        return channel

    @commands.command(name='play')
    @commands.guild_only()
    async def play(self, ctx, *args):
        """Play a track now (-l to loop it) or add it to the queue (-q)"""
        channel = await self._voice_channel(ctx)
        if channel is None:
            return

        request = parse_play_args(args)
        if not request.url:
            await ctx.reply(MESSAGES['URL_REQUIRED'])
            return

        try:
            if request.queued:
                await self._play_queued(ctx, channel, request)
            else:
                await self._play_immediate(ctx, channel, request)
        except ConnectionTimeout as e:
            logger.error(f"Failed to join voice channel: {e}")
            await ctx.reply(MESSAGES['JOIN_TIMEOUT'])
        except VoiceError as e:
            logger.error(f"Failed to join voice channel: {e}")
            await ctx.reply(MESSAGES['JOIN_FAILED'])
        except FetchError as e:
            logger.error(f"Error downloading track: {e}")
            await ctx.reply(MESSAGES['DOWNLOAD_ERROR'])
        except QueueError as e:
            await ctx.reply(e.message)

    async def _play_queued(self, ctx, channel, request: PlayRequest):
        if request.loop_ignored:
            await ctx.send(MESSAGES['LOOP_IGNORED'])
        await ctx.send(MESSAGES['DOWNLOADING_QUEUE'])
        position = await self.music.play_queued(ctx.guild.id, channel, request.url)
        await ctx.send(MESSAGES['TRACK_QUEUED'].format(position=position))

    async def _play_immediate(self, ctx, channel, request: PlayRequest):
        await ctx.send(MESSAGES['DOWNLOADING'])
        track = await self.music.play_immediate(ctx.guild.id, channel, request.url, request.loop)
        if track:
            await ctx.send(MESSAGES['NOW_PLAYING'].format(url=track.source_url))

    @commands.command(name='queue', aliases=['list'])
    @commands.guild_only()
    async def queue(self, ctx):
        """Show the tracks waiting in the queue"""
        tracks = self.music.list_queue(ctx.guild.id)
        if not tracks:
            await ctx.reply(MESSAGES['QUEUE_EMPTY'])
            return
        await ctx.send(format_queue(tracks))

    async def cog_command_error(self, ctx, error):
        """Handle errors the commands did not handle themselves"""
        if isinstance(error, commands.CommandInvokeError):
            error = error.original
        if isinstance(error, commands.NoPrivateMessage):
            return
        logger.error(f"Error in command {ctx.command}: {error}", exc_info=error)
        await ctx.send(MESSAGES['COMMAND_ERROR'])
