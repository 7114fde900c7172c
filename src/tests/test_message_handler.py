import types

import pytest

from core.interfaces import Track
from core.message_handler import MusicCommands, PlayRequest, format_queue, parse_play_args
from utils.constants import MESSAGES
from utils.exceptions import ConnectionTimeout, FetchError, QueueError


class FakeContext:
    def __init__(self, in_voice=True, can_speak=True, guild_id=1):
        permissions = types.SimpleNamespace(connect=True, speak=can_speak)
        channel = types.SimpleNamespace(id=10, name="music", permissions_for=lambda member: permissions)
        voice = types.SimpleNamespace(channel=channel) if in_voice else None
        self.author = types.SimpleNamespace(voice=voice)
        self.guild = types.SimpleNamespace(id=guild_id, me=object())
        self.channel = channel
        self.replies = []
        self.sent = []

    async def reply(self, content):
        self.replies.append(content)

    async def send(self, content):
        self.sent.append(content)


class FakeMusic:
    def __init__(self, error=None, queue=()):
        self.error = error
        self.queue = tuple(queue)
        self.calls = []

    async def play_immediate(self, guild_id, channel, url, loop_enabled=False):
        self.calls.append(("immediate", url, loop_enabled))
        if self.error:
            raise self.error
        return Track(url, "/tmp/track-1.mp3")

    async def play_queued(self, guild_id, channel, url):
        self.calls.append(("queued", url))
        if self.error:
            raise self.error
        return 3

    def list_queue(self, guild_id):
        return self.queue


async def run_play(music, ctx, *args):
    cog = MusicCommands(types.SimpleNamespace(), music)
    await MusicCommands.play.callback(cog, ctx, *args)


def test_parse_plain_url():
    assert parse_play_args(["http://a"]) == PlayRequest("http://a", loop=False, queued=False)


def test_parse_flags_anywhere():
    request = parse_play_args(["http://a", "-l"])
    assert request.url == "http://a"
    assert request.loop and not request.queued


def test_queue_flag_wins_over_loop():
    request = parse_play_args(["-l", "-q", "http://a"])
    assert request.queued
    assert request.loop_ignored


def test_parse_without_url():
    assert parse_play_args(["-q"]).url is None


def test_format_queue_is_one_indexed():
    tracks = [Track("http://a", "/tmp/a.mp3"), Track("http://b", "/tmp/b.mp3")]
    assert format_queue(tracks) == "Current Queue:\n1. http://a\n2. http://b"


@pytest.mark.asyncio
async def test_play_requires_voice_channel():
    music = FakeMusic()
    ctx = FakeContext(in_voice=False)
    await run_play(music, ctx, "http://a")
    assert ctx.replies == [MESSAGES['VOICE_CHANNEL_REQUIRED']]
    assert music.calls == []


@pytest.mark.asyncio
async def test_play_requires_speak_permission():
    ctx = FakeContext(can_speak=False)
    await run_play(FakeMusic(), ctx, "http://a")
    assert ctx.replies == [MESSAGES['MISSING_PERMISSIONS']]


@pytest.mark.asyncio
async def test_play_requires_url():
    ctx = FakeContext()
    await run_play(FakeMusic(), ctx, "-l")
    assert ctx.replies == [MESSAGES['URL_REQUIRED']]


@pytest.mark.asyncio
async def test_play_immediate_with_loop():
    music = FakeMusic()
    ctx = FakeContext()
    await run_play(music, ctx, "-l", "http://a")
    assert music.calls == [("immediate", "http://a", True)]
    assert ctx.sent[-1] == MESSAGES['NOW_PLAYING'].format(url="http://a")


@pytest.mark.asyncio
async def test_play_queued_reports_position_and_ignored_loop():
    music = FakeMusic()
    ctx = FakeContext()
    await run_play(music, ctx, "-q", "-l", "http://a")
    assert music.calls == [("queued", "http://a")]
    assert ctx.sent[0] == MESSAGES['LOOP_IGNORED']
    assert ctx.sent[-1] == MESSAGES['TRACK_QUEUED'].format(position=3)


@pytest.mark.asyncio
@pytest.mark.parametrize("error, message", [
    (ConnectionTimeout("late"), MESSAGES['JOIN_TIMEOUT']),
    (FetchError("http://a", RuntimeError("404")), MESSAGES['DOWNLOAD_ERROR']),
    (QueueError(MESSAGES['QUEUE_BUSY']), MESSAGES['QUEUE_BUSY']),
])
async def test_play_reports_failures(error, message):
    ctx = FakeContext()
    await run_play(FakeMusic(error=error), ctx, "http://a")
    assert ctx.replies == [message]


@pytest.mark.asyncio
async def test_queue_command_when_empty():
    ctx = FakeContext()
    cog = MusicCommands(types.SimpleNamespace(), FakeMusic())
    await MusicCommands.queue.callback(cog, ctx)
    assert ctx.replies == [MESSAGES['QUEUE_EMPTY']]


@pytest.mark.asyncio
async def test_queue_command_lists_pending():
    ctx = FakeContext()
    music = FakeMusic(queue=[Track("http://b", "/tmp/b.mp3")])
    cog = MusicCommands(types.SimpleNamespace(), music)
    await MusicCommands.queue.callback(cog, ctx)
    assert ctx.sent == ["Current Queue:\n1. http://b"]


def test_list_is_an_alias_of_queue():
    assert "list" in MusicCommands.queue.aliases
