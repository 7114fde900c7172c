import asyncio
import types
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.voice_manager import VoiceSession, connect
from utils.exceptions import ConnectionTimeout, VoiceError


def voice_client(guild_id=1, playing=False):
    client = MagicMock()
    client.guild = types.SimpleNamespace(id=guild_id)
    client.is_playing.return_value = playing
    client.is_paused.return_value = False
    client.disconnect = AsyncMock()
    return client


def voice_channel(connect_mock, lingering=None):
    guild = types.SimpleNamespace(id=1, voice_client=lingering)
    return types.SimpleNamespace(id=10, name="music", guild=guild, connect=connect_mock)


@pytest.mark.asyncio
async def test_connect_returns_ready_session():
    client = voice_client()
    channel = voice_channel(AsyncMock(return_value=client))

    session = await connect(channel, timeout=5)

    assert isinstance(session, VoiceSession)
    assert session.voice_client is client
    assert session.guild_id == 1
    channel.connect.assert_awaited_once_with(timeout=5, reconnect=False, self_deaf=False, self_mute=False)


@pytest.mark.asyncio
async def test_join_timeout_discards_half_joined_client():
    lingering = voice_client()
    channel = voice_channel(AsyncMock(side_effect=asyncio.TimeoutError), lingering=lingering)

    with pytest.raises(ConnectionTimeout):
        await connect(channel, timeout=5)

    lingering.disconnect.assert_awaited_once_with(force=True)


@pytest.mark.asyncio
async def test_join_timeout_without_client_still_raises():
    channel = voice_channel(AsyncMock(side_effect=asyncio.TimeoutError))

    with pytest.raises(ConnectionTimeout) as excinfo:
        await connect(channel, timeout=30)
    assert "30s" in str(excinfo.value)


@pytest.mark.asyncio
async def test_refused_join_is_a_voice_error():
    channel = voice_channel(AsyncMock(side_effect=discord.ClientException("Already connected to a voice channel.")))

    with pytest.raises(VoiceError) as excinfo:
        await connect(channel)

    assert not isinstance(excinfo.value, ConnectionTimeout)
    assert "Already connected" in str(excinfo.value)


@pytest.mark.asyncio
async def test_teardown_stops_then_disconnects_once():
    calls = []
    client = voice_client(playing=True)
    client.stop.side_effect = lambda: calls.append("stop")
    client.disconnect = AsyncMock(side_effect=lambda force: calls.append(("disconnect", force)))
    session = VoiceSession(client)

    await session.teardown()
    await session.teardown()

    assert calls == ["stop", ("disconnect", True)]
    assert session.closed


@pytest.mark.asyncio
async def test_teardown_failure_is_logged(caplog):
    client = voice_client()
    client.disconnect = AsyncMock(side_effect=discord.ClientException("gone"))
    session = VoiceSession(client)

    await session.teardown()

    client.stop.assert_not_called()
    assert "Error during voice connection cleanup" in caplog.text
