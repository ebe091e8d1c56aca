"""Tests for the py-cord dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from feedrelay.configuration.dispatch_settings import DispatchSettings
from feedrelay.datatypes.outcome_datatypes import ClassificationResult
from feedrelay.dispatch.discord_dispatcher import DiscordDispatcher

PLAIN = ClassificationResult.unrestricted()
AGE_GATED = ClassificationResult(requires_age_gate=True, confidence_score=0.6, categories=("primary",))


def _http_error(cls, status: int):
    response = MagicMock()
    response.status = status
    response.reason = "error"
    return cls(response, "boom")


def _client(channel=None, ready: bool = True):
    client = MagicMock()
    client.is_ready.return_value = ready
    client.get_channel.return_value = channel
    client.fetch_channel = AsyncMock(return_value=channel)
    return client


def _channel(message_id: int = 999):
    channel = MagicMock()
    message = MagicMock()
    message.id = message_id
    channel.send = AsyncMock(return_value=message)
    return channel


def _dispatcher(client, dispatch=None, age_gate=None) -> DiscordDispatcher:
    settings = DispatchSettings(dispatch or {"channel_id": 100}, age_gate or {})
    return DiscordDispatcher(client, settings)


@pytest.mark.asyncio
async def test_successful_dispatch(make_post):
    channel = _channel()
    client = _client(channel)

    result = await _dispatcher(client).dispatch(make_post(), PLAIN)

    assert result.ok is True
    assert result.message_id == 999
    assert result.channel_id == 100
    client.get_channel.assert_called_once_with(100)
    embed = channel.send.await_args.kwargs["embed"]
    assert isinstance(embed, discord.Embed)


@pytest.mark.asyncio
async def test_channel_is_fetched_when_not_cached(make_post):
    channel = _channel()
    client = _client(None)
    client.fetch_channel = AsyncMock(return_value=channel)

    result = await _dispatcher(client).dispatch(make_post(), PLAIN)

    assert result.ok is True
    client.fetch_channel.assert_awaited_once_with(100)


@pytest.mark.asyncio
async def test_client_not_ready_is_transient(make_post):
    result = await _dispatcher(_client(_channel(), ready=False)).dispatch(make_post(), PLAIN)

    assert result.ok is False
    assert result.retryable is True


@pytest.mark.asyncio
async def test_missing_channel_configuration_is_transient(make_post):
    result = await _dispatcher(_client(_channel()), dispatch={}).dispatch(make_post(), PLAIN)

    assert result.ok is False
    assert result.retryable is True


@pytest.mark.asyncio
@pytest.mark.parametrize("error, retryable", [
    (lambda: _http_error(discord.NotFound, 404), False),
    (lambda: _http_error(discord.Forbidden, 403), False),
    (lambda: _http_error(discord.HTTPException, 400), False),
    (lambda: _http_error(discord.HTTPException, 503), True),
    (lambda: ConnectionResetError("reset"), True),
])
async def test_send_failures_are_classified(make_post, error, retryable):
    channel = _channel()
    channel.send = AsyncMock(side_effect=error())

    result = await _dispatcher(_client(channel)).dispatch(make_post(), PLAIN)

    assert result.ok is False
    assert result.retryable is retryable


@pytest.mark.asyncio
async def test_age_gated_posts_go_to_the_restricted_channel(make_post):
    channel = _channel()
    client = _client(channel)
    dispatcher = _dispatcher(client, age_gate={"channel_id": 555})

    assert dispatcher.accepts_age_gated(make_post()) is True
    result = await dispatcher.dispatch(make_post(), AGE_GATED)

    assert result.channel_id == 555
    client.get_channel.assert_called_once_with(555)


def test_age_gated_posts_need_a_destination(make_post):
    strict = _dispatcher(_client(), age_gate={"require_restricted_channel": True})
    relaxed = _dispatcher(_client(), age_gate={"require_restricted_channel": False})

    assert strict.accepts_age_gated(make_post()) is False
    assert relaxed.accepts_age_gated(make_post()) is True


@pytest.mark.asyncio
async def test_age_gated_without_destination_is_permanent(make_post):
    result = await _dispatcher(_client(_channel())).dispatch(make_post(), AGE_GATED)

    assert result.ok is False
    assert result.retryable is False


def test_guild_override_channel(make_post):
    dispatcher = _dispatcher(_client(), dispatch={"channel_id": 100, "guild_channels": {"42": "4200"}})

    assert dispatcher.resolve_channel_id(make_post(target_guild_id=42), PLAIN) == 4200
    assert dispatcher.resolve_channel_id(make_post(target_guild_id=7), PLAIN) == 100
    assert dispatcher.resolve_channel_id(make_post(), PLAIN) == 100
