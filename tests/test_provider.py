"""Traduction des erreurs discord.py et politique de retry du provider."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.permissions import CHAT, CONNECT, SEND_MESSAGES
from core.voice_rooms.errors import ConfigurationError, ProviderError, TransientProviderError
from core.voice_rooms.models import SubjectKind
from core.voice_rooms.policy import OverwriteSet
from core.voice_rooms.provider import DiscordProvider, overwrites_from_discord, to_discord_overwrites


def http_error(cls, status: int):
    response = MagicMock(status=status, reason="test")
    return cls(response, "erreur simulée")


class Flaky:
    """Fabrique d'appels qui échoue `failures` fois avant de réussir."""

    def __init__(self, exc, failures: int):
        self.exc = exc
        self.failures = failures
        self.attempts = 0

    def __call__(self):
        self.attempts += 1
        return self._run()

    async def _run(self):
        if self.attempts <= self.failures:
            raise self.exc
        return "ok"


@pytest.mark.asyncio
async def test_rate_limit_is_retried():
    provider = DiscordProvider(timeout=1, retries=1)
    call = Flaky(http_error(discord.HTTPException, 429), failures=1)
    assert await provider._call("op", call) == "ok"
    assert call.attempts == 2


@pytest.mark.asyncio
async def test_server_errors_exhaust_retries():
    provider = DiscordProvider(timeout=1, retries=2)
    call = Flaky(http_error(discord.DiscordServerError, 503), failures=10)
    with pytest.raises(TransientProviderError):
        await provider._call("op", call)
    assert call.attempts == 3


@pytest.mark.asyncio
async def test_timeout_becomes_transient_error():
    provider = DiscordProvider(timeout=0.01, retries=1)
    attempts = 0

    def slow():
        nonlocal attempts
        attempts += 1
        return asyncio.sleep(1)

    with pytest.raises(TransientProviderError):
        await provider._call("op", slow)
    assert attempts == 2


@pytest.mark.asyncio
async def test_forbidden_is_a_configuration_error_without_retry():
    provider = DiscordProvider(timeout=1, retries=3)
    call = Flaky(http_error(discord.Forbidden, 403), failures=10)
    with pytest.raises(ConfigurationError):
        await provider._call("op", call)
    assert call.attempts == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("cls, status", [(discord.NotFound, 404), (discord.HTTPException, 400)])
async def test_permanent_errors_are_not_retried(cls, status):
    provider = DiscordProvider(timeout=1, retries=3)
    call = Flaky(http_error(cls, status), failures=10)
    with pytest.raises(ProviderError) as info:
        await provider._call("op", call)
    assert not isinstance(info.value, TransientProviderError)
    assert call.attempts == 1


def test_overwrites_from_discord_reads_category_rules():
    role = MagicMock(spec=discord.Role)
    role.id = 42
    member = MagicMock(spec=discord.Member)
    member.id = 7
    rules = overwrites_from_discord({
        role: discord.PermissionOverwrite(send_messages=False),
        member: discord.PermissionOverwrite(connect=True),
    })
    by_id = {r.subject_id: r for r in rules}
    assert by_id[42].kind == SubjectKind.ROLE
    assert by_id[42].deny == SEND_MESSAGES
    assert by_id[7].kind == SubjectKind.MEMBER
    assert by_id[7].allow == CONNECT


def test_to_discord_overwrites_uses_typed_objects_for_unknown_subjects():
    guild = MagicMock(spec=discord.Guild)
    guild.get_role.return_value = None
    guild.get_member.return_value = None
    ows = OverwriteSet()
    ows.set(1000, SubjectKind.ROLE, deny=CHAT)
    ows.set(7, SubjectKind.MEMBER, allow=CONNECT)
    mapping = to_discord_overwrites(guild, ows)
    targets = {t.id: (t, o) for t, o in mapping.items()}
    role_target, role_ow = targets[1000]
    assert role_target.type is discord.Role
    assert role_ow.pair()[1].value == CHAT
    member_target, member_ow = targets[7]
    assert member_target.type is discord.Member
    assert member_ow.pair()[0].value == CONNECT


@pytest.mark.asyncio
async def test_apply_overwrites_edits_channel_once():
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.guild = MagicMock(spec=discord.Guild)
    channel.guild.get_role.return_value = None
    channel.guild.get_member.return_value = None
    channel.edit = AsyncMock()
    ows = OverwriteSet()
    ows.set(7, SubjectKind.MEMBER, allow=CONNECT)
    await DiscordProvider(timeout=1, retries=0).apply_overwrites(channel, ows)
    channel.edit.assert_awaited_once()
    assert len(channel.edit.await_args.kwargs["overwrites"]) == 1
