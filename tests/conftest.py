"""
Fixtures partagées : faux objets discord.py (MagicMock avec spec) et store asynchrone.

Les objets créés avec `spec=` passent les `isinstance` du code testé.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.voice_rooms.models import CreatorChannelConfig, Room

GUILD_ID = 900_000_000_000_000_001
CREATOR_ID = 900_000_000_000_000_010
ROOM_ID = 900_000_000_000_000_020
OWNER_ID = 100_000_000_000_000_001
OTHER_ID = 100_000_000_000_000_002
THIRD_ID = 100_000_000_000_000_003


def make_role(role_id: int) -> discord.Role:
    role = MagicMock(spec=discord.Role)
    role.id = role_id
    return role


def make_guild(guild_id: int = GUILD_ID, *, manage_channels: bool = True, members: Iterable = ()) -> discord.Guild:
    guild = MagicMock(spec=discord.Guild)
    guild.id = guild_id
    guild.name = "Serveur de test"
    guild.me = MagicMock()
    guild.me.guild_permissions.manage_channels = manage_channels
    lookup = {m.id: m for m in members}
    guild.get_member.side_effect = lambda uid: lookup.get(uid)
    guild.get_role.return_value = None
    guild.get_channel.return_value = None
    return guild


def make_voice_channel(channel_id: int, guild, *, members: Iterable = (), user_limit: int = 0) -> discord.VoiceChannel:
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = channel_id
    channel.guild = guild
    channel.members = list(members)
    channel.user_limit = user_limit
    channel.category = None
    channel.name = f"salon-{channel_id}"
    channel.mention = f"<#{channel_id}>"
    return channel


def make_member(
    user_id: int,
    *,
    display_name: str = "Membre",
    role_ids: Iterable[int] = (),
    voice_channel=None,
) -> discord.Member:
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.display_name = display_name
    member.mention = f"<@{user_id}>"
    member.roles = [make_role(rid) for rid in role_ids]
    member.voice = MagicMock(channel=voice_channel) if voice_channel is not None else None
    return member


def voice_state(channel=None) -> discord.VoiceState:
    state = MagicMock(spec=discord.VoiceState)
    state.channel = channel
    return state


def make_room(room_id: int = ROOM_ID, owner_id: int = OWNER_ID, *, creator_id: Optional[int] = CREATOR_ID) -> Room:
    return Room(
        id=room_id,
        guild_id=GUILD_ID,
        owner_id=owner_id,
        creator_channel_id=creator_id,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def make_store(*, creator: Optional[CreatorChannelConfig] = None, room: Optional[Room] = None) -> AsyncMock:
    store = AsyncMock()
    store.fetch_creator_channel.return_value = creator
    store.fetch_room.return_value = room
    store.fetch_preference.return_value = None
    store.fetch_trusted.return_value = set()
    store.fetch_blocked.return_value = set()
    store.fetch_staff_roles.return_value = set()
    store.fetch_platform_roles.return_value = {}
    store.fetch_group_rules.return_value = None
    store.fetch_all_rooms.return_value = []
    store.fetch_rooms_by_owner.return_value = []
    store.list_creator_channels.return_value = []
    store.delete_room.return_value = True
    store.delete_creator_channel.return_value = True
    return store


class FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class FakePool:
    """Pool asyncpg minimal : `acquire()` renvoie toujours la même connexion factice."""

    def __init__(self, conn):
        self.conn = conn

    def acquire(self):
        return FakeAcquire(self.conn)


@pytest.fixture
def conn():
    c = MagicMock()
    c.execute = AsyncMock(return_value="INSERT 0 1")
    c.fetch = AsyncMock(return_value=[])
    c.fetchrow = AsyncMock(return_value=None)
    c.fetchval = AsyncMock(return_value=None)
    c.transaction = MagicMock(side_effect=lambda: FakeTransaction())
    return c


@pytest.fixture
def pool(conn):
    return FakePool(conn)


@pytest.fixture
def creator_config():
    return CreatorChannelConfig(id=CREATOR_ID, guild_id=GUILD_ID, name_template="{USER}'s Channel", default_limit=4)


@pytest.fixture
def provider():
    return AsyncMock()


@pytest.fixture
def bot():
    b = MagicMock()
    b.get_channel.return_value = None
    return b
