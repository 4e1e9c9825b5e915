"""Store asyncpg testé contre une connexion factice : SQL émis et encodage des identifiants."""
from __future__ import annotations

import re

import pytest

from core.voice_rooms.models import ChatRestriction, CommandAccess
from db.voice_rooms import VoiceRoomStore, diff_selection

OWNER = 10
GUILD = 20


def test_diff_selection():
    to_remove, to_add = diff_selection({1, 2, 3}, {2, 3, 4, OWNER}, OWNER)
    assert to_remove == {1}
    assert to_add == {4}


def test_diff_selection_never_touches_unchanged_rows():
    to_remove, to_add = diff_selection({1, 2}, {1, 2}, OWNER)
    assert to_remove == set() and to_add == set()


def _sql(call) -> str:
    return " ".join(call.args[0].split())


@pytest.mark.asyncio
async def test_link_removes_opposite_edge_first(pool, conn):
    store = VoiceRoomStore(pool)
    await store.add_block(OWNER, GUILD, 2**64 - 1)
    calls = conn.execute.await_args_list
    assert _sql(calls[0]).startswith("DELETE FROM user_trust")
    assert _sql(calls[1]).startswith("INSERT INTO user_block")
    # identifiant >= 2**63 stocké en complément à deux
    assert calls[1].args[1:] == (OWNER, GUILD, -1)
    conn.transaction.assert_called_once()


@pytest.mark.asyncio
async def test_fetch_trusted_decodes_ids(pool, conn):
    conn.fetch.return_value = [{"trusted_id": -1}, {"trusted_id": 5}]
    store = VoiceRoomStore(pool)
    assert await store.fetch_trusted(OWNER, GUILD) == {2**64 - 1, 5}


@pytest.mark.asyncio
async def test_sync_trusted_applies_only_the_diff(pool, conn):
    conn.fetch.return_value = [{"trusted_id": 1}, {"trusted_id": 2}]
    store = VoiceRoomStore(pool)
    added, removed = await store.sync_trusted(OWNER, GUILD, {2, 3, OWNER})
    assert added == {3}
    assert removed == {1}
    statements = [_sql(c) for c in conn.execute.await_args_list]
    assert statements[0].startswith("DELETE FROM user_trust")
    assert conn.execute.await_args_list[0].args[1:] == (OWNER, GUILD, 1)
    assert statements[1].startswith("DELETE FROM user_block")
    assert statements[2].startswith("INSERT INTO user_trust")
    assert len(statements) == 3


@pytest.mark.asyncio
async def test_sync_relations_runs_trust_before_block(pool, conn):
    store = VoiceRoomStore(pool)
    await store.sync_relations(OWNER, GUILD, trusted={7}, blocked={7})
    tables = [re.search(r"user_\w+", _sql(c)).group(0) for c in conn.execute.await_args_list]
    # confiance ajoutée puis retirée par le blocage : l'utilisateur finit bloqué
    assert tables == ["user_block", "user_trust", "user_trust", "user_block"]


@pytest.mark.asyncio
async def test_remove_trust_reports_missing_row(pool, conn):
    conn.execute.return_value = "DELETE 0"
    store = VoiceRoomStore(pool)
    assert await store.remove_trust(OWNER, GUILD, 3) is False


@pytest.mark.asyncio
async def test_set_welcome_message_unknown_channel(pool, conn):
    conn.execute.return_value = "UPDATE 0"
    store = VoiceRoomStore(pool)
    assert await store.set_welcome_message(1, "Salut") is False
    conn.execute.return_value = "UPDATE 1"
    assert await store.set_welcome_message(1, "") is True
    assert conn.execute.await_args.args[2] is None


@pytest.mark.asyncio
async def test_upsert_preference_passes_only_given_fields(pool, conn):
    store = VoiceRoomStore(pool)
    await store.upsert_preference(OWNER, GUILD, chat=ChatRestriction.OPEN_SPOTS, last_limit=5)
    sql = _sql(conn.execute.await_args)
    assert "ON CONFLICT (owner_id, guild_id) DO UPDATE" in sql
    assert conn.execute.await_args.args[1:] == (OWNER, GUILD, "open_spots", None, None, 5, None, None)


@pytest.mark.asyncio
async def test_fetch_preference_builds_model(pool, conn):
    conn.fetchrow.return_value = {
        "owner_id": OWNER,
        "guild_id": GUILD,
        "chat_restriction": "always",
        "soundboard_restriction": "owner",
        "command_access": "trusted",
        "last_limit": 3,
        "last_platform": "steam",
        "last_build": "",
    }
    store = VoiceRoomStore(pool)
    prefs = await store.fetch_preference(OWNER, GUILD)
    assert prefs.command_access == CommandAccess.TRUSTED
    assert prefs.last_limit == 3
    assert prefs.last_build is None


@pytest.mark.asyncio
async def test_fetch_room_missing(pool, conn):
    store = VoiceRoomStore(pool)
    assert await store.fetch_room(123) is None
