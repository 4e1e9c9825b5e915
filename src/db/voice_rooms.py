"""
Accès base de données pour les salons temporaires.

Toutes les écritures sont des upserts (`ON CONFLICT`) ou des suppressions
conditionnelles : deux handlers concurrents convergent au lieu de dupliquer des lignes.
Les identifiants passent par `db.ids` (encodage 64 bits non signés -> BIGINT).
"""
from __future__ import annotations

import asyncpg
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from core import db as core_db
from core.voice_rooms.models import (
    ChatRestriction,
    CommandAccess,
    CreatorChannelConfig,
    OwnerPreference,
    Room,
    SoundboardRestriction,
)
from db.ids import decode_id, decode_opt, encode_id, encode_opt

logger = logging.getLogger(__name__)

VOICE_ROOM_SCHEMA = """
CREATE TABLE IF NOT EXISTS creator_channel (
    id BIGINT PRIMARY KEY,
    guild_id BIGINT NOT NULL,
    name_template TEXT NOT NULL,
    default_limit INT NOT NULL DEFAULT 0,
    welcome_message TEXT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS voice_room (
    id BIGINT PRIMARY KEY,
    guild_id BIGINT NOT NULL,
    owner_id BIGINT NOT NULL,
    creator_channel_id BIGINT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    platform TEXT NULL,
    build TEXT NULL
);

CREATE TABLE IF NOT EXISTS owner_preference (
    owner_id BIGINT NOT NULL,
    guild_id BIGINT NOT NULL,
    chat_restriction TEXT NOT NULL DEFAULT 'always',
    soundboard_restriction TEXT NOT NULL DEFAULT 'anyone',
    command_access TEXT NOT NULL DEFAULT 'anyone',
    last_limit INT NULL,
    last_platform TEXT NULL,
    last_build TEXT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (owner_id, guild_id)
);

CREATE TABLE IF NOT EXISTS user_trust (
    owner_id BIGINT NOT NULL,
    guild_id BIGINT NOT NULL,
    trusted_id BIGINT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (owner_id, guild_id, trusted_id)
);

CREATE TABLE IF NOT EXISTS user_block (
    owner_id BIGINT NOT NULL,
    guild_id BIGINT NOT NULL,
    blocked_id BIGINT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (owner_id, guild_id, blocked_id)
);

CREATE TABLE IF NOT EXISTS staff_role (
    guild_id BIGINT NOT NULL,
    role_id BIGINT NOT NULL,
    PRIMARY KEY (guild_id, role_id)
);

CREATE TABLE IF NOT EXISTS platform_role (
    role_id BIGINT PRIMARY KEY,
    guild_id BIGINT NOT NULL,
    platform TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS group_rules (
    owner_id BIGINT NOT NULL,
    guild_id BIGINT NOT NULL,
    creator_channel_id BIGINT NOT NULL,
    rules TEXT NOT NULL,
    PRIMARY KEY (owner_id, guild_id, creator_channel_id)
);

CREATE INDEX IF NOT EXISTS idx_creator_channel_guild ON creator_channel(guild_id);
CREATE INDEX IF NOT EXISTS idx_voice_room_owner ON voice_room(owner_id, guild_id);
"""

# (table, colonne cible) pour chaque côté d'une relation ; l'autre côté est l'opposé
_RELATIONS = {
    "trust": ("user_trust", "trusted_id"),
    "block": ("user_block", "blocked_id"),
}
_OPPOSITE = {"trust": "block", "block": "trust"}


def diff_selection(existing: Iterable[int], selected: Iterable[int], owner_id: int) -> Tuple[Set[int], Set[int]]:
    """Retourne (à_retirer, à_ajouter). Le propriétaire n'est jamais dans ses propres listes."""
    existing_set = set(existing)
    selected_set = {uid for uid in selected if uid != owner_id}
    return existing_set - selected_set, selected_set - existing_set


def _creator_from_record(rec) -> CreatorChannelConfig:
    return CreatorChannelConfig(
        id=decode_id(rec["id"]),
        guild_id=decode_id(rec["guild_id"]),
        name_template=rec["name_template"],
        default_limit=rec["default_limit"] or 0,
        welcome_message=rec["welcome_message"],
    )


def _room_from_record(rec) -> Room:
    return Room(
        id=decode_id(rec["id"]),
        guild_id=decode_id(rec["guild_id"]),
        owner_id=decode_id(rec["owner_id"]),
        creator_channel_id=decode_opt(rec["creator_channel_id"]),
        created_at=rec["created_at"],
        platform=rec["platform"],
        build=rec["build"],
    )


def _preference_from_record(rec) -> OwnerPreference:
    return OwnerPreference(
        owner_id=decode_id(rec["owner_id"]),
        guild_id=decode_id(rec["guild_id"]),
        chat=ChatRestriction(rec["chat_restriction"]),
        soundboard=SoundboardRestriction(rec["soundboard_restriction"]),
        command_access=CommandAccess(rec["command_access"]),
        last_limit=rec["last_limit"],
        last_platform=rec["last_platform"],
        last_build=rec["last_build"] or None,
    )


class VoiceRoomStore:
    """Store injecté dans le manager et les commandes ; le pool appartient au bot."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def ensure_schema(self):
        await core_db.ensure_schema(self.pool, VOICE_ROOM_SCHEMA, "voice rooms")

    # ---------- creator channels ----------
    async def upsert_creator_channel(self, channel_id: int, guild_id: int, name_template: str, default_limit: int = 0) -> CreatorChannelConfig:
        q = """INSERT INTO creator_channel(id, guild_id, name_template, default_limit)
                VALUES($1,$2,$3,$4)
                ON CONFLICT (id) DO UPDATE SET name_template = EXCLUDED.name_template, default_limit = EXCLUDED.default_limit
                RETURNING id, guild_id, name_template, default_limit, welcome_message"""
        async with self.pool.acquire() as conn:
            rec = await conn.fetchrow(q, encode_id(channel_id), encode_id(guild_id), name_template, default_limit)
        return _creator_from_record(rec)

    async def set_welcome_message(self, channel_id: int, message: Optional[str]) -> bool:
        q = "UPDATE creator_channel SET welcome_message = $2 WHERE id=$1"
        async with self.pool.acquire() as conn:
            status = await conn.execute(q, encode_id(channel_id), message or None)
        return status.endswith(" 1")

    async def fetch_creator_channel(self, channel_id: int) -> Optional[CreatorChannelConfig]:
        q = "SELECT id, guild_id, name_template, default_limit, welcome_message FROM creator_channel WHERE id=$1"
        async with self.pool.acquire() as conn:
            rec = await conn.fetchrow(q, encode_id(channel_id))
        return _creator_from_record(rec) if rec else None

    async def list_creator_channels(self, guild_id: Optional[int] = None) -> List[CreatorChannelConfig]:
        async with self.pool.acquire() as conn:
            if guild_id is None:
                recs = await conn.fetch("SELECT id, guild_id, name_template, default_limit, welcome_message FROM creator_channel")
            else:
                recs = await conn.fetch(
                    "SELECT id, guild_id, name_template, default_limit, welcome_message FROM creator_channel WHERE guild_id=$1",
                    encode_id(guild_id),
                )
        return [_creator_from_record(r) for r in recs]

    async def delete_creator_channel(self, channel_id: int) -> bool:
        q = "DELETE FROM creator_channel WHERE id=$1 RETURNING id"
        async with self.pool.acquire() as conn:
            return await conn.fetchval(q, encode_id(channel_id)) is not None

    # ---------- rooms ----------
    async def insert_room(self, room: Room) -> None:
        q = """INSERT INTO voice_room(id, guild_id, owner_id, creator_channel_id, created_at, platform, build)
                VALUES($1,$2,$3,$4,$5,$6,$7)
                ON CONFLICT (id) DO UPDATE SET owner_id = EXCLUDED.owner_id, platform = EXCLUDED.platform, build = EXCLUDED.build"""
        async with self.pool.acquire() as conn:
            await conn.execute(
                q,
                encode_id(room.id),
                encode_id(room.guild_id),
                encode_id(room.owner_id),
                encode_opt(room.creator_channel_id),
                room.created_at,
                room.platform,
                room.build,
            )

    async def fetch_room(self, room_id: int) -> Optional[Room]:
        q = "SELECT id, guild_id, owner_id, creator_channel_id, created_at, platform, build FROM voice_room WHERE id=$1"
        async with self.pool.acquire() as conn:
            rec = await conn.fetchrow(q, encode_id(room_id))
        return _room_from_record(rec) if rec else None

    async def fetch_all_rooms(self) -> List[Room]:
        q = "SELECT id, guild_id, owner_id, creator_channel_id, created_at, platform, build FROM voice_room"
        async with self.pool.acquire() as conn:
            recs = await conn.fetch(q)
        return [_room_from_record(r) for r in recs]

    async def fetch_rooms_by_owner(self, owner_id: int, guild_id: int) -> List[Room]:
        q = """SELECT id, guild_id, owner_id, creator_channel_id, created_at, platform, build
                FROM voice_room WHERE owner_id=$1 AND guild_id=$2"""
        async with self.pool.acquire() as conn:
            recs = await conn.fetch(q, encode_id(owner_id), encode_id(guild_id))
        return [_room_from_record(r) for r in recs]

    async def delete_room(self, room_id: int) -> bool:
        q = "DELETE FROM voice_room WHERE id=$1 RETURNING id"
        async with self.pool.acquire() as conn:
            return await conn.fetchval(q, encode_id(room_id)) is not None

    async def set_room_owner(self, room_id: int, owner_id: int) -> bool:
        q = "UPDATE voice_room SET owner_id=$2 WHERE id=$1 RETURNING id"
        async with self.pool.acquire() as conn:
            return await conn.fetchval(q, encode_id(room_id), encode_id(owner_id)) is not None

    async def update_room_attributes(self, room_id: int, *, platform: Optional[str] = None, build: Optional[str] = None) -> None:
        q = """UPDATE voice_room SET platform = COALESCE($2, platform), build = COALESCE($3, build) WHERE id=$1"""
        async with self.pool.acquire() as conn:
            await conn.execute(q, encode_id(room_id), platform, build)

    # ---------- préférences ----------
    async def fetch_preference(self, owner_id: int, guild_id: int) -> Optional[OwnerPreference]:
        q = """SELECT owner_id, guild_id, chat_restriction, soundboard_restriction, command_access,
                      last_limit, last_platform, last_build
                FROM owner_preference WHERE owner_id=$1 AND guild_id=$2"""
        async with self.pool.acquire() as conn:
            rec = await conn.fetchrow(q, encode_id(owner_id), encode_id(guild_id))
        return _preference_from_record(rec) if rec else None

    async def upsert_preference(
        self,
        owner_id: int,
        guild_id: int,
        *,
        chat: Optional[ChatRestriction] = None,
        soundboard: Optional[SoundboardRestriction] = None,
        command_access: Optional[CommandAccess] = None,
        last_limit: Optional[int] = None,
        last_platform: Optional[str] = None,
        last_build: Optional[str] = None,
    ) -> None:
        """Insert-or-update sur (owner, guild) ; seuls les champs fournis changent."""
        q = """
            INSERT INTO owner_preference(owner_id, guild_id, chat_restriction, soundboard_restriction,
                                         command_access, last_limit, last_platform, last_build)
            VALUES($1, $2, COALESCE($3::text, 'always'), COALESCE($4::text, 'anyone'),
                   COALESCE($5::text, 'anyone'), $6, $7, $8)
            ON CONFLICT (owner_id, guild_id) DO UPDATE SET
                chat_restriction = COALESCE($3::text, owner_preference.chat_restriction),
                soundboard_restriction = COALESCE($4::text, owner_preference.soundboard_restriction),
                command_access = COALESCE($5::text, owner_preference.command_access),
                last_limit = COALESCE($6, owner_preference.last_limit),
                last_platform = COALESCE($7, owner_preference.last_platform),
                last_build = COALESCE($8, owner_preference.last_build),
                updated_at = NOW()
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                q,
                encode_id(owner_id),
                encode_id(guild_id),
                chat.value if chat else None,
                soundboard.value if soundboard else None,
                command_access.value if command_access else None,
                last_limit,
                last_platform,
                last_build,
            )

    # ---------- trust / block ----------
    async def _fetch_relation(self, conn, kind: str, owner_id: int, guild_id: int) -> Set[int]:
        table, col = _RELATIONS[kind]
        recs = await conn.fetch(
            f"SELECT {col} FROM {table} WHERE owner_id=$1 AND guild_id=$2",
            encode_id(owner_id),
            encode_id(guild_id),
        )
        return {decode_id(r[col]) for r in recs}

    async def _link(self, conn, kind: str, owner_id: int, guild_id: int, other_id: int) -> None:
        # Exclusion mutuelle : l'arête opposée disparaît dans la même transaction
        opp_table, opp_col = _RELATIONS[_OPPOSITE[kind]]
        table, col = _RELATIONS[kind]
        args = (encode_id(owner_id), encode_id(guild_id), encode_id(other_id))
        await conn.execute(f"DELETE FROM {opp_table} WHERE owner_id=$1 AND guild_id=$2 AND {opp_col}=$3", *args)
        await conn.execute(
            f"INSERT INTO {table}(owner_id, guild_id, {col}) VALUES($1,$2,$3) ON CONFLICT DO NOTHING",
            *args,
        )

    async def _unlink(self, conn, kind: str, owner_id: int, guild_id: int, other_id: int) -> bool:
        table, col = _RELATIONS[kind]
        status = await conn.execute(
            f"DELETE FROM {table} WHERE owner_id=$1 AND guild_id=$2 AND {col}=$3",
            encode_id(owner_id),
            encode_id(guild_id),
            encode_id(other_id),
        )
        return not status.endswith(" 0")

    async def _sync(self, conn, kind: str, owner_id: int, guild_id: int, selected: Iterable[int]) -> Tuple[Set[int], Set[int]]:
        existing = await self._fetch_relation(conn, kind, owner_id, guild_id)
        to_remove, to_add = diff_selection(existing, selected, owner_id)
        for uid in sorted(to_remove):
            await self._unlink(conn, kind, owner_id, guild_id, uid)
        for uid in sorted(to_add):
            await self._link(conn, kind, owner_id, guild_id, uid)
        logger.debug("Sync %s owner=%s guild=%s: +%s -%s", kind, owner_id, guild_id, len(to_add), len(to_remove))
        return to_add, to_remove

    async def fetch_trusted(self, owner_id: int, guild_id: int) -> Set[int]:
        async with self.pool.acquire() as conn:
            return await self._fetch_relation(conn, "trust", owner_id, guild_id)

    async def fetch_blocked(self, owner_id: int, guild_id: int) -> Set[int]:
        async with self.pool.acquire() as conn:
            return await self._fetch_relation(conn, "block", owner_id, guild_id)

    async def add_trust(self, owner_id: int, guild_id: int, user_id: int) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._link(conn, "trust", owner_id, guild_id, user_id)

    async def add_block(self, owner_id: int, guild_id: int, user_id: int) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._link(conn, "block", owner_id, guild_id, user_id)

    async def remove_trust(self, owner_id: int, guild_id: int, user_id: int) -> bool:
        async with self.pool.acquire() as conn:
            return await self._unlink(conn, "trust", owner_id, guild_id, user_id)

    async def remove_block(self, owner_id: int, guild_id: int, user_id: int) -> bool:
        async with self.pool.acquire() as conn:
            return await self._unlink(conn, "block", owner_id, guild_id, user_id)

    async def sync_trusted(self, owner_id: int, guild_id: int, selected: Iterable[int]) -> Tuple[Set[int], Set[int]]:
        """Remplace la liste de confiance par `selected` (diff : ajoutés, retirés)."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                return await self._sync(conn, "trust", owner_id, guild_id, selected)

    async def sync_blocked(self, owner_id: int, guild_id: int, selected: Iterable[int]) -> Tuple[Set[int], Set[int]]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                return await self._sync(conn, "block", owner_id, guild_id, selected)

    async def sync_relations(self, owner_id: int, guild_id: int, trusted: Iterable[int], blocked: Iterable[int]) -> None:
        """Confiance puis blocage : un utilisateur sélectionné des deux côtés finit bloqué."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._sync(conn, "trust", owner_id, guild_id, trusted)
                await self._sync(conn, "block", owner_id, guild_id, blocked)

    # ---------- staff ----------
    async def add_staff_role(self, guild_id: int, role_id: int) -> None:
        q = "INSERT INTO staff_role(guild_id, role_id) VALUES($1,$2) ON CONFLICT DO NOTHING"
        async with self.pool.acquire() as conn:
            await conn.execute(q, encode_id(guild_id), encode_id(role_id))

    async def remove_staff_role(self, guild_id: int, role_id: int) -> bool:
        q = "DELETE FROM staff_role WHERE guild_id=$1 AND role_id=$2 RETURNING role_id"
        async with self.pool.acquire() as conn:
            return await conn.fetchval(q, encode_id(guild_id), encode_id(role_id)) is not None

    async def fetch_staff_roles(self, guild_id: int) -> Set[int]:
        q = "SELECT role_id FROM staff_role WHERE guild_id=$1"
        async with self.pool.acquire() as conn:
            recs = await conn.fetch(q, encode_id(guild_id))
        return {decode_id(r["role_id"]) for r in recs}

    # ---------- rôles plateforme ----------
    async def set_platform_role(self, guild_id: int, role_id: int, platform: str) -> None:
        q = """INSERT INTO platform_role(role_id, guild_id, platform) VALUES($1,$2,$3)
                ON CONFLICT (role_id) DO UPDATE SET platform = EXCLUDED.platform"""
        async with self.pool.acquire() as conn:
            await conn.execute(q, encode_id(role_id), encode_id(guild_id), platform)

    async def remove_platform_role(self, role_id: int) -> bool:
        q = "DELETE FROM platform_role WHERE role_id=$1 RETURNING role_id"
        async with self.pool.acquire() as conn:
            return await conn.fetchval(q, encode_id(role_id)) is not None

    async def fetch_platform_roles(self, guild_id: int) -> Dict[int, str]:
        q = "SELECT role_id, platform FROM platform_role WHERE guild_id=$1"
        async with self.pool.acquire() as conn:
            recs = await conn.fetch(q, encode_id(guild_id))
        return {decode_id(r["role_id"]): r["platform"] for r in recs}

    # ---------- règles de groupe ----------
    async def set_group_rules(self, owner_id: int, guild_id: int, creator_channel_id: int, rules: Optional[str]) -> None:
        args = (encode_id(owner_id), encode_id(guild_id), encode_id(creator_channel_id))
        async with self.pool.acquire() as conn:
            if not rules:
                await conn.execute(
                    "DELETE FROM group_rules WHERE owner_id=$1 AND guild_id=$2 AND creator_channel_id=$3", *args
                )
                return
            await conn.execute(
                """INSERT INTO group_rules(owner_id, guild_id, creator_channel_id, rules) VALUES($1,$2,$3,$4)
                    ON CONFLICT (owner_id, guild_id, creator_channel_id) DO UPDATE SET rules = EXCLUDED.rules""",
                *args,
                rules,
            )

    async def fetch_group_rules(self, owner_id: int, guild_id: int, creator_channel_id: int) -> Optional[str]:
        q = "SELECT rules FROM group_rules WHERE owner_id=$1 AND guild_id=$2 AND creator_channel_id=$3"
        async with self.pool.acquire() as conn:
            return await conn.fetchval(q, encode_id(owner_id), encode_id(guild_id), encode_id(creator_channel_id))


__all__ = ["VOICE_ROOM_SCHEMA", "VoiceRoomStore", "diff_selection"]
