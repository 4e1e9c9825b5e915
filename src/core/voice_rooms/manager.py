from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Set

import discord

from core import config
from .errors import ConfigurationError, ProviderError, VoiceRoomError
from .models import LiveMember, OwnerPreference, Room, RoomSnapshot, RoomState
from .naming import format_channel_name, render_welcome
from .ownership import OwnershipController
from .platforms import infer_platform
from .policy import OverwriteSet, resolve
from .provider import DiscordProvider, overwrites_from_discord
from views import voice_rooms as voice_view

logger = logging.getLogger(__name__)


class VoiceRoomsManager:
    """Cycle de vie des salons temporaires.

    Responsabilités:
        - Suivi des salons créateurs et des salons temporaires (état NONE/ACTIVE/DELETING).
        - Création quand un membre entre dans un salon créateur, suppression quand un salon se vide.
        - Réévaluation des permissions à chaque mouvement qui touche un salon suivi.
        - Nettoyage des orphelins au démarrage.

    Les mutations d'un salon (création, permissions, propriété, suppression) passent par un
    verrou par salon ; la création est sérialisée par salon créateur.
    """

    def __init__(self, bot: discord.Client, store, provider: Optional[DiscordProvider] = None):
        self.bot = bot
        self.store = store
        self.provider = provider or DiscordProvider()
        self.creator_channels: Set[int] = set()
        self.states: Dict[int, RoomState] = {}
        self.locks: Dict[int, asyncio.Lock] = {}
        self.ownership = OwnershipController(self)

    async def load(self):
        await self.store.ensure_schema()
        self.creator_channels = {c.id for c in await self.store.list_creator_channels()}
        for room in await self.store.fetch_all_rooms():
            self.states[room.id] = RoomState.ACTIVE
        logger.info("Salons créateurs chargés: %s | Salons temporaires: %s", len(self.creator_channels), len(self.states))

    # ---------- utilitaires ----------
    def get_lock(self, key: int) -> asyncio.Lock:
        lock = self.locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self.locks[key] = lock
        return lock

    def _release_lock(self, key: int):
        lock = self.locks.get(key)
        if lock is not None and not lock.locked() and self.state_of(key) == RoomState.NONE:
            self.locks.pop(key, None)

    def state_of(self, room_id: int) -> RoomState:
        return self.states.get(room_id, RoomState.NONE)

    async def is_tracked_room(self, channel_id: int) -> bool:
        state = self.states.get(channel_id)
        if state is not None:
            return state != RoomState.NONE
        if await self.store.fetch_room(channel_id) is not None:
            self.states[channel_id] = RoomState.ACTIVE
            return True
        return False

    # ---------- salons créateurs ----------
    def add_creator_channel(self, channel_id: int):
        self.creator_channels.add(channel_id)

    def remove_creator_channel(self, channel_id: int):
        self.creator_channels.discard(channel_id)

    # ---------- permissions ----------
    async def compute_overwrites(self, channel: discord.VoiceChannel, room: Room) -> OverwriteSet:
        guild = channel.guild
        prefs = await self.store.fetch_preference(room.owner_id, guild.id)
        trusted = await self.store.fetch_trusted(room.owner_id, guild.id)
        blocked = await self.store.fetch_blocked(room.owner_id, guild.id)
        staff_roles = await self.store.fetch_staff_roles(guild.id)

        members = list(channel.members)
        live = [LiveMember(m.id, frozenset(r.id for r in m.roles)) for m in members]
        known_roles = {}
        for uid in blocked:
            member = guild.get_member(uid)
            if member is not None:
                known_roles[uid] = [r.id for r in member.roles]
        baseline = overwrites_from_discord(channel.category.overwrites) if channel.category else []
        snapshot = RoomSnapshot(
            owner_id=room.owner_id,
            guild_id=guild.id,
            user_limit=channel.user_limit or 0,
            member_count=len(members),
        )
        return resolve(snapshot, prefs, trusted, blocked, staff_roles, live, baseline, known_roles)

    async def refresh_locked(self, channel: discord.VoiceChannel) -> Optional[OverwriteSet]:
        """Recalcule et applique les overwrites. L'appelant tient le verrou du salon."""
        room = await self.store.fetch_room(channel.id)
        if room is None:
            logger.debug("Salon %s non suivi, pas de réévaluation", channel.id)
            return None
        overwrites = await self.compute_overwrites(channel, room)
        await self.provider.apply_overwrites(channel, overwrites)
        return overwrites

    async def refresh_permissions(self, channel: discord.VoiceChannel) -> Optional[OverwriteSet]:
        async with self.get_lock(channel.id):
            if self.state_of(channel.id) != RoomState.ACTIVE:
                return None
            return await self.refresh_locked(channel)

    async def refresh_owner_rooms(self, owner_id: int, guild: discord.Guild):
        """Réapplique les permissions de tous les salons d'un propriétaire (après /settings)."""
        for room in await self.store.fetch_rooms_by_owner(owner_id, guild.id):
            channel = guild.get_channel(room.id)
            if not isinstance(channel, discord.VoiceChannel):
                continue
            try:
                await self.refresh_permissions(channel)
            except VoiceRoomError:
                logger.exception("Echec réévaluation permissions du salon %s", room.id)

    async def refresh_guild_rooms(self, guild: discord.Guild) -> int:
        """Réapplique les permissions de tous les salons suivis du serveur (après /setup staff)."""
        refreshed = 0
        for room_id, state in list(self.states.items()):
            if state != RoomState.ACTIVE:
                continue
            channel = guild.get_channel(room_id)
            if not isinstance(channel, discord.VoiceChannel):
                continue
            try:
                if await self.refresh_permissions(channel) is not None:
                    refreshed += 1
            except VoiceRoomError:
                logger.exception("Echec réévaluation permissions du salon %s", room_id)
        logger.info("Réévaluation des salons du serveur %s: %s salon(s)", guild.id, refreshed)
        return refreshed

    # ---------- création ----------
    async def create_room(self, member: discord.Member, creator_channel: discord.VoiceChannel) -> Optional[Room]:
        guild = creator_channel.guild
        me = guild.me
        if me is None or not me.guild_permissions.manage_channels:
            logger.warning("Permission 'Gérer les salons' manquante sur %s (%s), création ignorée", guild.name, guild.id)
            return None
        async with self.get_lock(creator_channel.id):
            if not member.voice or member.voice.channel is None or member.voice.channel.id != creator_channel.id:
                return None
            cfg = await self.store.fetch_creator_channel(creator_channel.id)
            if cfg is None:
                self.creator_channels.discard(creator_channel.id)
                return None
            prefs = await self.store.fetch_preference(member.id, guild.id) or OwnerPreference.default(member.id, guild.id)
            platform_roles = await self.store.fetch_platform_roles(guild.id)
            platform = infer_platform(prefs.last_platform, [r.id for r in member.roles], platform_roles)
            build = prefs.last_build
            limit = prefs.last_limit if prefs.last_limit is not None else cfg.default_limit
            name = format_channel_name(cfg.name_template, member.display_name, platform, build)
            try:
                channel = await self.provider.create_voice_room(
                    guild,
                    name,
                    category=creator_channel.category,
                    user_limit=limit or 0,
                    reason=f"Salon temporaire pour {member.id}",
                )
            except VoiceRoomError:
                logger.exception("Echec création salon temporaire pour %s", member.id)
                return None

            room = Room(
                id=channel.id,
                guild_id=guild.id,
                owner_id=member.id,
                creator_channel_id=cfg.id,
                created_at=discord.utils.utcnow(),
                platform=platform,
                build=build,
            )
            async with self.get_lock(channel.id):
                try:
                    await self.store.insert_room(room)
                except Exception:  # noqa: BLE001
                    logger.exception("Echec enregistrement salon %s, rollback", channel.id)
                    await self._discard_channel(channel)
                    return None
                self.states[channel.id] = RoomState.ACTIVE
                try:
                    await self.refresh_locked(channel)
                    await self.provider.set_member_voice_room(member, channel)
                except VoiceRoomError:
                    logger.exception("Echec post-création salon %s, rollback", channel.id)
                    await self._delete_locked(channel)
                    return None
        await self._post_welcome(channel, member, cfg.welcome_message, cfg.id)
        logger.info("Salon temporaire créé %s pour %s (créateur %s)", channel.id, member.id, cfg.id)
        return room

    async def _discard_channel(self, channel: discord.VoiceChannel):
        try:
            await self.provider.delete_voice_room(channel, reason="Rollback salon temporaire")
        except VoiceRoomError:
            logger.exception("Rollback impossible pour %s", channel.id)

    async def _post_welcome(self, channel: discord.VoiceChannel, member: discord.Member, welcome: Optional[str], creator_id: int):
        text = render_welcome(welcome, member.mention) if welcome else voice_view.default_welcome(member.mention)
        try:
            await self.provider.send_message(channel, text, mention_users=True)
            rules = await self.store.fetch_group_rules(member.id, channel.guild.id, creator_id)
            await self.provider.send_message(channel, voice_view.fmt_group_rules(rules))
        except VoiceRoomError:
            logger.warning("Message d'accueil non envoyé dans %s", channel.id, exc_info=True)

    # ---------- suppression ----------
    async def _delete_locked(self, channel: discord.VoiceChannel):
        if self.state_of(channel.id) != RoomState.ACTIVE:
            return
        self.states[channel.id] = RoomState.DELETING
        try:
            await self.provider.delete_voice_room(channel, reason="Salon temporaire vide")
        except ProviderError:
            logger.warning("Suppression Discord du salon %s échouée", channel.id, exc_info=True)
        except ConfigurationError:
            logger.warning("Permission manquante pour supprimer le salon %s", channel.id)
        finally:
            try:
                await self.store.delete_room(channel.id)
            finally:
                self.states.pop(channel.id, None)
        logger.info("Salon temporaire supprimé %s (vide)", channel.id)

    async def delete_room_if_empty(self, channel: discord.VoiceChannel) -> bool:
        async with self.get_lock(channel.id):
            if channel.members or self.state_of(channel.id) != RoomState.ACTIVE:
                return False
            await self._delete_locked(channel)
        self._release_lock(channel.id)
        return True

    async def _on_departure(self, channel: discord.VoiceChannel):
        if await self.delete_room_if_empty(channel):
            return
        await self.refresh_permissions(channel)

    # ---------- événements ----------
    async def handle_voice_state_update(self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState):
        before_channel = before.channel
        after_channel = after.channel
        before_id = before_channel.id if before_channel else None
        after_id = after_channel.id if after_channel else None
        if before_id == after_id:
            return
        if isinstance(before_channel, discord.VoiceChannel) and await self.is_tracked_room(before_channel.id):
            try:
                await self._on_departure(before_channel)
            except Exception:  # noqa: BLE001
                logger.exception("Echec traitement départ du salon %s", before_channel.id)
        if not isinstance(after_channel, discord.VoiceChannel):
            return
        try:
            if after_channel.id in self.creator_channels:
                await self.create_room(member, after_channel)
            elif await self.is_tracked_room(after_channel.id):
                await self.refresh_permissions(after_channel)
        except Exception:  # noqa: BLE001
            logger.exception("Echec traitement arrivée dans %s", after_channel.id)

    async def handle_channel_delete(self, channel: discord.abc.GuildChannel):
        if not isinstance(channel, discord.VoiceChannel):
            return
        cid = channel.id
        if cid in self.creator_channels:
            await self.store.delete_creator_channel(cid)
            self.creator_channels.discard(cid)
            logger.info("Salon créateur supprimé détecté %s -> retiré de la config", cid)
        elif cid in self.states:
            async with self.get_lock(cid):
                await self.store.delete_room(cid)
                self.states.pop(cid, None)
            self._release_lock(cid)
            logger.info("Salon temporaire supprimé manuellement %s -> purgé DB", cid)

    async def cleanup_orphans(self):
        removed: List[int] = []
        emptied: List[int] = []
        for room in await self.store.fetch_all_rooms():
            channel = self.bot.get_channel(room.id)
            if not isinstance(channel, discord.VoiceChannel):
                await self.store.delete_room(room.id)
                self.states.pop(room.id, None)
                removed.append(room.id)
                continue
            self.states.setdefault(room.id, RoomState.ACTIVE)
            if not channel.members and await self.delete_room_if_empty(channel):
                emptied.append(room.id)
        logger.info("Cleanup orphelins -> enregistrements purgés: %s | salons vides supprimés: %s", len(removed), len(emptied))

    # ---------- réglages du salon ----------
    async def _rename_from_template(self, channel: discord.VoiceChannel, room: Room):
        cfg = await self.store.fetch_creator_channel(room.creator_channel_id) if room.creator_channel_id else None
        template = cfg.name_template if cfg else config.DEFAULT_ROOM_TEMPLATE
        owner = channel.guild.get_member(room.owner_id)
        display = owner.display_name if owner else channel.name
        name = format_channel_name(template, display, room.platform, room.build)
        if name != channel.name:
            await self.provider.rename_room(channel, name)

    async def set_room_limit(self, channel: discord.VoiceChannel, limit: int):
        async with self.get_lock(channel.id):
            room = await self.store.fetch_room(channel.id)
            if room is None:
                return None
            await self.provider.set_user_limit(channel, limit)
            await self.store.upsert_preference(room.owner_id, room.guild_id, last_limit=limit)
            return await self.refresh_locked(channel)

    async def set_room_platform(self, channel: discord.VoiceChannel, platform: str):
        async with self.get_lock(channel.id):
            room = await self.store.fetch_room(channel.id)
            if room is None:
                return None
            await self.store.update_room_attributes(channel.id, platform=platform)
            await self.store.upsert_preference(room.owner_id, room.guild_id, last_platform=platform)
            room.platform = platform
            await self._rename_from_template(channel, room)
            return room

    async def set_room_build(self, channel: discord.VoiceChannel, build: str):
        async with self.get_lock(channel.id):
            room = await self.store.fetch_room(channel.id)
            if room is None:
                return None
            await self.store.update_room_attributes(channel.id, build=build)
            await self.store.upsert_preference(room.owner_id, room.guild_id, last_build=build)
            room.build = build
            await self._rename_from_template(channel, room)
            return room


async def setup_voice_rooms_manager(bot, store):
    manager = VoiceRoomsManager(bot, store)
    await manager.load()

    @bot.event
    async def on_voice_state_update(member: discord.Member, before: discord.VoiceState, after: discord.VoiceState):  # type: ignore
        await manager.handle_voice_state_update(member, before, after)

    @bot.event
    async def on_guild_channel_delete(channel: discord.abc.GuildChannel):  # type: ignore
        try:
            await manager.handle_channel_delete(channel)
        except Exception:  # noqa: BLE001
            logger.exception("Echec traitement suppression du salon %s", channel.id)

    async def _post_ready_cleanup():
        await bot.wait_until_ready()
        try:
            await manager.cleanup_orphans()
        except Exception:  # noqa: BLE001
            logger.exception("Echec cleanup orphelins")

    bot.loop.create_task(_post_ready_cleanup())
    bot.voice_rooms = manager  # type: ignore
    return manager
