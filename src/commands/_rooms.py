"""
Helpers partagés par `/setup`, `/voice` et `/settings` (non chargé comme commande : préfixe `_`).
"""
from __future__ import annotations

import logging
import re
from typing import Optional, Set, Tuple

import discord
from discord import app_commands

from core.voice_rooms.errors import ConfigurationError, TransientProviderError, VoiceRoomError
from core.voice_rooms.manager import VoiceRoomsManager
from core.voice_rooms.models import Room
from core.voice_rooms.platforms import PLATFORMS
from views import voice_rooms as voice_view

logger = logging.getLogger(__name__)

PLATFORM_CHOICES = [app_commands.Choice(name=p.label, value=key) for key, p in PLATFORMS.items()]


def parse_user_ids(text: Optional[str]) -> Set[int]:
    """Mentions <@123> / <@!123> et IDs bruts dans un texte libre."""
    ids: Set[int] = set()
    if not text:
        return ids
    for m in re.findall(r"<@!?(\d+)>", text):
        ids.add(int(m))
    for m in re.findall(r"\b(\d{17,20})\b", text):
        ids.add(int(m))
    # Hors 64 bits : ce ne sont pas des identifiants Discord
    return {uid for uid in ids if uid < 1 << 64}


def get_manager(interaction: discord.Interaction) -> VoiceRoomsManager:
    mgr = getattr(interaction.client, "voice_rooms", None)
    if mgr is None:
        raise RuntimeError("Voice rooms manager non initialisé")
    return mgr  # type: ignore


async def current_room(interaction: discord.Interaction) -> Tuple[Optional[discord.VoiceChannel], Optional[Room]]:
    """Salon vocal de l'auteur et son enregistrement (None, None) s'il n'est pas dans un salon suivi."""
    member = interaction.user
    voice = getattr(member, "voice", None)
    channel = voice.channel if voice else None
    if not isinstance(channel, discord.VoiceChannel):
        return None, None
    room = await get_manager(interaction).store.fetch_room(channel.id)
    if room is None:
        return channel, None
    return channel, room


def error_message(exc: VoiceRoomError) -> str:
    if isinstance(exc, TransientProviderError):
        return voice_view.msg_provider_transitoire()
    if isinstance(exc, ConfigurationError):
        return voice_view.msg_provider_permission()
    return voice_view.msg_provider_echec()


async def reply(interaction: discord.Interaction, content: str, *, ephemeral: bool = True):
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=ephemeral)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral)


async def reply_not_in_room(interaction: discord.Interaction):
    mgr = get_manager(interaction)
    guild_id = interaction.guild.id if interaction.guild else None
    creators = [c.id for c in await mgr.store.list_creator_channels(guild_id)]
    await reply(interaction, voice_view.msg_hors_salon(creators))


__all__ = ["PLATFORM_CHOICES", "parse_user_ids", "get_manager", "current_room", "error_message", "reply", "reply_not_in_room"]
