"""
Groupe de commandes slash `/voice` : gestion du salon temporaire où se trouve l'auteur.

- limit / platform / build : soumis au mode d'accès aux commandes du propriétaire
- claim : réclamer un salon dont le propriétaire est parti
- transfer : céder la propriété à un membre connecté
"""
from __future__ import annotations

import logging

import discord
from discord import app_commands

from core.voice_rooms.errors import VoiceRoomError
from core.voice_rooms.models import OwnerPreference, Room
from core.voice_rooms.policy import may_use_room_commands
from views import voice_rooms as voice_view
from ._rooms import PLATFORM_CHOICES, current_room, error_message, get_manager, reply, reply_not_in_room

logger = logging.getLogger(__name__)

voice_group = app_commands.Group(name="voice", description="Gérer votre salon vocal temporaire", guild_only=True)

MAX_BUILD = 30


async def _allowed(interaction: discord.Interaction, room: Room) -> bool:
    store = get_manager(interaction).store
    prefs = await store.fetch_preference(room.owner_id, room.guild_id) or OwnerPreference.default(room.owner_id, room.guild_id)
    trusted = await store.fetch_trusted(room.owner_id, room.guild_id)
    blocked = await store.fetch_blocked(room.owner_id, room.guild_id)
    return may_use_room_commands(prefs.command_access, interaction.user.id, room.owner_id, trusted, blocked)


@voice_group.command(name="limit", description="Limite d'utilisateurs du salon (0 = illimité)")
@app_commands.describe(number="Nombre maximum d'utilisateurs (0-99)")
async def voice_limit(interaction: discord.Interaction, number: int):
    if number < 0 or number > 99:
        await reply(interaction, voice_view.msg_limite_invalide())
        return
    channel, room = await current_room(interaction)
    if room is None:
        await reply_not_in_room(interaction)
        return
    if not await _allowed(interaction, room):
        await reply(interaction, voice_view.msg_acces_refuse())
        return
    await interaction.response.defer(ephemeral=True)
    try:
        await get_manager(interaction).set_room_limit(channel, number)
    except VoiceRoomError as exc:
        logger.warning("Echec /voice limit sur %s: %s", channel.id, exc)
        await reply(interaction, error_message(exc))
        return
    await reply(interaction, f"Limite du groupe : {number or 'illimitée'}.")


@voice_group.command(name="platform", description="Plateforme de votre groupe")
@app_commands.choices(platform=PLATFORM_CHOICES)
async def voice_platform(interaction: discord.Interaction, platform: app_commands.Choice[str]):
    channel, room = await current_room(interaction)
    if room is None:
        await reply_not_in_room(interaction)
        return
    if not await _allowed(interaction, room):
        await reply(interaction, voice_view.msg_acces_refuse())
        return
    await interaction.response.defer(ephemeral=True)
    try:
        await get_manager(interaction).set_room_platform(channel, platform.value)
    except VoiceRoomError as exc:
        logger.warning("Echec /voice platform sur %s: %s", channel.id, exc)
        await reply(interaction, error_message(exc))
        return
    await reply(interaction, f"Plateforme : **{voice_view.platform_label(platform.value)}**.")


@voice_group.command(name="build", description="Build / activité affichée dans le nom du salon")
@app_commands.describe(build="Texte court (30 caractères max)")
async def voice_build(interaction: discord.Interaction, build: str):
    build = build.strip()
    if not build or len(build) > MAX_BUILD:
        await reply(interaction, f"Build invalide (1-{MAX_BUILD} caractères).")
        return
    channel, room = await current_room(interaction)
    if room is None:
        await reply_not_in_room(interaction)
        return
    if not await _allowed(interaction, room):
        await reply(interaction, voice_view.msg_acces_refuse())
        return
    await interaction.response.defer(ephemeral=True)
    try:
        await get_manager(interaction).set_room_build(channel, build)
    except VoiceRoomError as exc:
        logger.warning("Echec /voice build sur %s: %s", channel.id, exc)
        await reply(interaction, error_message(exc))
        return
    await reply(interaction, f"Build : **{build}**.")


@voice_group.command(name="claim", description="Réclamer le salon si le propriétaire est parti")
async def voice_claim(interaction: discord.Interaction):
    channel, room = await current_room(interaction)
    if room is None:
        await reply_not_in_room(interaction)
        return
    await interaction.response.defer(ephemeral=True)
    try:
        result = await get_manager(interaction).ownership.claim(channel, interaction.user.id)
    except VoiceRoomError as exc:
        logger.warning("Echec /voice claim sur %s: %s", channel.id, exc)
        await reply(interaction, error_message(exc))
        return
    if not result.ok:
        await reply(interaction, voice_view.OWNERSHIP_MESSAGES[result.reason])
        return
    await reply(interaction, f"Vous êtes maintenant propriétaire de {channel.mention}.")


@voice_group.command(name="transfer", description="Transférer la propriété du salon")
@app_commands.describe(member="Membre connecté au salon")
async def voice_transfer(interaction: discord.Interaction, member: discord.Member):
    channel, room = await current_room(interaction)
    if room is None:
        await reply_not_in_room(interaction)
        return
    await interaction.response.defer(ephemeral=True)
    try:
        result = await get_manager(interaction).ownership.transfer(channel, interaction.user.id, member.id)
    except VoiceRoomError as exc:
        logger.warning("Echec /voice transfer sur %s: %s", channel.id, exc)
        await reply(interaction, error_message(exc))
        return
    if not result.ok:
        await reply(interaction, voice_view.OWNERSHIP_MESSAGES[result.reason])
        return
    await reply(interaction, f"{member.mention} est maintenant propriétaire de {channel.mention}.")


def register(bot: discord.Client):
    bot.tree.add_command(voice_group)

__all__ = ["register"]
