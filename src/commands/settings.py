"""
Groupe de commandes slash `/settings` : préférences personnelles pour vos salons temporaires.

Les modifications qui touchent aux permissions (chat, soundboard, confiance, blocage)
sont suivies d'une réévaluation de tous vos salons actifs.
"""
from __future__ import annotations

import logging

import discord
from discord import app_commands

from core.voice_rooms.models import ChatRestriction, CommandAccess, OwnerPreference, SoundboardRestriction
from views import voice_rooms as voice_view
from ._rooms import get_manager, parse_user_ids, reply

logger = logging.getLogger(__name__)

settings_group = app_commands.Group(name="settings", description="Vos réglages de salons temporaires", guild_only=True)

MAX_RULES = 1000


async def _refresh(interaction: discord.Interaction):
    guild = interaction.guild
    if guild is None:
        return
    await get_manager(interaction).refresh_owner_rooms(interaction.user.id, guild)


@settings_group.command(name="show", description="Afficher vos réglages")
async def settings_show(interaction: discord.Interaction):
    store = get_manager(interaction).store
    uid, gid = interaction.user.id, interaction.guild_id
    prefs = await store.fetch_preference(uid, gid) or OwnerPreference.default(uid, gid)
    trusted = await store.fetch_trusted(uid, gid)
    blocked = await store.fetch_blocked(uid, gid)
    await reply(interaction, voice_view.fmt_settings(prefs, len(trusted), len(blocked)))


@settings_group.command(name="chat", description="Quand les personnes extérieures peuvent écrire")
@app_commands.choices(mode=[
    app_commands.Choice(name="Toujours", value=ChatRestriction.ALWAYS.value),
    app_commands.Choice(name="Seulement s'il reste de la place", value=ChatRestriction.OPEN_SPOTS.value),
])
async def settings_chat(interaction: discord.Interaction, mode: app_commands.Choice[str]):
    await interaction.response.defer(ephemeral=True)
    await get_manager(interaction).store.upsert_preference(
        interaction.user.id, interaction.guild_id, chat=ChatRestriction(mode.value)
    )
    await _refresh(interaction)
    await reply(interaction, voice_view.msg_mis_a_jour("Chat"))


@settings_group.command(name="soundboard", description="Qui peut utiliser la soundboard")
@app_commands.choices(mode=[
    app_commands.Choice(name="Tout le monde", value=SoundboardRestriction.ANYONE.value),
    app_commands.Choice(name="Moi uniquement", value=SoundboardRestriction.OWNER.value),
])
async def settings_soundboard(interaction: discord.Interaction, mode: app_commands.Choice[str]):
    await interaction.response.defer(ephemeral=True)
    await get_manager(interaction).store.upsert_preference(
        interaction.user.id, interaction.guild_id, soundboard=SoundboardRestriction(mode.value)
    )
    await _refresh(interaction)
    await reply(interaction, voice_view.msg_mis_a_jour("Soundboard"))


@settings_group.command(name="commands", description="Qui peut utiliser /voice dans vos salons")
@app_commands.choices(mode=[
    app_commands.Choice(name="Tout le monde", value=CommandAccess.ANYONE.value),
    app_commands.Choice(name="Membres de confiance", value=CommandAccess.TRUSTED.value),
    app_commands.Choice(name="Moi uniquement", value=CommandAccess.OWNER.value),
])
async def settings_commands(interaction: discord.Interaction, mode: app_commands.Choice[str]):
    await get_manager(interaction).store.upsert_preference(
        interaction.user.id, interaction.guild_id, command_access=CommandAccess(mode.value)
    )
    await reply(interaction, voice_view.msg_mis_a_jour("Accès aux commandes"))


@settings_group.command(name="trust", description="Ajouter un membre de confiance (le débloque)")
async def settings_trust(interaction: discord.Interaction, member: discord.Member):
    if member.id == interaction.user.id:
        await reply(interaction, "Vous ne pouvez pas vous ajouter vous-même.")
        return
    await interaction.response.defer(ephemeral=True)
    await get_manager(interaction).store.add_trust(interaction.user.id, interaction.guild_id, member.id)
    await _refresh(interaction)
    await reply(interaction, f"{member.mention} est maintenant de confiance.")


@settings_group.command(name="untrust", description="Retirer un membre de confiance")
async def settings_untrust(interaction: discord.Interaction, member: discord.Member):
    await interaction.response.defer(ephemeral=True)
    removed = await get_manager(interaction).store.remove_trust(interaction.user.id, interaction.guild_id, member.id)
    await _refresh(interaction)
    await reply(interaction, f"{member.mention} retiré de la confiance." if removed else "Ce membre n'était pas de confiance.")


@settings_group.command(name="block", description="Bloquer un membre (le retire de la confiance)")
async def settings_block(interaction: discord.Interaction, member: discord.Member):
    if member.id == interaction.user.id:
        await reply(interaction, "Vous ne pouvez pas vous bloquer vous-même.")
        return
    await interaction.response.defer(ephemeral=True)
    await get_manager(interaction).store.add_block(interaction.user.id, interaction.guild_id, member.id)
    await _refresh(interaction)
    await reply(interaction, f"{member.mention} est bloqué.")


@settings_group.command(name="unblock", description="Débloquer un membre")
async def settings_unblock(interaction: discord.Interaction, member: discord.Member):
    await interaction.response.defer(ephemeral=True)
    removed = await get_manager(interaction).store.remove_block(interaction.user.id, interaction.guild_id, member.id)
    await _refresh(interaction)
    await reply(interaction, f"{member.mention} débloqué." if removed else "Ce membre n'était pas bloqué.")


@settings_group.command(name="lists", description="Remplacer vos listes de confiance et/ou de blocage")
@app_commands.describe(
    trusted="Mentions ou IDs des membres de confiance (remplace la liste)",
    blocked="Mentions ou IDs des membres bloqués (remplace la liste)",
)
async def settings_lists(interaction: discord.Interaction, trusted: str | None = None, blocked: str | None = None):
    if trusted is None and blocked is None:
        await reply(interaction, "Indiquez au moins une liste.")
        return
    await interaction.response.defer(ephemeral=True)
    store = get_manager(interaction).store
    uid, gid = interaction.user.id, interaction.guild_id
    if trusted is not None and blocked is not None:
        await store.sync_relations(uid, gid, parse_user_ids(trusted), parse_user_ids(blocked))
    elif trusted is not None:
        await store.sync_trusted(uid, gid, parse_user_ids(trusted))
    else:
        await store.sync_blocked(uid, gid, parse_user_ids(blocked))
    await _refresh(interaction)
    trusted_now = await store.fetch_trusted(uid, gid)
    blocked_now = await store.fetch_blocked(uid, gid)
    await reply(
        interaction,
        f"Confiance : {voice_view.fmt_mentions(trusted_now)}\nBloqués : {voice_view.fmt_mentions(blocked_now)}",
    )


@settings_group.command(name="rules", description="Règles affichées dans vos salons d'un salon créateur")
@app_commands.describe(channel="Salon créateur", rules="Règles (Markdown) ; vide pour revenir au texte par défaut")
async def settings_rules(interaction: discord.Interaction, channel: discord.VoiceChannel, rules: str | None = None):
    store = get_manager(interaction).store
    if await store.fetch_creator_channel(channel.id) is None:
        await reply(interaction, voice_view.msg_pas_un_createur())
        return
    if rules and len(rules) > MAX_RULES:
        await reply(interaction, f"Règles trop longues (max {MAX_RULES}).")
        return
    await store.set_group_rules(interaction.user.id, interaction.guild_id, channel.id, rules)
    await reply(interaction, voice_view.msg_mis_a_jour("Règles du groupe"))


def register(bot: discord.Client):
    bot.tree.add_command(settings_group)

__all__ = ["register"]
