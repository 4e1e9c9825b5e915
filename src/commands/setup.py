"""
Groupe de commandes slash `/setup` (administrateurs).

- /setup creator create|list|remove|message : salons créateurs
- /setup platform|unplatform : associe ou dissocie un rôle et une plateforme (inférence à la création)
- /setup staff add|remove|list : rôles exemptés de blocage
"""
# Annotations évaluées à l'import : `require_perms` enveloppe les callbacks et discord.py
# résoudrait des annotations texte dans les globals de core.permissions.
import logging

import discord
from discord import app_commands

from core import config
from core.permissions import require_perms, ADMINISTRATOR
from core.voice_rooms.naming import validate_template
from views import voice_rooms as voice_view
from ._rooms import PLATFORM_CHOICES, get_manager, reply

logger = logging.getLogger(__name__)

setup_group = app_commands.Group(name="setup", description="Configuration des salons temporaires")
creator_group = app_commands.Group(name="creator", description="Salons créateurs", parent=setup_group)
staff_group = app_commands.Group(name="staff", description="Rôles staff exemptés de blocage", parent=setup_group)


@creator_group.command(name="create", description="Transformer un salon vocal en salon créateur")
@app_commands.describe(
    channel="Salon vocal à utiliser",
    template="Modèle de nom ({USER} {PLATFORM:-défaut} {BUILD:-défaut})",
    limit="Limite d'utilisateurs par défaut (0 = illimité)",
)
@require_perms(ADMINISTRATOR, message="Admin requis")
async def creator_create(
    interaction: discord.Interaction,
    channel: discord.VoiceChannel,
    template: str | None = None,
    limit: int = 0,
):
    mgr = get_manager(interaction)
    if limit < 0 or limit > 99:
        await reply(interaction, voice_view.msg_limite_invalide())
        return
    template = template or config.DEFAULT_ROOM_TEMPLATE
    if not validate_template(template):
        await reply(interaction, "Modèle invalide. Placeholders autorisés : {USER} {PLATFORM:-x} {BUILD:-x} (max 100).")
        return
    cfg = await mgr.store.upsert_creator_channel(channel.id, channel.guild.id, template, limit)
    mgr.add_creator_channel(cfg.id)
    logger.info("Salon créateur configuré %s (guild %s)", cfg.id, cfg.guild_id)
    await reply(interaction, f"{channel.mention} est maintenant un salon créateur (modèle: `{template}`).")


@creator_group.command(name="list", description="Lister les salons créateurs")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def creator_list(interaction: discord.Interaction):
    mgr = get_manager(interaction)
    creators = await mgr.store.list_creator_channels(interaction.guild.id)  # type: ignore[union-attr]
    if not creators:
        await reply(interaction, voice_view.msg_aucun_createur())
        return
    lines = [voice_view.fmt_creator_line(c) for c in creators]
    await reply(interaction, "**Salons créateurs :**\n" + "\n".join(lines))


@creator_group.command(name="remove", description="Ne plus utiliser un salon comme salon créateur")
@app_commands.describe(channel="Salon créateur à retirer")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def creator_remove(interaction: discord.Interaction, channel: discord.VoiceChannel):
    mgr = get_manager(interaction)
    removed = await mgr.store.delete_creator_channel(channel.id)
    mgr.remove_creator_channel(channel.id)
    if not removed:
        await reply(interaction, voice_view.msg_pas_un_createur())
        return
    await reply(interaction, f"{channel.mention} n'est plus un salon créateur.")


@creator_group.command(name="message", description="Définir le message d'accueil d'un salon créateur")
@app_commands.describe(channel="Salon créateur", message="Texte ({OWNER_MENTION} accepté) ; vide pour effacer")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def creator_message(
    interaction: discord.Interaction,
    channel: discord.VoiceChannel,
    message: str | None = None,
):
    mgr = get_manager(interaction)
    if message and len(message) > 2000:
        await reply(interaction, "Message trop long (max 2000).")
        return
    if not await mgr.store.set_welcome_message(channel.id, message):
        await reply(interaction, voice_view.msg_pas_un_createur())
        return
    state = "mis à jour" if message else "effacé"
    await reply(interaction, f"Message d'accueil de {channel.mention} {state}.")


@setup_group.command(name="platform", description="Associer une plateforme à un rôle")
@app_commands.describe(platform="Plateforme de jeu", role="Rôle correspondant")
@app_commands.choices(platform=PLATFORM_CHOICES)
@require_perms(ADMINISTRATOR, message="Admin requis")
async def setup_platform(interaction: discord.Interaction, platform: app_commands.Choice[str], role: discord.Role):
    mgr = get_manager(interaction)
    await mgr.store.set_platform_role(role.guild.id, role.id, platform.value)
    await reply(interaction, f"**{platform.name}** associé au rôle {role.mention}.")


@setup_group.command(name="unplatform", description="Retirer l'association plateforme d'un rôle")
@app_commands.describe(role="Rôle à dissocier")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def setup_unplatform(interaction: discord.Interaction, role: discord.Role):
    mgr = get_manager(interaction)
    if await mgr.store.remove_platform_role(role.id):
        await reply(interaction, f"{role.mention} n'est plus associé à une plateforme.")
    else:
        await reply(interaction, "Ce rôle n'était associé à aucune plateforme.")


@staff_group.command(name="add", description="Exempter un rôle des blocages")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def staff_add(interaction: discord.Interaction, role: discord.Role):
    mgr = get_manager(interaction)
    await interaction.response.defer(ephemeral=True)
    await mgr.store.add_staff_role(role.guild.id, role.id)
    await mgr.refresh_guild_rooms(role.guild)
    await reply(interaction, f"{role.mention} est exempté des blocages.")


@staff_group.command(name="remove", description="Retirer l'exemption d'un rôle")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def staff_remove(interaction: discord.Interaction, role: discord.Role):
    mgr = get_manager(interaction)
    await interaction.response.defer(ephemeral=True)
    if await mgr.store.remove_staff_role(role.guild.id, role.id):
        await mgr.refresh_guild_rooms(role.guild)
        await reply(interaction, f"{role.mention} n'est plus exempté.")
    else:
        await reply(interaction, "Ce rôle n'était pas un rôle staff.")


@staff_group.command(name="list", description="Lister les rôles staff")
@require_perms(ADMINISTRATOR, message="Admin requis")
async def staff_list(interaction: discord.Interaction):
    mgr = get_manager(interaction)
    roles = await mgr.store.fetch_staff_roles(interaction.guild.id)  # type: ignore[union-attr]
    listing = ", ".join(f"<@&{rid}>" for rid in sorted(roles)) or "(aucun)"
    await reply(interaction, f"Rôles staff : {listing}")


def register(bot: discord.Client):
    bot.tree.add_command(setup_group)

__all__ = ["register"]
