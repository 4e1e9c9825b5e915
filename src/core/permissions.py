"""
Utilitaires pour les permissions Discord via bitmask.

Rappel :
- `discord.Permissions` expose un attribut `.value` (int) contenant les bits cumulés
- On teste un sous-ensemble via : (current & required) == required

Les constantes ci-dessous servent aussi de vocabulaire de capacités pour le
résolveur de permissions des salons temporaires (allow/deny en bitfield).
"""
from __future__ import annotations

from typing import Callable, TypeVar, Awaitable, Any
import functools
import discord

T = TypeVar("T", bound=Callable[..., Awaitable[Any]])

# Extraits de `discord.Permissions`
MANAGE_CHANNELS = 1 << 4
ADMINISTRATOR = 1 << 3
VIEW_CHANNEL = 1 << 10
SEND_MESSAGES = 1 << 11
CONNECT = 1 << 20
MOVE_MEMBERS = 1 << 24
USE_SOUNDBOARD = 1 << 42
USE_EXTERNAL_SOUNDS = 1 << 45

# Capacités composées
CHAT = SEND_MESSAGES
SOUNDBOARD = USE_SOUNDBOARD | USE_EXTERNAL_SOUNDS
OWNER_CAPABILITIES = CONNECT | MANAGE_CHANNELS | MOVE_MEMBERS | SEND_MESSAGES


def has_bits(value: int, bits: int) -> bool:
    return (value & bits) == bits


def missing_names(value: int, bits: int) -> list[str]:
    """Noms discord.py des permissions de `bits` absentes de `value`."""
    missing = discord.Permissions(bits & ~value)
    return sorted(name for name, enabled in missing if enabled)


async def _deny(interaction: discord.Interaction, text: str, ephemeral: bool) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(text, ephemeral=ephemeral)
    else:
        await interaction.response.send_message(text, ephemeral=ephemeral)


def require_perms(bits: int, *, ephemeral: bool = True, message: str | None = None):
    """
    Décorateur de commande slash : l'auteur doit posséder tous les bits de `bits` sur le serveur.

    Args :
        bits : masque requis (ex : ADMINISTRATOR)
        ephemeral : réponses de refus en éphémère
        message : texte de refus ; par défaut la liste des permissions manquantes

    En DM la commande est refusée.
    """
    def decorator(func: T) -> T:
        @functools.wraps(func)
        async def wrapper(interaction: discord.Interaction, *args, **kwargs):  # type: ignore[misc]
            if interaction.guild is None:
                await _deny(interaction, message or "Commande uniquement disponible sur un serveur.", ephemeral)
                return  # type: ignore[return-value]
            perms_value = interaction.user.guild_permissions.value  # type: ignore[union-attr]
            if not has_bits(perms_value, bits):
                text = message or "Permissions manquantes : " + ", ".join(missing_names(perms_value, bits))
                await _deny(interaction, text, ephemeral)
                return  # type: ignore[return-value]
            return await func(interaction, *args, **kwargs)
        return wrapper  # type: ignore[return-value]
    return decorator

__all__ = [
    "require_perms", "has_bits", "missing_names", "ADMINISTRATOR", "MANAGE_CHANNELS", "VIEW_CHANNEL",
    "SEND_MESSAGES", "CONNECT", "MOVE_MEMBERS", "USE_SOUNDBOARD", "USE_EXTERNAL_SOUNDS", "CHAT", "SOUNDBOARD",
    "OWNER_CAPABILITIES",
]
