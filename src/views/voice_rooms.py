"""
Textes et helpers pour les salons temporaires (`/setup`, `/voice`, `/settings`, accueil).
"""
from __future__ import annotations

from typing import Iterable, Optional

from core.voice_rooms.models import (
    ChatRestriction,
    CommandAccess,
    CreatorChannelConfig,
    OwnerPreference,
    OwnershipFailure,
    SoundboardRestriction,
)
from core.voice_rooms.platforms import PLATFORMS

CHAT_LABELS = {
    ChatRestriction.ALWAYS: "✅ Les personnes extérieures peuvent écrire, même quand le groupe est plein.",
    ChatRestriction.OPEN_SPOTS: "🚫 Pas de messages extérieurs tant que le groupe n'a pas de place libre.",
}
SOUNDBOARD_LABELS = {
    SoundboardRestriction.ANYONE: "✅ Tout le monde peut utiliser la soundboard.",
    SoundboardRestriction.OWNER: "🚫 Personne sauf vous ne peut utiliser la soundboard.",
}
COMMAND_LABELS = {
    CommandAccess.ANYONE: "✅ Tout le monde peut utiliser `/voice` (sauf les bloqués).",
    CommandAccess.TRUSTED: "🔒 Seuls vos membres de confiance peuvent utiliser `/voice`.",
    CommandAccess.OWNER: "👑 Vous seul pouvez utiliser `/voice`.",
}
OWNERSHIP_MESSAGES = {
    OwnershipFailure.ROOM_NOT_FOUND: "Ce salon n'est pas un salon temporaire.",
    OwnershipFailure.OWNER_PRESENT: "Le propriétaire est encore dans le salon.",
    OwnershipFailure.CLAIMANT_ABSENT: "Vous devez être connecté au salon pour le réclamer.",
    OwnershipFailure.NOT_OWNER: "Seul le propriétaire peut transférer le salon.",
    OwnershipFailure.TARGET_ABSENT: "Le membre ciblé doit être connecté au salon.",
    OwnershipFailure.SELF_TRANSFER: "Vous êtes déjà propriétaire de ce salon.",
}


def default_welcome(owner_mention: str) -> str:
    return f"Bienvenue {owner_mention} ! Ce salon vocal est à vous, gérez-le avec `/voice` et `/settings`."


def fmt_group_rules(rules: Optional[str]) -> str:
    if rules:
        return f"## Règles du groupe 📜\n{rules}"
    return "## Règles du groupe 📜\n- Règles normales du serveur.\n- Personnalisez vos règles avec `/settings rules` !"


def fmt_creator_line(cfg: CreatorChannelConfig) -> str:
    limit = "illimité" if not cfg.default_limit else str(cfg.default_limit)
    return f"- <#{cfg.id}> (modèle: `{cfg.name_template}`, limite: {limit})"


def fmt_settings(prefs: OwnerPreference, trusted_count: int, blocked_count: int) -> str:
    return "\n".join([
        "## Chat des personnes extérieures",
        CHAT_LABELS[prefs.chat],
        "## Accès aux commandes",
        COMMAND_LABELS[prefs.command_access],
        "## Soundboard",
        SOUNDBOARD_LABELS[prefs.soundboard],
        "## Confiance",
        f"{trusted_count} membre(s) de confiance peuvent toujours écrire et déplacer des membres.",
        "## Blocage",
        f"{blocked_count} membre(s) bloqué(s) ne peuvent ni rejoindre ni écrire.",
    ])


def fmt_mentions(ids: Iterable[int]) -> str:
    return ", ".join(f"<@{uid}>" for uid in sorted(ids)) or "(vide)"


def platform_label(key: Optional[str]) -> str:
    if key and key in PLATFORMS:
        return PLATFORMS[key].label
    return "(aucune)"


def msg_hors_salon(creators: Iterable[int]) -> str:
    mentions = ", ".join(f"<#{cid}>" for cid in creators) or "aucun"
    return f"Vous n'êtes pas dans un salon temporaire. Rejoignez d'abord un salon créateur : {mentions}."


def msg_pas_un_createur() -> str: return "Ce salon n'est pas un salon créateur."
def msg_aucun_createur() -> str: return "Aucun salon créateur configuré."
def msg_acces_refuse() -> str: return "Le propriétaire ne vous autorise pas à utiliser cette commande."
def msg_provider_transitoire() -> str: return "Discord n'a pas répondu à temps, réessayez dans un instant."
def msg_provider_permission() -> str: return "Il me manque des permissions pour modifier ce salon."
def msg_provider_echec() -> str: return "Echec de la mise à jour du salon."
def msg_limite_invalide() -> str: return "Limite invalide (0-99)."
def msg_mis_a_jour(label: str) -> str: return f"✅ **{label}** mis à jour."


__all__ = [name for name in globals().keys() if name.startswith(('msg_', 'fmt_')) or name.isupper()] + [
    "default_welcome", "platform_label",
]
