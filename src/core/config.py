"""
Configuration centrale du bot Discord.

Ce module charge les variables d'environnement (.env) et prépare :
- Les intents Discord (members, voice_states, presences optionnel)
- Le token du bot (BOT_TOKEN, obligatoire)
- L'URL de la base de données (DATABASE_URL, requise pour les salons temporaires)
- Les bornes des appels Discord (PROVIDER_TIMEOUT, PROVIDER_RETRIES)

Un warning est émis si BOT_TOKEN est absent pour détecter le problème avant le lancement du bot.
"""
from __future__ import annotations

import os
import logging
from dotenv import load_dotenv
import discord

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "false") -> bool:
    raw = (os.getenv(name, default) or default).strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s invalide (%r), valeur par défaut %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s invalide (%r), valeur par défaut %s", name, raw, default)
        return default


INTENTS = discord.Intents.default()
INTENTS.members = True
INTENTS.voice_states = True
# L'intent "presences" est privilégié ; activable via ENABLE_PRESENCES
INTENTS.presences = _env_bool("ENABLE_PRESENCES")

BOT_TOKEN = os.getenv("BOT_TOKEN")
DATABASE_URL = os.getenv("DATABASE_URL")

PROVIDER_TIMEOUT = _env_float("PROVIDER_TIMEOUT", 5.0)
PROVIDER_RETRIES = max(0, _env_int("PROVIDER_RETRIES", 1))
DEFAULT_ROOM_TEMPLATE = os.getenv("DEFAULT_ROOM_TEMPLATE") or "{USER}'s Channel"


if not BOT_TOKEN:
    logger.warning("BOT_TOKEN manquant dans l'environnement")
