"""
Classe principale du bot Discord.

Responsabilités :
- Crée le client Discord et l'arbre de commandes slash.
- Ouvre le pool PostgreSQL et vérifie le schéma des salons temporaires.
- Initialise le gestionnaire de salons temporaires puis charge les commandes.

Note : L'initialisation asynchrone est centralisée dans `setup_hook`, appelé avant `on_ready`.
"""
from __future__ import annotations

import logging
import discord
from discord import app_commands

from core import config, db
from core.voice_rooms import setup_voice_rooms_manager
from db.voice_rooms import VoiceRoomStore

logger = logging.getLogger(__name__)

class Bot(discord.Client):
    """
    Client Discord étendu, encapsulant l'état applicatif.

    Attributs principaux :
        tree : Arbre des commandes slash (CommandTree)
        db_pool : Pool asyncpg (None si aucune DB configurée)
        store : VoiceRoomStore (None sans DB)
        voice_rooms : VoiceRoomsManager, posé par `setup_voice_rooms_manager`
    """

    def __init__(self):
        super().__init__(intents=config.INTENTS)
        self.tree = app_commands.CommandTree(self)
        self.db_pool = None
        self.store = None
        self.voice_rooms = None

    async def setup_hook(self):
        """
        Séquence :
        1. Connexion DB
        2. Gestionnaire de salons temporaires (schéma, état suivi, événements vocaux)
        3. Commandes slash puis synchronisation
        """
        if not config.DATABASE_URL:
            logger.error("DATABASE_URL manquant : salons temporaires désactivés")
        else:
            try:
                self.db_pool = await db.open_pool(config.DATABASE_URL)
                self.store = VoiceRoomStore(self.db_pool)
                logger.info("DB prête")
            except Exception:  # noqa: BLE001
                logger.exception("Erreur init DB")
                self.store = None
        if self.store is not None:
            try:
                await setup_voice_rooms_manager(self, self.store)
                logger.info("VoiceRooms manager initialisé")
            except Exception:  # noqa: BLE001
                logger.exception("Erreur init VoiceRooms manager")
        try:
            from commands import load_all_commands  # type: ignore
            await load_all_commands(self)
        except Exception:  # noqa: BLE001
            logger.exception("Erreur chargement commandes dynamiques")
        try:
            await self.tree.sync()
            logger.info("Slash commands synchronisées")
        except Exception:  # noqa: BLE001
            logger.exception("Erreur sync slash commands")

    async def on_ready(self):
        logger.info("Connecté: %s (%s)", self.user, getattr(self.user, 'id', '?'))

    async def close(self):  # type: ignore[override]
        try:
            await db.close_pool(self.db_pool)
        except Exception:  # noqa: BLE001
            logger.exception("Erreur fermeture pool")
        await super().close()
