"""
Registre des groupes de commandes slash (`/setup`, `/voice`, `/settings`).

Chaque module public du package expose `register(bot)` qui ajoute son groupe à `bot.tree`.
Les modules préfixés par `_` sont des helpers partagés et ne sont pas chargés.
"""
from __future__ import annotations

import importlib
import pkgutil
import logging
from typing import List

import discord

logger = logging.getLogger(__name__)


async def load_all_commands(bot: discord.Client) -> List[str]:
	"""Importe chaque module de commandes et appelle son `register`. Retourne les modules chargés."""
	loaded: List[str] = []
	for mod in sorted(pkgutil.iter_modules(__path__), key=lambda m: m.name):  # type: ignore[name-defined]
		if mod.name.startswith('_'):
			continue
		full_name = f"{__name__}.{mod.name}"
		try:
			module = importlib.import_module(full_name)
		except Exception:  # noqa: BLE001
			logger.exception("Import impossible: %s", full_name)
			continue
		register = getattr(module, 'register', None)
		if register is None:
			logger.debug("Module sans register(): %s", full_name)
			continue
		try:
			result = register(bot)
			if hasattr(result, '__await__'):
				await result
		except Exception:  # noqa: BLE001
			logger.exception("Echec enregistrement %s", full_name)
			continue
		loaded.append(full_name)
	logger.info("Groupes de commandes chargés: %s", ", ".join(loaded) or "(aucun)")
	return loaded

__all__ = ["load_all_commands"]
