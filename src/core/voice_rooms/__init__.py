"""Salons vocaux temporaires : résolveur de permissions et cycle de vie.

Les imports du manager sont effectués de manière lazy (il dépend de `views`) ;
le résolveur et les modèles sont purs et importables directement.
"""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

from .policy import OverwriteSet, resolve, may_use_room_commands  # noqa: F401

if TYPE_CHECKING:  # aide mypy/IDE sans exécuter les imports au runtime initial
	from .manager import VoiceRoomsManager, setup_voice_rooms_manager  # noqa: F401

__all__ = ["OverwriteSet", "resolve", "may_use_room_commands", "VoiceRoomsManager", "setup_voice_rooms_manager"]


def __getattr__(name: str):  # lazy resolution
	if name in {"VoiceRoomsManager", "setup_voice_rooms_manager"}:
		mod = import_module("core.voice_rooms.manager")
		return getattr(mod, name)
	raise AttributeError(name)
