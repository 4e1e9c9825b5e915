"""Exceptions des salons temporaires.

Les échecs de claim/transfer ne sont pas des exceptions : voir `OwnershipResult`.
"""
from __future__ import annotations


class VoiceRoomError(Exception):
    """Base des erreurs de la fonctionnalité salons temporaires."""


class ConfigurationError(VoiceRoomError):
    """Le bot n'a pas la capacité requise (ex : gérer les salons)."""


class ProviderError(VoiceRoomError):
    """Echec définitif d'un appel Discord."""


class TransientProviderError(ProviderError):
    """Rate limit, erreur serveur ou timeout, après épuisement des retries."""


class PrecisionError(VoiceRoomError):
    """Un identifiant ne tient pas sur 64 bits non signés."""


__all__ = ["VoiceRoomError", "ConfigurationError", "ProviderError", "TransientProviderError", "PrecisionError"]
