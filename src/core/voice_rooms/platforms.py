"""Catalogue des plateformes de jeu et inférence depuis les rôles du membre."""
from __future__ import annotations

from typing import Iterable, Mapping, NamedTuple, Optional


class Platform(NamedTuple):
    label: str
    short: str


PLATFORMS: dict[str, Platform] = {
    "steam": Platform("Steam", "Steam"),
    "epic": Platform("Epic Games", "Epic"),
    "windows": Platform("Windows Store", "Win"),
    "xbox": Platform("Xbox", "Xbox"),
    "ps4": Platform("PlayStation 4", "PS4"),
    "ps5": Platform("PlayStation 5", "PS5"),
    "switch": Platform("Nintendo Switch", "Switch"),
}


def is_known(key: Optional[str]) -> bool:
    return bool(key) and key in PLATFORMS


def short_label(key: Optional[str]) -> str:
    if not is_known(key):
        return ""
    return PLATFORMS[key].short  # type: ignore[index]


def infer_platform(
    cached: Optional[str],
    member_role_ids: Iterable[int],
    platform_roles: Mapping[int, str],
) -> Optional[str]:
    """
    Choisit la plateforme d'un nouveau salon.

    - La dernière plateforme utilisée par le propriétaire est prioritaire.
    - Sinon, intersection des rôles du membre avec les rôles-plateforme du serveur :
      une seule plateforme trouvée -> retenue ; zéro ou plusieurs -> None (pas de devinette).
    """
    if is_known(cached):
        return cached
    matches = {
        platform_roles[rid]
        for rid in member_role_ids
        if rid in platform_roles and is_known(platform_roles[rid])
    }
    if len(matches) == 1:
        return next(iter(matches))
    return None


__all__ = ["Platform", "PLATFORMS", "is_known", "short_label", "infer_platform"]
