"""
Rendu des noms de salons et du message d'accueil.

Placeholders (insensibles à la casse) :
    {USER}                  -> nom affiché du propriétaire
    {PLATFORM} / {PLATFORM:-texte}
    {BUILD} / {BUILD:-texte}
Si la valeur est absente ou vide, le texte par défaut est utilisé (chaîne vide sans `:-`).
"""
from __future__ import annotations

import re
from typing import Optional

from .platforms import short_label

MAX_CHANNEL_NAME = 100

_USER_RE = re.compile(r"\{USER\}", re.IGNORECASE)
_PLATFORM_RE = re.compile(r"\{PLATFORM(?::-(.*?))?\}", re.IGNORECASE)
_BUILD_RE = re.compile(r"\{BUILD(?::-(.*?))?\}", re.IGNORECASE)
_OWNER_MENTION_RE = re.compile(r"\{OWNER_MENTION\}", re.IGNORECASE)


def format_channel_name(
    template: str,
    display_name: str,
    platform: Optional[str] = None,
    build: Optional[str] = None,
) -> str:
    platform_value = short_label(platform)
    build_value = (build or "").strip()

    name = _USER_RE.sub(lambda _m: display_name, template)
    name = _PLATFORM_RE.sub(lambda m: platform_value or m.group(1) or "", name)
    name = _BUILD_RE.sub(lambda m: build_value or m.group(1) or "", name)
    name = " ".join(name.split())
    if not name:
        name = display_name
    return name[:MAX_CHANNEL_NAME]


def validate_template(template: str) -> bool:
    """Vrai si le modèle ne contient que des placeholders connus."""
    if not template or len(template) > MAX_CHANNEL_NAME:
        return False
    reste = _USER_RE.sub("u", template)
    reste = _PLATFORM_RE.sub("p", reste)
    reste = _BUILD_RE.sub("b", reste)
    return "{" not in reste and "}" not in reste


def render_welcome(text: str, owner_mention: str) -> str:
    return _OWNER_MENTION_RE.sub(lambda _m: owner_mention, text)


__all__ = ["format_channel_name", "validate_template", "render_welcome", "MAX_CHANNEL_NAME"]
