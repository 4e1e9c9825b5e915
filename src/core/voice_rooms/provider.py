"""
Adaptateur Discord pour les salons temporaires.

Chaque appel est borné par `PROVIDER_TIMEOUT` et retenté `PROVIDER_RETRIES` fois en cas
d'échec transitoire (429, 5xx, timeout). Classification :
    discord.Forbidden        -> ConfigurationError (permission manquante, pas de retry)
    discord.NotFound / 4xx   -> ProviderError
    429 / 5xx / timeout      -> TransientProviderError après les retries
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

import discord

from core import config
from .errors import ConfigurationError, ProviderError, TransientProviderError
from .models import OverwriteRule, SubjectKind
from .policy import OverwriteSet

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_transient(exc: discord.HTTPException) -> bool:
    return exc.status == 429 or exc.status >= 500


def _kind_of(target) -> SubjectKind:
    if isinstance(target, discord.Role):
        return SubjectKind.ROLE
    if isinstance(target, discord.Object) and target.type is discord.Role:
        return SubjectKind.ROLE
    return SubjectKind.MEMBER


def overwrites_from_discord(mapping: Mapping[object, discord.PermissionOverwrite]) -> List[OverwriteRule]:
    """Overwrites discord.py (ex : ceux de la catégorie) -> règles du résolveur."""
    rules: List[OverwriteRule] = []
    for target, overwrite in mapping.items():
        allow, deny = overwrite.pair()
        rules.append(OverwriteRule(subject_id=target.id, kind=_kind_of(target), allow=allow.value, deny=deny.value))
    return rules


def to_discord_overwrites(guild: discord.Guild, overwrites: OverwriteSet) -> Dict[object, discord.PermissionOverwrite]:
    result: Dict[object, discord.PermissionOverwrite] = {}
    for rule in overwrites:
        if rule.kind == SubjectKind.ROLE:
            target = guild.get_role(rule.subject_id) or discord.Object(id=rule.subject_id, type=discord.Role)
        else:
            target = guild.get_member(rule.subject_id) or discord.Object(id=rule.subject_id, type=discord.Member)
        result[target] = discord.PermissionOverwrite.from_pair(
            discord.Permissions(rule.allow), discord.Permissions(rule.deny)
        )
    return result


class DiscordProvider:
    """Primitives Discord utilisées par le cycle de vie des salons."""

    def __init__(self, *, timeout: Optional[float] = None, retries: Optional[int] = None):
        self.timeout = config.PROVIDER_TIMEOUT if timeout is None else timeout
        self.retries = config.PROVIDER_RETRIES if retries is None else retries

    async def _call(self, op: str, factory: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(factory(), timeout=self.timeout)
            except discord.Forbidden as exc:
                raise ConfigurationError(f"{op}: permission manquante") from exc
            except discord.NotFound as exc:
                raise ProviderError(f"{op}: cible introuvable") from exc
            except (asyncio.TimeoutError, discord.HTTPException) as exc:
                if isinstance(exc, discord.HTTPException) and not _is_transient(exc):
                    raise ProviderError(f"{op}: {exc}") from exc
                if attempt >= self.retries:
                    raise TransientProviderError(f"{op}: {exc!r}") from exc
                attempt += 1
                logger.warning("%s: échec transitoire (%r), nouvel essai %s/%s", op, exc, attempt, self.retries)

    async def create_voice_room(
        self,
        guild: discord.Guild,
        name: str,
        *,
        category: Optional[discord.CategoryChannel],
        user_limit: int,
        reason: str,
    ) -> discord.VoiceChannel:
        return await self._call(
            "create_voice_room",
            lambda: guild.create_voice_channel(name, category=category, user_limit=max(0, user_limit), reason=reason),
        )

    async def delete_voice_room(self, channel: discord.VoiceChannel, *, reason: str) -> None:
        await self._call("delete_voice_room", lambda: channel.delete(reason=reason))

    async def set_member_voice_room(self, member: discord.Member, channel: discord.VoiceChannel) -> None:
        await self._call("set_member_voice_room", lambda: member.move_to(channel, reason="Salon temporaire"))

    async def apply_overwrites(self, channel: discord.VoiceChannel, overwrites: OverwriteSet) -> None:
        mapping = to_discord_overwrites(channel.guild, overwrites)
        await self._call("apply_overwrites", lambda: channel.edit(overwrites=mapping, reason="Salon temporaire: permissions"))

    async def send_message(self, channel: discord.VoiceChannel, text: str, *, mention_users: bool = False) -> None:
        mentions = discord.AllowedMentions(everyone=False, roles=False, users=mention_users)
        await self._call("send_message", lambda: channel.send(content=text, allowed_mentions=mentions))

    async def rename_room(self, channel: discord.VoiceChannel, name: str) -> None:
        await self._call("rename_room", lambda: channel.edit(name=name, reason="Salon temporaire: renommage"))

    async def set_user_limit(self, channel: discord.VoiceChannel, limit: int) -> None:
        await self._call("set_user_limit", lambda: channel.edit(user_limit=limit, reason="Salon temporaire: limite"))


__all__ = ["DiscordProvider", "overwrites_from_discord", "to_discord_overwrites"]
