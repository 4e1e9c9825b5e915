"""
Claim / transfert de propriété d'un salon temporaire.

Les refus sont des résultats (`OwnershipResult`), jamais des exceptions.
Les mutations passent par le verrou du salon, le même que la suppression.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AbstractSet, Optional

import discord

from .errors import VoiceRoomError
from .models import OwnershipFailure, OwnershipResult, Room

if TYPE_CHECKING:
    from .manager import VoiceRoomsManager

logger = logging.getLogger(__name__)


def check_claim(room: Optional[Room], claimant_id: int, live_ids: AbstractSet[int]) -> OwnershipResult:
    if room is None:
        return OwnershipResult.failure(OwnershipFailure.ROOM_NOT_FOUND)
    if claimant_id not in live_ids:
        return OwnershipResult.failure(OwnershipFailure.CLAIMANT_ABSENT, room.owner_id)
    if room.owner_id == claimant_id:
        return OwnershipResult.success(claimant_id)
    if room.owner_id in live_ids:
        return OwnershipResult.failure(OwnershipFailure.OWNER_PRESENT, room.owner_id)
    return OwnershipResult.success(claimant_id)


def check_transfer(room: Optional[Room], current_owner_id: int, target_id: int, live_ids: AbstractSet[int]) -> OwnershipResult:
    if room is None:
        return OwnershipResult.failure(OwnershipFailure.ROOM_NOT_FOUND)
    if room.owner_id != current_owner_id:
        return OwnershipResult.failure(OwnershipFailure.NOT_OWNER, room.owner_id)
    if target_id == current_owner_id:
        return OwnershipResult.failure(OwnershipFailure.SELF_TRANSFER, room.owner_id)
    if target_id not in live_ids:
        return OwnershipResult.failure(OwnershipFailure.TARGET_ABSENT, room.owner_id)
    return OwnershipResult.success(target_id)


class OwnershipController:
    def __init__(self, manager: "VoiceRoomsManager"):
        self.manager = manager

    async def _reapply(self, channel: discord.VoiceChannel):
        # La propriété est déjà enregistrée : le prochain mouvement vocal réappliquera les permissions
        try:
            await self.manager.refresh_locked(channel)
        except VoiceRoomError as exc:
            logger.warning("Permissions non réappliquées sur %s après changement de propriétaire: %s", channel.id, exc)

    async def claim(self, channel: discord.VoiceChannel, claimant_id: int) -> OwnershipResult:
        async with self.manager.get_lock(channel.id):
            room = await self.manager.store.fetch_room(channel.id)
            live_ids = {m.id for m in channel.members}
            result = check_claim(room, claimant_id, live_ids)
            if not result.ok:
                logger.debug("Claim refusé sur %s par %s: %s", channel.id, claimant_id, result.reason)
                return result
            if room.owner_id != claimant_id:  # type: ignore[union-attr]
                await self.manager.store.set_room_owner(channel.id, claimant_id)
                logger.info("Salon %s réclamé: %s -> %s", channel.id, room.owner_id, claimant_id)  # type: ignore[union-attr]
            await self._reapply(channel)
            return result

    async def transfer(self, channel: discord.VoiceChannel, current_owner_id: int, target_id: int) -> OwnershipResult:
        async with self.manager.get_lock(channel.id):
            room = await self.manager.store.fetch_room(channel.id)
            live_ids = {m.id for m in channel.members}
            result = check_transfer(room, current_owner_id, target_id, live_ids)
            if not result.ok:
                logger.debug("Transfert refusé sur %s: %s", channel.id, result.reason)
                return result
            await self.manager.store.set_room_owner(channel.id, target_id)
            logger.info("Transfert de propriété du salon %s: %s -> %s", channel.id, current_owner_id, target_id)
            await self._reapply(channel)
            return result


__all__ = ["check_claim", "check_transfer", "OwnershipController"]
