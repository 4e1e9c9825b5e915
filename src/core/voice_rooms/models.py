from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional


class ChatRestriction(str, Enum):
    """Quand les personnes hors du salon peuvent écrire dans le chat du vocal."""

    ALWAYS = "always"
    OPEN_SPOTS = "open_spots"


class SoundboardRestriction(str, Enum):
    ANYONE = "anyone"
    OWNER = "owner"


class CommandAccess(str, Enum):
    ANYONE = "anyone"
    TRUSTED = "trusted"
    OWNER = "owner"


class RoomState(str, Enum):
    NONE = "none"
    ACTIVE = "active"
    DELETING = "deleting"


class SubjectKind(str, Enum):
    ROLE = "role"
    MEMBER = "member"


@dataclass(frozen=True)
class CreatorChannelConfig:
    """Salon "créateur" : y entrer fait apparaître un salon temporaire.

    name_template accepte {USER}, {PLATFORM:-défaut} et {BUILD:-défaut}.
    default_limit = 0 -> illimité.
    """

    id: int
    guild_id: int
    name_template: str
    default_limit: int = 0
    welcome_message: Optional[str] = None


@dataclass
class Room:
    """Enregistrement d'un salon temporaire suivi en base."""

    id: int
    guild_id: int
    owner_id: int
    creator_channel_id: Optional[int]
    created_at: datetime
    platform: Optional[str] = None
    build: Optional[str] = None


@dataclass(frozen=True)
class OwnerPreference:
    """Préférences par (propriétaire, serveur). Valeurs par défaut si aucune ligne."""

    owner_id: int
    guild_id: int
    chat: ChatRestriction = ChatRestriction.ALWAYS
    soundboard: SoundboardRestriction = SoundboardRestriction.ANYONE
    command_access: CommandAccess = CommandAccess.ANYONE
    last_limit: Optional[int] = None
    last_platform: Optional[str] = None
    last_build: Optional[str] = None

    @classmethod
    def default(cls, owner_id: int, guild_id: int) -> "OwnerPreference":
        return cls(owner_id=owner_id, guild_id=guild_id)


@dataclass(frozen=True)
class RoomSnapshot:
    """Vue minimale d'un salon pour le résolveur.

    guild_id sert aussi d'identifiant du rôle @everyone.
    """

    owner_id: int
    guild_id: int
    user_limit: int
    member_count: int

    @property
    def is_full(self) -> bool:
        return self.user_limit > 0 and self.member_count >= self.user_limit


@dataclass(frozen=True)
class LiveMember:
    user_id: int
    role_ids: FrozenSet[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class OverwriteRule:
    """Règle explicite allow/deny (bitfields Discord) pour un rôle ou un membre."""

    subject_id: int
    kind: SubjectKind
    allow: int = 0
    deny: int = 0


class OwnershipFailure(str, Enum):
    ROOM_NOT_FOUND = "room_not_found"
    OWNER_PRESENT = "owner_present"
    CLAIMANT_ABSENT = "claimant_absent"
    NOT_OWNER = "not_owner"
    TARGET_ABSENT = "target_absent"
    SELF_TRANSFER = "self_transfer"


@dataclass(frozen=True)
class OwnershipResult:
    ok: bool
    owner_id: Optional[int] = None
    reason: Optional[OwnershipFailure] = None

    @classmethod
    def success(cls, owner_id: int) -> "OwnershipResult":
        return cls(ok=True, owner_id=owner_id)

    @classmethod
    def failure(cls, reason: OwnershipFailure, owner_id: Optional[int] = None) -> "OwnershipResult":
        return cls(ok=False, owner_id=owner_id, reason=reason)
