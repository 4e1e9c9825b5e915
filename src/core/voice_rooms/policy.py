"""
Résolveur de permissions des salons temporaires.

`resolve` est une fonction pure : à partir de l'état courant (salon, préférences du
propriétaire, listes de confiance/blocage, rôles staff, membres connectés, overwrites
de la catégorie parente) elle calcule l'ensemble complet des overwrites à appliquer.
Aucune I/O : on peut l'appeler après chaque mouvement vocal, le résultat ne dépend
que des entrées (pas de diff).

Ordre de priorité (le dernier qui écrit un bit pour un sujet gagne) :
    1. overwrites de la catégorie parente
    2. @everyone : chat (coupé si plein en mode open_spots) + soundboard
    3. membres de confiance : chat + déplacer des membres
    4. membres connectés non-confiance : chat réautorisé si le chat est coupé
    5. bloqués non staff et non connectés : connexion + chat refusés
    6. propriétaire : remplace toute règle précédente
"""
from __future__ import annotations

from collections import OrderedDict
from typing import AbstractSet, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from core.permissions import CHAT, CONNECT, MOVE_MEMBERS, OWNER_CAPABILITIES, SOUNDBOARD
from .models import (
    ChatRestriction,
    CommandAccess,
    LiveMember,
    OverwriteRule,
    OwnerPreference,
    RoomSnapshot,
    SoundboardRestriction,
    SubjectKind,
)


class OverwriteSet:
    """Table ordonnée sujet -> règle. Une seule règle par sujet."""

    def __init__(self, rules: Iterable[OverwriteRule] = ()):
        self._rules: "OrderedDict[int, OverwriteRule]" = OrderedDict()
        for rule in rules:
            self._rules[rule.subject_id] = rule

    def set(self, subject_id: int, kind: SubjectKind, *, allow: int = 0, deny: int = 0) -> None:
        """Fusionne bit à bit : les bits fournis écrasent ceux du sujet, le reste est conservé."""
        current = self._rules.get(subject_id)
        base_allow = current.allow if current else 0
        base_deny = current.deny if current else 0
        self._rules[subject_id] = OverwriteRule(
            subject_id=subject_id,
            kind=kind,
            allow=(base_allow & ~deny) | allow,
            deny=(base_deny & ~allow) | deny,
        )

    def replace(self, subject_id: int, kind: SubjectKind, *, allow: int = 0, deny: int = 0) -> None:
        self._rules[subject_id] = OverwriteRule(subject_id=subject_id, kind=kind, allow=allow, deny=deny)

    def get(self, subject_id: int) -> Optional[OverwriteRule]:
        return self._rules.get(subject_id)

    def as_tuples(self) -> Tuple[Tuple[int, str, int, int], ...]:
        return tuple((r.subject_id, r.kind.value, r.allow, r.deny) for r in self._rules.values())

    def __contains__(self, subject_id: object) -> bool:
        return subject_id in self._rules

    def __iter__(self) -> Iterator[OverwriteRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OverwriteSet):
            return NotImplemented
        return self.as_tuples() == other.as_tuples()

    def __repr__(self) -> str:
        return f"OverwriteSet({list(self._rules.values())!r})"


def _is_staff(role_ids: Iterable[int], staff_role_ids: AbstractSet[int]) -> bool:
    return any(rid in staff_role_ids for rid in role_ids)


def resolve(
    room: RoomSnapshot,
    prefs: Optional[OwnerPreference],
    trusted: AbstractSet[int],
    blocked: AbstractSet[int],
    staff_role_ids: AbstractSet[int],
    live_members: Iterable[LiveMember],
    parent_baseline: Iterable[OverwriteRule] = (),
    known_roles: Optional[Mapping[int, Iterable[int]]] = None,
) -> OverwriteSet:
    """
    Calcule les overwrites finaux d'un salon temporaire.

    Args :
        room : propriétaire, limite et nombre de membres connectés
        prefs : préférences du propriétaire (défauts si None)
        trusted / blocked : identifiants des listes du propriétaire
        staff_role_ids : rôles exemptés de blocage sur le serveur
        live_members : membres connectés (avec leurs rôles)
        parent_baseline : overwrites de la catégorie, point de départ
        known_roles : rôles connus des membres du serveur (pour détecter le staff
            parmi les bloqués absents du salon)
    """
    if prefs is None:
        prefs = OwnerPreference.default(room.owner_id, room.guild_id)
    connected: Dict[int, LiveMember] = {m.user_id: m for m in live_members}
    known_roles = known_roles or {}

    overwrites = OverwriteSet(parent_baseline)

    everyone = room.guild_id
    chat_restricted = prefs.chat == ChatRestriction.OPEN_SPOTS and room.is_full
    if chat_restricted:
        overwrites.set(everyone, SubjectKind.ROLE, deny=CHAT)
    else:
        overwrites.set(everyone, SubjectKind.ROLE, allow=CHAT)
    if prefs.soundboard == SoundboardRestriction.ANYONE:
        overwrites.set(everyone, SubjectKind.ROLE, allow=SOUNDBOARD)
    else:
        overwrites.set(everyone, SubjectKind.ROLE, deny=SOUNDBOARD)

    for uid in sorted(trusted):
        overwrites.set(uid, SubjectKind.MEMBER, allow=CHAT | MOVE_MEMBERS)

    # Un membre déjà présent n'est jamais rendu muet quand le salon se remplit
    if chat_restricted:
        for uid in sorted(connected):
            if uid not in trusted:
                overwrites.set(uid, SubjectKind.MEMBER, allow=CHAT)

    # Un blocage empêche de revenir, il n'expulse jamais
    for uid in sorted(blocked):
        if uid in connected:
            continue
        if _is_staff(known_roles.get(uid, ()), staff_role_ids):
            continue
        overwrites.set(uid, SubjectKind.MEMBER, deny=CONNECT | CHAT)

    owner_allow = OWNER_CAPABILITIES
    if prefs.soundboard == SoundboardRestriction.OWNER:
        owner_allow |= SOUNDBOARD
    overwrites.replace(room.owner_id, SubjectKind.MEMBER, allow=owner_allow)
    return overwrites


def may_use_room_commands(
    access: CommandAccess,
    user_id: int,
    owner_id: int,
    trusted: AbstractSet[int],
    blocked: AbstractSet[int],
) -> bool:
    """Qui peut lancer les commandes `/voice` dans le salon d'un propriétaire."""
    if user_id == owner_id:
        return True
    if user_id in blocked:
        return False
    if access == CommandAccess.ANYONE:
        return True
    if access == CommandAccess.TRUSTED:
        return user_id in trusted
    return False


__all__ = ["OverwriteSet", "resolve", "may_use_room_commands"]
