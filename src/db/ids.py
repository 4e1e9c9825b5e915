"""
Encodage des identifiants Discord (entiers 64 bits non signés) vers BIGINT.

Postgres BIGINT est signé : les valeurs >= 2**63 sont stockées en complément à deux.
Les int Python sont de précision arbitraire, aucun float ne touche jamais un identifiant.
"""
from __future__ import annotations

from typing import Optional

from core.voice_rooms.errors import PrecisionError

_U64 = 1 << 64
_I64_MAX = (1 << 63) - 1


def encode_id(value: int) -> int:
    # bool est une sous-classe d'int : refusé aussi
    if not isinstance(value, int) or isinstance(value, bool):
        raise PrecisionError(f"identifiant non entier: {value!r}")
    if value < 0 or value >= _U64:
        raise PrecisionError(f"identifiant hors plage 64 bits: {value}")
    return value - _U64 if value > _I64_MAX else value


def decode_id(value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise PrecisionError(f"valeur BIGINT inattendue: {value!r}")
    return value + _U64 if value < 0 else value


def encode_opt(value: Optional[int]) -> Optional[int]:
    return None if value is None else encode_id(value)


def decode_opt(value: Optional[int]) -> Optional[int]:
    return None if value is None else decode_id(value)


__all__ = ["encode_id", "decode_id", "encode_opt", "decode_opt"]
