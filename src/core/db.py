"""
Abstraction pour PostgreSQL via asyncpg.

Principes :
- Le pool est créé explicitement au démarrage (`open_pool`) et fermé à l'arrêt,
  puis injecté dans les stores qui en ont besoin (pas de singleton de module)
- Fonctions utilitaires atomiques (pas d'ORM) pour garder le contrôle
"""
from __future__ import annotations

import asyncpg
import logging

logger = logging.getLogger(__name__)


async def open_pool(dsn: str, *, min_size: int = 1, max_size: int = 5) -> asyncpg.Pool:
    """
    Crée un pool asyncpg.
    Args :
        dsn : URL de connexion Postgres
    """
    pool = await asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size)
    logger.info("Pool asyncpg initialisé")
    return pool


async def close_pool(pool: asyncpg.Pool | None) -> None:
    if pool is None:
        return
    await pool.close()
    logger.info("Pool asyncpg fermé")


async def ensure_schema(pool: asyncpg.Pool, sql: str, label: str) -> None:
    """
    Vérifie et crée un schéma (`CREATE ... IF NOT EXISTS`) si absent.
    """
    async with pool.acquire() as conn:
        await conn.execute(sql)
    logger.info("Schéma vérifié (%s)", label)


__all__ = ["open_pool", "close_pool", "ensure_schema"]
