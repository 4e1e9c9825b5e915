"""
Configuration centralisée du logging pour le bot Discord.

Objectifs :
- Un seul setup idempotent (évite la duplication des handlers)
- Déduplication des messages identiques (les retries Discord répètent souvent la même ligne)
- Format et niveau configurables via LOG_LEVEL
"""
from __future__ import annotations

import logging
import threading
import os
from collections import OrderedDict

_INITIALIZED = False

DEFAULT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
MAX_REMEMBERED = 5000


class DeduplicateFilter(logging.Filter):
    """Ignore un record déjà vu (même logger, niveau et message rendu).

    La mémoire est bornée : les clés les plus anciennes sont oubliées en premier.
    """

    def __init__(self, capacity: int = MAX_REMEMBERED):
        super().__init__()
        self.capacity = capacity
        self._seen: "OrderedDict[tuple, None]" = OrderedDict()
        self._lock = threading.Lock()

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        try:
            rendered = record.getMessage()
        except Exception:  # noqa: BLE001
            rendered = str(record.msg)
        key = (record.name, record.levelno, rendered)
        with self._lock:
            if key in self._seen:
                self._seen.move_to_end(key)
                return False
            self._seen[key] = None
            while len(self._seen) > self.capacity:
                self._seen.popitem(last=False)
        return True


def setup_logging(level: str | None = None, force: bool = False) -> None:
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    root = logging.getLogger()
    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for h in root.handlers:
        if not any(isinstance(f, DeduplicateFilter) for f in h.filters):
            h.addFilter(DeduplicateFilter())
        h.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    wanted = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, wanted, logging.INFO))
    # discord.py est très bavard en DEBUG
    logging.getLogger("discord").setLevel(max(root.level, logging.INFO))
    _INITIALIZED = True


__all__ = ["setup_logging", "DeduplicateFilter"]
