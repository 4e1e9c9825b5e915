from __future__ import annotations

import logging

from core.logging_config import DeduplicateFilter


def _record(msg, *args, level=logging.WARNING, name="core.voice_rooms.provider"):
    return logging.LogRecord(name, level, __file__, 1, msg, args, None)


def test_identical_messages_are_dropped():
    f = DeduplicateFilter()
    assert f.filter(_record("retry %s", 1))
    assert not f.filter(_record("retry %s", 1))
    assert f.filter(_record("retry %s", 2))
    assert f.filter(_record("retry %s", 1, level=logging.ERROR))


def test_memory_is_bounded():
    f = DeduplicateFilter(capacity=2)
    assert f.filter(_record("a"))
    assert f.filter(_record("b"))
    assert f.filter(_record("c"))
    # "a" a été oublié
    assert f.filter(_record("a"))
    assert len(f._seen) == 2
