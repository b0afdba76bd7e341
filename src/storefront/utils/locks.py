"""Keyed mutual exclusion for single-record critical sections.

Stands in for a row-level lock (``SELECT ... FOR UPDATE``) on providers that
have none, such as the in-memory store. Each key gets its own lock, so work
on different orders or codes never waits on each other. A key's lock lives
only while someone holds or waits for it.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class _Entry:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


_registry_lock = threading.Lock()
_locks: dict[str, _Entry] = {}


def _acquire_entry(key: str) -> _Entry:
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            entry = _locks[key] = _Entry()
        entry.users += 1
        return entry


def _release_entry(key: str, entry: _Entry) -> None:
    with _registry_lock:
        entry.users -= 1
        if entry.users == 0:
            del _locks[key]


@contextmanager
def record_lock(kind: str, identifier: str) -> Iterator[None]:
    """Hold the lock for ``kind:identifier`` for the duration of the block."""
    key = f"{kind}:{identifier}"
    entry = _acquire_entry(key)
    try:
        with entry.lock:
            yield
    finally:
        _release_entry(key, entry)

