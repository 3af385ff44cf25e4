"""Key-value store with per-entry TTL backing the room records.

``KeyValueStore`` is the async contract the Room Manager relies on (the same
surface as a Redis ``GET``/``SETEX``/``DEL``). ``MemoryStore`` implements it
in-process for single-instance deployments and tests.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def keys(self, prefix: str = "") -> List[str]:
        ...


@dataclass
class _Entry:
    value: str
    expires_at: float


class MemoryStore:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry.value if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in list(self._entries) if k.startswith(prefix) and self._live(k))

    async def ttl(self, key: str) -> Optional[float]:
        """Seconds left before ``key`` expires, or None when it is absent."""
        entry = self._live(key)
        return None if entry is None else entry.expires_at - self._clock()
