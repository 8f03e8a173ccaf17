"""Explicit memo store for statistics results.

Entries live until the owner clears them (timeframe change, manual refresh,
dataset reset). There is no time-based expiry.
"""

from __future__ import annotations

import hashlib
import json
from threading import RLock
from typing import Any, Generic, Iterable, Mapping, Optional, TypeVar

from labops.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


def build_cache_key(reservation_ids: Iterable[str], parameters: Mapping[str, Any]) -> str:
    """Hash the sorted id list together with the query parameters."""
    payload = {
        "ids": sorted(str(reservation_id) for reservation_id in reservation_ids),
        "params": dict(parameters),
    }
    serialized = json.dumps(payload, sort_keys=True, default=str)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"stats_{len(payload['ids'])}_{digest[:16]}"


class ResultCache(Generic[T]):
    def __init__(self) -> None:
        self._entries: dict[str, T] = {}
        self._lock = RLock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._misses += 1
            else:
                self._hits += 1
            return value

    def put(self, key: str, value: T) -> None:
        with self._lock:
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        logger.info("Statistics cache cleared (%d entries)", cleared)

    def info(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "keys": list(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }
