"""Process-local cache of the last good stats snapshot per (user, platform)."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from ..platform_models import NormalizedStats, Platform

CacheKey = Tuple[str, Platform]


def _normalize_user_id(user_id: str) -> str:
    normalized = (user_id or "").strip()
    if not normalized:
        raise ValueError("User id cannot be empty when caching stats.")
    return normalized


@dataclass(frozen=True)
class _StatsEntry:
    stats: NormalizedStats
    cached_at: datetime


class StatsCache:
    """Snapshots are replaced whole; the entry with the newest ``fetched_at`` wins."""

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, _StatsEntry] = {}
        self._key_locks: Dict[CacheKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def get(self, user_id: str, platform: Platform) -> Optional[NormalizedStats]:
        entry = self._entries.get((_normalize_user_id(user_id), platform))
        if entry is None:
            return None
        return entry.stats.model_copy(deep=True)

    def put(self, user_id: str, platform: Platform, stats: NormalizedStats) -> bool:
        """Store ``stats`` unless a newer snapshot is already cached."""
        if stats.platform != platform:
            raise ValueError(f"Snapshot for {stats.platform.value} cannot be cached under {platform.value}.")
        key = (_normalize_user_id(user_id), platform)
        payload = stats.model_copy(deep=True)
        with self._lock_for(key):
            current = self._entries.get(key)
            if current is not None and current.stats.fetched_at > payload.fetched_at:
                return False
            # Single dict assignment; readers see the old entry or the new one.
            self._entries[key] = _StatsEntry(stats=payload, cached_at=datetime.now(timezone.utc))
            return True

    def cached_at(self, user_id: str, platform: Platform) -> Optional[datetime]:
        entry = self._entries.get((_normalize_user_id(user_id), platform))
        return entry.cached_at if entry else None

    def snapshot(self, user_id: str) -> Dict[Platform, NormalizedStats]:
        normalized = _normalize_user_id(user_id)
        return {
            platform: entry.stats.model_copy(deep=True)
            for (owner, platform), entry in list(self._entries.items())
            if owner == normalized
        }

    def evict(self, user_id: str, platform: Platform) -> None:
        key = (_normalize_user_id(user_id), platform)
        with self._lock_for(key):
            self._entries.pop(key, None)
        with self._registry_lock:
            self._key_locks.pop(key, None)

    def clear(self) -> None:
        with self._registry_lock:
            self._entries.clear()
            self._key_locks.clear()


stats_cache = StatsCache()

__all__ = ["StatsCache", "stats_cache"]
