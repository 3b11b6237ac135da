"""In-memory caches shared across sync engine services."""

from .stats_cache import stats_cache, StatsCache

__all__ = ["stats_cache", "StatsCache"]
