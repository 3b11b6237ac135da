"""Sync orchestrator: fans adapter calls out per user and across users.

Every adapter call runs under ``asyncio.wait_for`` so a hung platform costs at
most ``sync_timeout_seconds``. Successful snapshots replace the cached and
persisted ones wholesale; failures are reported per platform and never touch
previously stored data.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from .adapters.base import PlatformAdapter
from .adapters.demo import DEMO_HANDLES, DemoAdapter
from .cache import StatsCache, stats_cache
from .config import Settings, get_settings
from .errors import (
    InvalidPlatform,
    NotConnected,
    SyncError,
    UpstreamShapeChanged,
    UpstreamUnavailable,
)
from .link_store import LinkStore, link_store
from .platform_models import (
    SUPPORTED_PLATFORMS,
    NormalizedStats,
    Platform,
    PlatformLink,
    PlatformResult,
    SweepSummary,
    SyncOutcome,
    parse_platform,
)
from .telemetry import emit_event

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    def __init__(
        self,
        adapters: Mapping[Platform, PlatformAdapter],
        *,
        store: Optional[LinkStore] = None,
        cache: Optional[StatsCache] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._adapters = dict(adapters)
        self._store: LinkStore = store or link_store
        self._cache = cache or stats_cache
        self._settings = settings or get_settings()
        self._clock = clock

    @property
    def timeout(self) -> float:
        return self._settings.sync_timeout_seconds

    def _adapter(self, platform: Platform) -> PlatformAdapter:
        adapter = self._adapters.get(platform)
        if adapter is None:
            raise InvalidPlatform(f"No adapter registered for {platform.value}.", platform=platform.value)
        return adapter

    async def sync_one(self, user_id: str, platform: Union[str, Platform]) -> NormalizedStats:
        """Refresh one connected platform; raises ``SyncError`` on failure."""
        resolved = parse_platform(platform)
        self._adapter(resolved)
        link = self._store.get_link(user_id, resolved)
        return await self._sync_link(link)

    async def _sync_link(self, link: PlatformLink) -> NormalizedStats:
        platform = link.platform
        if not link.connected or not link.handle:
            raise NotConnected(f"{platform.value} is not connected.", platform=platform.value)
        adapter = self._adapter(platform)

        started = time.perf_counter()
        try:
            stats = await self._collect(adapter, link.handle)
        except SyncError as exc:
            emit_event(
                "platform_sync",
                user_id=link.user_id,
                platform=platform,
                status="error",
                error=exc,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise

        # The link may have been disconnected or re-pointed while the adapter ran.
        current = self._store.get_link(link.user_id, platform)
        if not current.connected or (current.handle or "").lower() != link.handle.lower():
            emit_event("platform_sync", user_id=link.user_id, platform=platform, status="discarded")
            raise NotConnected(f"{platform.value} was disconnected during sync.", platform=platform.value)

        # Store first; the cache only mirrors snapshots that were persisted.
        self._store.save_stats(link.user_id, stats)
        self._store.mark_synced(link.user_id, platform, self._clock())
        self._cache.put(link.user_id, platform, stats)
        emit_event(
            "platform_sync",
            user_id=link.user_id,
            platform=platform,
            status="ok",
            total_solved=stats.total_solved,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return stats

    async def _collect(self, adapter: PlatformAdapter, handle: str) -> NormalizedStats:
        name = adapter.platform.value
        try:
            stats = await asyncio.wait_for(adapter.collect(handle), timeout=self.timeout)
        except SyncError as exc:
            raise exc.with_platform(name)
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailable(f"{name} did not respond within {self.timeout:g}s", platform=name) from exc
        except Exception as exc:
            logger.exception("Unexpected %s adapter failure for %s", name, handle)
            raise UpstreamShapeChanged(f"{name} adapter failed: {exc}", platform=name) from exc
        if stats.platform != adapter.platform:
            raise UpstreamShapeChanged(f"{name} adapter returned {stats.platform.value} stats", platform=name)
        return stats

    async def _sync_captured(self, link: PlatformLink) -> Tuple[Platform, PlatformResult]:
        try:
            return link.platform, await self._sync_link(link)
        except SyncError as exc:
            logger.info("Sync of %s for %s failed: %s", link.platform.value, link.user_id, exc.detail)
            return link.platform, exc

    async def sync_all_for_user(self, user_id: str, *, allow_demo: bool = True) -> SyncOutcome:
        """Sync every connected platform concurrently.

        When nothing is connected and demo mode is on, the outcome is built
        from synthetic data and flagged ``demo``; nothing is cached or stored.
        """
        outcome = SyncOutcome(user_id=user_id, started_at=self._clock())
        links = [
            link
            for platform, link in self._store.list_links(user_id).items()
            if link.connected and platform in self._adapters
        ]

        if not links and allow_demo and self._settings.demo_mode_enabled:
            outcome.demo = True
            outcome.results = await self._demo_results()
        elif links:
            pairs = await asyncio.gather(*(self._sync_captured(link) for link in links))
            outcome.results = dict(pairs)

        outcome.finished_at = self._clock()
        emit_event(
            "sync_outcome",
            user_id=user_id,
            demo=outcome.demo,
            succeeded=list(outcome.successes),
            failed=outcome.failures,
        )
        return outcome

    async def _demo_results(self) -> Dict[Platform, PlatformResult]:
        now = self._clock()
        adapters = [DemoAdapter(platform, now=now) for platform in DEMO_HANDLES]
        snapshots = await asyncio.gather(*(adapter.collect() for adapter in adapters))
        return {snapshot.platform: snapshot for snapshot in snapshots}

    async def sweep(self) -> SweepSummary:
        """Refresh every user with at least one connected platform.

        Loading the user list is the only fatal step. Per-user failures are
        logged and counted.
        """
        user_ids = self._store.connected_user_ids()
        summary = SweepSummary(started_at=self._clock(), users_total=len(user_ids))
        semaphore = asyncio.Semaphore(self._settings.sweep_concurrency)
        in_flight = 0

        async def run(user_id: str) -> None:
            nonlocal in_flight
            async with semaphore:
                in_flight += 1
                summary.max_in_flight = max(summary.max_in_flight, in_flight)
                try:
                    outcome = await self.sync_all_for_user(user_id, allow_demo=False)
                except Exception as exc:
                    logger.exception("Sweep failed for user %s", user_id)
                    summary.users_failed += 1
                    summary.errors[user_id] = [f"sync: {type(exc).__name__}"]
                    return
                finally:
                    in_flight -= 1

            summary.platform_successes += len(outcome.successes)
            failures = outcome.failures
            summary.platform_failures += len(failures)
            if failures:
                summary.users_failed += 1
                summary.errors[user_id] = [f"{platform.value}: {error.kind}" for platform, error in failures.items()]
            else:
                summary.users_succeeded += 1

        await asyncio.gather(*(run(user_id) for user_id in user_ids))
        summary.finished_at = self._clock()
        emit_event(
            "sweep_completed",
            users_total=summary.users_total,
            users_succeeded=summary.users_succeeded,
            users_failed=summary.users_failed,
            platform_failures=summary.platform_failures,
            max_in_flight=summary.max_in_flight,
        )
        logger.info(
            "Sweep finished: %s users, %s failed, peak concurrency %s",
            summary.users_total,
            summary.users_failed,
            summary.max_in_flight,
        )
        return summary

    def cached_stats(self, user_id: str) -> Dict[Platform, NormalizedStats]:
        """Last good snapshots of connected platforms, without any upstream call."""
        found: Dict[Platform, NormalizedStats] = {}
        missing: List[Platform] = []
        connected = [platform for platform, link in self._store.list_links(user_id).items() if link.connected]
        for platform in connected:
            cached = self._cache.get(user_id, platform)
            if cached is not None:
                found[platform] = cached
            else:
                missing.append(platform)
        for platform in missing:
            stored = self._store.get_stats(user_id, platform)
            if stored is None:
                continue
            self._cache.put(user_id, platform, stored)
            found[platform] = stored
        return found


__all__ = ["SyncOrchestrator"]
