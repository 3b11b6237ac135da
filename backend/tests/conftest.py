from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pytest

os.environ.setdefault("CODEIT_DATABASE_URL", "sqlite://")

from codeit_sync.adapters.base import PlatformAdapter, RawRatingPoint, RawStats  # noqa: E402
from codeit_sync.cache import StatsCache  # noqa: E402
from codeit_sync.config import Settings  # noqa: E402
from codeit_sync.platform_models import (  # noqa: E402
    SUPPORTED_PLATFORMS,
    NormalizedStats,
    Platform,
    PlatformLink,
    RatingPoint,
)
from codeit_sync.telemetry import clear_listeners  # noqa: E402

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryLinkStore:
    """Dict-backed stand-in for ``DatabaseLinkStore``."""

    def __init__(self) -> None:
        self.links: Dict[Tuple[str, Platform], PlatformLink] = {}
        self.stats: Dict[Tuple[str, Platform], NormalizedStats] = {}
        self.fail_listing = False
        self.fail_saves_for: Set[str] = set()

    def connect(self, user_id: str, platform: Platform, handle: str) -> PlatformLink:
        link = PlatformLink(user_id=user_id, platform=platform, handle=handle, connected=True, verified_at=BASE_TIME)
        return self.save_link(link)

    def get_link(self, user_id: str, platform: Platform) -> PlatformLink:
        link = self.links.get((user_id, platform))
        if link is None:
            return PlatformLink(user_id=user_id, platform=platform)
        return link.model_copy(deep=True)

    def list_links(self, user_id: str) -> Dict[Platform, PlatformLink]:
        return {platform: self.get_link(user_id, platform) for platform in SUPPORTED_PLATFORMS}

    def save_link(self, link: PlatformLink) -> PlatformLink:
        self.links[(link.user_id, link.platform)] = link.model_copy(deep=True)
        return link.model_copy(deep=True)

    def mark_synced(self, user_id: str, platform: Platform, synced_at: datetime) -> bool:
        link = self.links.get((user_id, platform))
        if link is None or not link.connected:
            return False
        if link.last_synced_at is not None and link.last_synced_at >= synced_at:
            return False
        self.links[(user_id, platform)] = link.model_copy(update={"last_synced_at": synced_at})
        return True

    def connected_user_ids(self) -> List[str]:
        if self.fail_listing:
            raise RuntimeError("user store unavailable")
        return sorted({user_id for (user_id, _), link in self.links.items() if link.connected})

    def get_stats(self, user_id: str, platform: Platform) -> Optional[NormalizedStats]:
        stats = self.stats.get((user_id, platform))
        return stats.model_copy(deep=True) if stats else None

    def save_stats(self, user_id: str, stats: NormalizedStats) -> bool:
        if user_id in self.fail_saves_for:
            raise RuntimeError("stats table locked")
        current = self.stats.get((user_id, stats.platform))
        if current is not None and current.fetched_at > stats.fetched_at:
            return False
        self.stats[(user_id, stats.platform)] = stats.model_copy(deep=True)
        return True

    def delete_stats(self, user_id: str, platform: Platform) -> None:
        self.stats.pop((user_id, platform), None)


class StubAdapter(PlatformAdapter):
    """Adapter with scripted behaviour and no network access."""

    profile_field = "Bio"

    def __init__(
        self,
        platform: Platform,
        settings: Settings,
        *,
        profile_text: str = "",
        delay: float = 0.0,
        error: Optional[BaseException] = None,
        profile_error: Optional[BaseException] = None,
        failing_handles: Iterable[str] = (),
        total_solved: int = 42,
        fetched_at: Optional[datetime] = None,
    ) -> None:
        super().__init__(settings, client=None)  # type: ignore[arg-type]
        self.platform = platform
        self.profile_text = profile_text
        self.delay = delay
        self.error = error
        self.profile_error = profile_error
        self.failing_handles = set(failing_handles)
        self.total_solved = total_solved
        self.fetched_at = fetched_at
        self.calls = 0
        self.profile_reads = 0

    def profile_url(self, handle: str) -> str:
        return f"https://{self.platform.value}.example/{handle}"

    async def fetch_profile_text(self, handle: str) -> str:
        self.profile_reads += 1
        if self.profile_error is not None:
            raise self.profile_error
        return self.profile_text

    async def fetch_stats(self, handle: str) -> RawStats:
        return RawStats(handle=handle, data={"solved": self.total_solved})

    async def fetch_rating_history(self, handle: str) -> List[RawRatingPoint]:
        # Deliberately newest first.
        return [
            {"at": BASE_TIME - timedelta(days=1), "rating": 1550, "name": "Round 2"},
            {"at": BASE_TIME - timedelta(days=8), "rating": 1500, "name": "Round 1"},
        ]

    def normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        points = [RatingPoint(timestamp=item["at"], rating=item["rating"], contest_name=item["name"]) for item in history]
        kwargs = {"fetched_at": self.fetched_at} if self.fetched_at else {}
        return NormalizedStats(
            platform=self.platform,
            handle=raw.handle,
            total_solved=raw.data["solved"],
            rating_current=points[0].rating if points else None,
            rating_max=max((point.rating for point in points), default=None),
            rating_history=points,
            difficulty_breakdown={"easy": raw.data["solved"]},
            **kwargs,
        )

    async def collect(self, handle: str) -> NormalizedStats:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if handle in self.failing_handles:
            raise RuntimeError(f"unexpected payload for {handle}")
        return await super().collect(handle)


def make_settings(**overrides: object) -> Settings:
    values: Dict[str, object] = {"database_url": "sqlite://", "sync_timeout_seconds": 1.0}
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


def make_stats(platform: Platform, *, total_solved: int = 10, fetched_at: datetime = BASE_TIME, **kwargs: object) -> NormalizedStats:
    return NormalizedStats(platform=platform, handle="someone", total_solved=total_solved, fetched_at=fetched_at, **kwargs)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryLinkStore:
    return InMemoryLinkStore()


@pytest.fixture
def cache() -> StatsCache:
    return StatsCache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Iterable[None]:
    yield
    clear_listeners()
