"""Synthetic stats for demo accounts.

Used only when demo mode is switched on and the user has nothing connected.
Every snapshot carries ``extensions["demo"] = True`` and the orchestrator flags
the whole outcome, so demo data is never mistaken for a real sync.
"""

from __future__ import annotations

import hashlib
import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..platform_models import NormalizedStats, Platform, RatingPoint

DEMO_HANDLES = {
    Platform.LEETCODE: "demo_user_leetcode",
    Platform.CODEFORCES: "demo_user_cf",
    Platform.CODECHEF: "demo_user_cc",
}
DEMO_CONTESTS = 8


class DemoAdapter:
    """Same ``collect`` surface as a real adapter, no network access."""

    supports_verification = False
    supports_rating_history = True

    def __init__(self, platform: Platform, *, now: Optional[datetime] = None) -> None:
        self.platform = platform
        self._now = now

    async def collect(self, handle: Optional[str] = None) -> NormalizedStats:
        return self.build(handle or DEMO_HANDLES.get(self.platform, f"demo_user_{self.platform.value}"))

    def build(self, handle: str) -> NormalizedStats:
        seed = hashlib.sha256(f"{self.platform.value}:{handle}".encode("utf-8")).hexdigest()
        rng = random.Random(int(seed[:16], 16))
        now = self._now or datetime.now(timezone.utc)

        rating = rng.randint(1200, 1600)
        history: List[RatingPoint] = []
        for index in range(DEMO_CONTESTS):
            change = rng.randint(-60, 90)
            history.append(
                RatingPoint(
                    timestamp=now - timedelta(weeks=DEMO_CONTESTS - index),
                    rating=rating + change,
                    contest_name=f"Demo Contest {index + 1}",
                    old_rating=rating,
                    rating_change=change,
                )
            )
            rating += change

        easy, medium, hard = rng.randint(40, 120), rng.randint(20, 80), rng.randint(0, 25)
        return NormalizedStats(
            platform=self.platform,
            handle=handle,
            total_solved=easy + medium + hard,
            rating_current=rating,
            rating_max=max(point.rating for point in history),
            rating_history=history,
            difficulty_breakdown={"easy": easy, "medium": medium, "hard": hard},
            extensions={"demo": True},
            fetched_at=now,
        )


__all__ = ["DEMO_HANDLES", "DemoAdapter"]
