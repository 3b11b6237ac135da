"""Cross-platform summary for profile views."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Union

from .platform_models import NormalizedStats, Platform


def summarize(stats_by_platform: Mapping[Union[Platform, str], NormalizedStats]) -> Dict[str, Any]:
    breakdown: List[Dict[str, Any]] = []
    ratings: List[int] = []
    total = 0
    for stats in sorted(stats_by_platform.values(), key=lambda item: item.platform.value):
        total += stats.total_solved
        breakdown.append(
            {
                "platform": stats.platform.value,
                "problems": stats.total_solved,
                "rating": stats.rating_current,
            }
        )
        ratings.extend(value for value in (stats.rating_current, stats.rating_max) if value is not None)
    return {
        "platforms_connected": len(breakdown),
        "total_solved": total,
        "platform_breakdown": breakdown,
        "highest_rating": max(ratings) if ratings else None,
    }


__all__ = ["summarize"]
