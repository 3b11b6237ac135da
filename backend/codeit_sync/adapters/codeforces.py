"""Codeforces adapter for the official REST API."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Set, Tuple

from ..errors import HandleNotFound, RateLimited, UpstreamShapeChanged, UpstreamUnavailable
from ..platform_models import NormalizedStats, Platform, RatingPoint
from .base import PlatformAdapter, RawRatingPoint, RawStats, from_epoch, optional_int

MAX_SUBMISSIONS = 10000


class CodeforcesAdapter(PlatformAdapter):
    platform = Platform.CODEFORCES
    profile_field = "First Name"

    def profile_url(self, handle: str) -> str:
        return f"https://codeforces.com/profile/{handle}"

    async def _call(self, method: str, params: Dict[str, Any]) -> Any:
        url = f"{self._settings.codeforces_api_url.rstrip('/')}/{method}"
        # Failed calls come back as HTTP 400 with a JSON comment explaining why.
        response = await self._request("GET", url, params=params, accept=(400,))
        body = self._json(response)
        status = self._require(body, "status")
        if status != "OK":
            comment = str(body.get("comment") or "")
            lowered = comment.lower()
            if "not found" in lowered:
                raise HandleNotFound(comment, platform=self.platform.value)
            if "limit exceeded" in lowered:
                raise RateLimited(comment, platform=self.platform.value)
            raise UpstreamUnavailable(f"Codeforces {method} failed: {comment}", platform=self.platform.value)
        return self._require(body, "result")

    async def _user_info(self, handle: str) -> Dict[str, Any]:
        result = await self._call("user.info", {"handles": handle})
        if not isinstance(result, list) or not result:
            raise UpstreamShapeChanged("Codeforces user.info returned no users", platform=self.platform.value)
        return result[0]

    async def fetch_profile_text(self, handle: str) -> str:
        info = await self._user_info(handle)
        parts = [info.get("firstName"), info.get("lastName"), info.get("organization")]
        return " ".join(str(part) for part in parts if part)

    async def fetch_stats(self, handle: str) -> RawStats:
        info, submissions = await asyncio.gather(
            self._user_info(handle),
            self._call("user.status", {"handle": handle, "from": 1, "count": MAX_SUBMISSIONS}),
        )
        if not isinstance(submissions, list):
            raise UpstreamShapeChanged("Codeforces user.status is not a list", platform=self.platform.value)
        return RawStats(handle=info.get("handle") or handle, data={"info": info, "submissions": submissions})

    async def fetch_rating_history(self, handle: str) -> List[RawRatingPoint]:
        result = await self._call("user.rating", {"handle": handle})
        if not isinstance(result, list):
            raise UpstreamShapeChanged("Codeforces user.rating is not a list", platform=self.platform.value)
        return result

    def normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        info = raw.data["info"]
        solved: Set[Tuple[Any, str]] = set()
        breakdown: Dict[str, int] = {}
        for submission in raw.data["submissions"]:
            if submission.get("verdict") != "OK":
                continue
            problem = submission["problem"]
            key = (problem.get("contestId"), str(problem["index"]))
            if key in solved:
                continue
            solved.add(key)
            bucket = str(problem["rating"]) if problem.get("rating") else "unrated"
            breakdown[bucket] = breakdown.get(bucket, 0) + 1

        points = []
        for entry in history:
            new_rating = int(entry["newRating"])
            old_rating = optional_int(entry.get("oldRating"))
            points.append(
                RatingPoint(
                    timestamp=from_epoch(entry["ratingUpdateTimeSeconds"]),
                    rating=new_rating,
                    contest_name=entry["contestName"],
                    rank=optional_int(entry.get("rank")),
                    old_rating=old_rating,
                    rating_change=new_rating - old_rating if old_rating is not None else None,
                )
            )

        last_online = info.get("lastOnlineTimeSeconds")
        return NormalizedStats(
            platform=self.platform,
            handle=raw.handle,
            total_solved=len(solved),
            rating_current=optional_int(info.get("rating")),
            rating_max=optional_int(info.get("maxRating")),
            rating_history=points,
            difficulty_breakdown=breakdown,
            extensions={
                "rank": info.get("rank", "unrated"),
                "max_rank": info.get("maxRank", info.get("rank", "unrated")),
                "contribution": info.get("contribution", 0),
                "last_online_at": from_epoch(last_online).isoformat() if last_online else None,
                "contests_participated": len(points),
            },
        )


__all__ = ["CodeforcesAdapter"]
