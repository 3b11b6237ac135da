"""LeetCode adapter backed by the public (undocumented) GraphQL endpoint."""

from __future__ import annotations

from typing import Any, Dict, List

from ..errors import HandleNotFound, UpstreamShapeChanged
from ..platform_models import NormalizedStats, Platform, RatingPoint
from .base import PlatformAdapter, RawRatingPoint, RawStats, from_epoch, optional_int

PROFILE_QUERY = """
query userPublicProfile($username: String!) {
  matchedUser(username: $username) {
    username
    profile { realName aboutMe }
  }
}
"""

STATS_QUERY = """
query userStats($username: String!) {
  matchedUser(username: $username) {
    username
    profile { ranking }
    submitStatsGlobal { acSubmissionNum { difficulty count } }
  }
  userContestRanking(username: $username) {
    attendedContestsCount
    rating
    globalRanking
    topPercentage
  }
}
"""

HISTORY_QUERY = """
query userContestRankingHistory($username: String!) {
  userContestRankingHistory(username: $username) {
    attended
    rating
    ranking
    contest { title startTime }
  }
}
"""


class LeetCodeAdapter(PlatformAdapter):
    platform = Platform.LEETCODE
    profile_field = "Summary"

    def profile_url(self, handle: str) -> str:
        return f"https://leetcode.com/{handle}/"

    async def _graphql(self, query: str, handle: str) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            self._settings.leetcode_graphql_url,
            json={"query": query, "variables": {"username": handle}},
            headers={"Referer": "https://leetcode.com/", "Content-Type": "application/json"},
        )
        body = self._json(response)
        data = self._require(body, "data")
        if not isinstance(data, dict):
            # LeetCode answers unknown users with data=null and an errors list.
            if body.get("errors"):
                raise HandleNotFound(f"LeetCode user '{handle}' does not exist", platform=self.platform.value)
            raise UpstreamShapeChanged("LeetCode GraphQL returned no data", platform=self.platform.value)
        return data

    def _matched_user(self, data: Dict[str, Any], handle: str) -> Dict[str, Any]:
        user = self._require(data, "matchedUser")
        if user is None:
            raise HandleNotFound(f"LeetCode user '{handle}' does not exist", platform=self.platform.value)
        return user

    async def fetch_profile_text(self, handle: str) -> str:
        data = await self._graphql(PROFILE_QUERY, handle)
        profile = self._require(self._matched_user(data, handle), "profile") or {}
        parts = [profile.get("aboutMe") or "", profile.get("realName") or ""]
        return "\n".join(part for part in parts if part)

    async def fetch_stats(self, handle: str) -> RawStats:
        data = await self._graphql(STATS_QUERY, handle)
        user = self._matched_user(data, handle)
        return RawStats(
            handle=user.get("username") or handle,
            data={"matchedUser": user, "userContestRanking": data.get("userContestRanking")},
        )

    async def fetch_rating_history(self, handle: str) -> List[RawRatingPoint]:
        data = await self._graphql(HISTORY_QUERY, handle)
        history = data.get("userContestRankingHistory") or []
        if not isinstance(history, list):
            raise UpstreamShapeChanged("LeetCode contest history is not a list", platform=self.platform.value)
        return [entry for entry in history if isinstance(entry, dict) and entry.get("attended")]

    def normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        user = raw.data["matchedUser"]
        submissions = user["submitStatsGlobal"]["acSubmissionNum"]
        breakdown: Dict[str, int] = {}
        total = 0
        for row in submissions:
            difficulty = str(row["difficulty"]).lower()
            if difficulty == "all":
                total = int(row["count"])
            else:
                breakdown[difficulty] = int(row["count"])

        points = [
            RatingPoint(
                timestamp=from_epoch(entry["contest"]["startTime"]),
                rating=int(round(float(entry["rating"]))),
                contest_name=entry["contest"]["title"],
                rank=optional_int(entry.get("ranking")),
            )
            for entry in history
        ]

        contest = raw.data.get("userContestRanking") or {}
        rating_current = optional_int(contest.get("rating"))
        ratings = [point.rating for point in points]
        if rating_current is not None:
            ratings.append(rating_current)

        profile = user.get("profile") or {}
        return NormalizedStats(
            platform=self.platform,
            handle=raw.handle,
            total_solved=total,
            rating_current=rating_current,
            rating_max=max(ratings) if ratings else None,
            rating_history=points,
            difficulty_breakdown=breakdown,
            extensions={
                "ranking": profile.get("ranking"),
                "global_ranking": contest.get("globalRanking"),
                "attended_contests": contest.get("attendedContestsCount", len(points)),
                "top_percentage": contest.get("topPercentage"),
            },
        )


__all__ = ["LeetCodeAdapter"]
