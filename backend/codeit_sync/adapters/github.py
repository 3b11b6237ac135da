"""GitHub adapter; repositories and followers only, GitHub has no contests."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Dict, List

from ..errors import UpstreamShapeChanged
from ..platform_models import NormalizedStats, Platform
from .base import PlatformAdapter, RawRatingPoint, RawStats

TOP_LANGUAGE_COUNT = 5


class GitHubAdapter(PlatformAdapter):
    platform = Platform.GITHUB
    supports_rating_history = False
    profile_field = "Bio"

    def profile_url(self, handle: str) -> str:
        return f"https://github.com/{handle}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._settings.github_token:
            headers["Authorization"] = f"token {self._settings.github_token}"
        return headers

    async def _get(self, path: str, **params: Any) -> Any:
        url = f"{self._settings.github_api_url.rstrip('/')}/{path.lstrip('/')}"
        response = await self._request("GET", url, params=params or None, headers=self._headers())
        return self._json(response)

    async def _user(self, handle: str) -> Dict[str, Any]:
        user = await self._get(f"users/{handle}")
        if not isinstance(user, dict) or "login" not in user:
            raise UpstreamShapeChanged("GitHub user payload has no login", platform=self.platform.value)
        return user

    async def fetch_profile_text(self, handle: str) -> str:
        user = await self._user(handle)
        parts = [user.get("bio"), user.get("name")]
        return "\n".join(str(part) for part in parts if part)

    async def fetch_stats(self, handle: str) -> RawStats:
        user, repos = await asyncio.gather(
            self._user(handle),
            self._get(f"users/{handle}/repos", sort="updated", per_page=100),
        )
        if not isinstance(repos, list):
            raise UpstreamShapeChanged("GitHub repos payload is not a list", platform=self.platform.value)
        return RawStats(handle=user["login"], data={"user": user, "repos": repos})

    def normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        user = raw.data["user"]
        repos = raw.data["repos"]
        languages = Counter(repo["language"] for repo in repos if repo.get("language"))
        total_stars = sum(int(repo.get("stargazers_count") or 0) for repo in repos)
        return NormalizedStats(
            platform=self.platform,
            handle=raw.handle,
            total_solved=0,
            extensions={
                "public_repos": user.get("public_repos", len(repos)),
                "followers": user.get("followers", 0),
                "following": user.get("following", 0),
                "total_stars": total_stars,
                "top_languages": [
                    {"language": language, "count": count}
                    for language, count in languages.most_common(TOP_LANGUAGE_COUNT)
                ],
            },
        )


__all__ = ["GitHubAdapter"]
