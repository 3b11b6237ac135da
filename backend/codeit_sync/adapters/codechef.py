"""CodeChef adapter; CodeChef has no public API so the profile page is scraped."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from ..errors import HandleNotFound, UpstreamShapeChanged
from ..platform_models import NormalizedStats, Platform, RatingPoint
from .base import PlatformAdapter, RawRatingPoint, RawStats, optional_int

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
ALL_RATING_PATTERN = re.compile(r"var\s+all_rating\s*=\s*(\[.*?\])\s*;", re.DOTALL)
HIGHEST_RATING_PATTERN = re.compile(r"Highest\s+Rating\s*(\d+)", re.IGNORECASE)
SOLVED_PATTERN = re.compile(r"Total\s+Problems\s+Solved\s*:?\s*(\d+)", re.IGNORECASE)
STARS_PATTERN = re.compile(r"(\d)\s*★")
DIGITS_PATTERN = re.compile(r"\d+")

# Lower bounds of each star band.
STAR_BANDS = ((2500, 7), (2200, 6), (2000, 5), (1800, 4), (1600, 3), (1400, 2), (0, 1))


def stars_for_rating(rating: Optional[int]) -> Optional[int]:
    if rating is None:
        return None
    for floor, stars in STAR_BANDS:
        if rating >= floor:
            return stars
    return None


def division_for_rating(rating: Optional[int]) -> str:
    if rating is None or rating < 1400:
        return "Div 4"
    if rating < 1600:
        return "Div 3"
    if rating < 1800:
        return "Div 2"
    return "Div 1"


class CodeChefAdapter(PlatformAdapter):
    platform = Platform.CODECHEF
    profile_field = "Name"

    def profile_url(self, handle: str) -> str:
        return f"{self._settings.codechef_base_url.rstrip('/')}/users/{handle}"

    async def _fetch_page(self, handle: str) -> BeautifulSoup:
        response = await self._request(
            "GET",
            self.profile_url(handle),
            accept=REDIRECT_STATUSES,
            headers={"Accept": "text/html,application/xhtml+xml"},
        )
        if response.status_code in REDIRECT_STATUSES:
            # Unknown handles are bounced back to the home page.
            raise HandleNotFound(f"CodeChef user '{handle}' does not exist", platform=self.platform.value)
        return BeautifulSoup(response.text, "html.parser")

    async def fetch_profile_text(self, handle: str) -> str:
        soup = await self._fetch_page(handle)
        return self._display_name(soup) or ""

    async def fetch_stats(self, handle: str) -> RawStats:
        soup = await self._fetch_page(handle)
        return RawStats(handle=handle, data=self._parse_profile(soup))

    async def fetch_rating_history(self, handle: str) -> List[RawRatingPoint]:
        soup = await self._fetch_page(handle)
        return self._parse_history(soup)

    async def collect(self, handle: str) -> NormalizedStats:
        # Stats and history live on the same page; fetch it once.
        soup = await self._fetch_page(handle)
        raw = RawStats(handle=handle, data=self._parse_profile(soup))
        return self.safe_normalize(raw, self._parse_history(soup))

    def _display_name(self, soup: BeautifulSoup) -> Optional[str]:
        node = (
            soup.select_one(".user-details-container header h1")
            or soup.select_one(".user-details-container h1")
            or soup.select_one("h1.h2-style")
            or soup.find("h1")
        )
        if node is None:
            return None
        text = node.get_text(" ", strip=True)
        return text or None

    def _parse_profile(self, soup: BeautifulSoup) -> Dict[str, Any]:
        rating_node = soup.select_one(".rating-number")
        if rating_node is None:
            raise UpstreamShapeChanged("CodeChef profile has no rating block", platform=self.platform.value)
        rating_match = DIGITS_PATTERN.search(rating_node.get_text(" ", strip=True))

        page_text = soup.get_text(" ", strip=True)
        highest = HIGHEST_RATING_PATTERN.search(page_text)
        solved = SOLVED_PATTERN.search(page_text)

        stars = None
        star_node = soup.select_one(".rating-star") or soup.select_one(".rating")
        if star_node is not None:
            star_match = STARS_PATTERN.search(star_node.get_text(" ", strip=True))
            if star_match:
                stars = int(star_match.group(1))

        global_rank = None
        rank_node = soup.select_one(".rating-ranks strong")
        if rank_node is not None:
            rank_match = DIGITS_PATTERN.search(rank_node.get_text(strip=True).replace(",", ""))
            if rank_match:
                global_rank = int(rank_match.group(0))

        return {
            "name": self._display_name(soup),
            "rating": int(rating_match.group(0)) if rating_match else None,
            "highest_rating": int(highest.group(1)) if highest else None,
            "problems_solved": int(solved.group(1)) if solved else 0,
            "stars": stars,
            "global_rank": global_rank,
        }

    def _parse_history(self, soup: BeautifulSoup) -> List[RawRatingPoint]:
        for script in soup.find_all("script"):
            content = script.string or script.get_text()
            if not content or "all_rating" not in content:
                continue
            match = ALL_RATING_PATTERN.search(content)
            if match is None:
                continue
            try:
                entries = json.loads(match.group(1))
            except ValueError as exc:
                raise UpstreamShapeChanged(
                    "CodeChef rating history is not valid JSON",
                    platform=self.platform.value,
                ) from exc
            if not isinstance(entries, list):
                raise UpstreamShapeChanged("CodeChef rating history is not a list", platform=self.platform.value)
            return entries
        return []

    @staticmethod
    def _entry_timestamp(entry: Dict[str, Any]) -> datetime:
        end_date = entry.get("end_date")
        if end_date:
            parsed = datetime.strptime(str(end_date), "%Y-%m-%d %H:%M:%S")
            return parsed.replace(tzinfo=timezone.utc)
        return datetime(
            int(entry["getyear"]),
            int(entry["getmonth"]),
            int(entry["getday"]),
            tzinfo=timezone.utc,
        )

    def normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        profile = raw.data
        points = [
            RatingPoint(
                timestamp=self._entry_timestamp(entry),
                rating=int(entry["rating"]),
                contest_name=entry.get("name") or entry["code"],
                rank=optional_int(entry.get("rank")),
            )
            for entry in history
        ]
        rating = profile["rating"]
        candidates = [value for value in [profile.get("highest_rating"), rating] if value is not None]
        candidates.extend(point.rating for point in points)
        stars = profile.get("stars") or stars_for_rating(rating)
        return NormalizedStats(
            platform=self.platform,
            handle=raw.handle,
            total_solved=int(profile.get("problems_solved") or 0),
            rating_current=rating,
            rating_max=max(candidates) if candidates else None,
            rating_history=points,
            extensions={
                "stars": stars,
                "global_rank": profile.get("global_rank"),
                "division": division_for_rating(rating),
                "contests_participated": len(points),
            },
        )


__all__ = ["CodeChefAdapter", "division_for_rating", "stars_for_rating"]
