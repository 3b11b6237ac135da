"""Adapter contract and shared HTTP handling for external coding platforms."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..errors import (
    HandleNotFound,
    RateLimited,
    SyncError,
    UpstreamShapeChanged,
    UpstreamUnavailable,
)
from ..platform_models import NormalizedStats, Platform, VerificationInstructions

logger = logging.getLogger(__name__)

RawRatingPoint = Dict[str, Any]


@dataclass
class RawStats:
    """Upstream payload in the platform's own shape."""

    handle: str
    data: Dict[str, Any] = field(default_factory=dict)


class PlatformAdapter(ABC):
    platform: Platform
    supports_verification: bool = True
    supports_rating_history: bool = True
    profile_field: str = "profile"

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    @abstractmethod
    async def fetch_profile_text(self, handle: str) -> str:
        """Return the public, user-editable profile text used for verification."""

    @abstractmethod
    async def fetch_stats(self, handle: str) -> RawStats:
        ...

    async def fetch_rating_history(self, handle: str) -> List[RawRatingPoint]:
        return []

    @abstractmethod
    def normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        ...

    @abstractmethod
    def profile_url(self, handle: str) -> str:
        ...

    def instructions(self, handle: str, code: str) -> VerificationInstructions:
        label = self.platform.value.title()
        return VerificationInstructions(
            title=f"{label} Profile Verification",
            field=self.profile_field,
            steps=[
                f"1. Go to your {label} profile settings",
                f'2. Update your "{self.profile_field}" field to include: {code}',
                "3. Save your profile changes",
                '4. Click "Verify Connection"',
                "5. You can remove the code from your profile after verification",
            ],
            profile_url=self.profile_url(handle),
        )

    async def collect(self, handle: str) -> NormalizedStats:
        """Fetch stats and rating history concurrently and normalize them."""
        if self.supports_rating_history:
            raw, history = await asyncio.gather(self.fetch_stats(handle), self.fetch_rating_history(handle))
        else:
            raw, history = await self.fetch_stats(handle), []
        return self.safe_normalize(raw, history)

    def safe_normalize(self, raw: RawStats, history: List[RawRatingPoint]) -> NormalizedStats:
        try:
            return self.normalize(raw, history)
        except SyncError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
            raise UpstreamShapeChanged(
                f"Could not normalize {self.platform.value} payload: {exc}",
                platform=self.platform.value,
            ) from exc

    async def _request(
        self,
        method: str,
        url: str,
        *,
        accept: Iterable[int] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        accepted = set(accept)
        platform = self.platform.value
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(f"{platform} request timed out", platform=platform) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"{platform} request failed: {exc}", platform=platform) from exc

        status = response.status_code
        if status in accepted or status < 300:
            return response
        if status == 404:
            raise HandleNotFound(f"{platform} returned 404 for {url}", platform=platform)
        if status == 429 or (status == 403 and response.headers.get("x-ratelimit-remaining") == "0"):
            raise RateLimited(f"{platform} rate limit hit (HTTP {status})", platform=platform)
        logger.debug("Unexpected %s response %s for %s", platform, status, url)
        raise UpstreamUnavailable(f"{platform} responded with HTTP {status}", platform=platform)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamShapeChanged(
                f"{self.platform.value} returned a non-JSON body",
                platform=self.platform.value,
            ) from exc

    def _require(self, payload: Any, key: str) -> Any:
        if not isinstance(payload, Mapping) or key not in payload:
            raise UpstreamShapeChanged(
                f"{self.platform.value} payload is missing '{key}'",
                platform=self.platform.value,
            )
        return payload[key]


def from_epoch(seconds: Any) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


def optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(round(float(value)))


__all__ = [
    "PlatformAdapter",
    "RawRatingPoint",
    "RawStats",
    "from_epoch",
    "optional_int",
]
