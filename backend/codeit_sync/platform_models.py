"""Domain models shared by verification, adapters, caching and sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import InvalidPlatform, SyncError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Platform(str, Enum):
    LEETCODE = "leetcode"
    CODEFORCES = "codeforces"
    CODECHEF = "codechef"
    GITHUB = "github"


SUPPORTED_PLATFORMS: tuple[Platform, ...] = tuple(Platform)


def parse_platform(value: Union[str, Platform]) -> Platform:
    if isinstance(value, Platform):
        return value
    normalized = (value or "").strip().lower()
    try:
        return Platform(normalized)
    except ValueError as exc:
        raise InvalidPlatform(f"Unsupported platform '{value}'.") from exc


class LinkState(str, Enum):
    UNCONNECTED = "unconnected"
    PENDING_VERIFICATION = "pending_verification"
    CONNECTED = "connected"


class PlatformLink(BaseModel):
    """Connection record for one user on one platform."""

    user_id: str
    platform: Platform
    handle: Optional[str] = None
    connected: bool = False
    verification_code: Optional[str] = None
    verification_expiry: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None

    @field_validator("verification_expiry", "verified_at", "last_synced_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def state(self, now: Optional[datetime] = None) -> LinkState:
        if self.connected:
            return LinkState.CONNECTED
        if self.verification_code and self.verification_expiry is not None:
            if now is None or self.verification_expiry > now:
                return LinkState.PENDING_VERIFICATION
        return LinkState.UNCONNECTED

    def is_expired(self, now: datetime) -> bool:
        return self.verification_expiry is not None and self.verification_expiry <= now

    def reset(self) -> "PlatformLink":
        return PlatformLink(user_id=self.user_id, platform=self.platform)


class RatingPoint(BaseModel):
    timestamp: datetime
    rating: int
    contest_name: str
    rank: Optional[int] = None
    old_rating: Optional[int] = None
    rating_change: Optional[int] = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]


class NormalizedStats(BaseModel):
    """Platform-agnostic snapshot produced by one successful adapter call."""

    platform: Platform
    handle: str
    total_solved: int = Field(default=0, ge=0)
    rating_current: Optional[int] = None
    rating_max: Optional[int] = None
    rating_history: List[RatingPoint] = Field(default_factory=list)
    difficulty_breakdown: Dict[str, int] = Field(default_factory=dict)
    extensions: Dict[str, Any] = Field(default_factory=dict)
    fetched_at: datetime = Field(default_factory=_now)

    @field_validator("fetched_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]

    @model_validator(mode="after")
    def _order_history(self) -> "NormalizedStats":
        self.rating_history = sorted(self.rating_history, key=lambda point: point.timestamp)
        return self

    def to_payload(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "total_solved": self.total_solved,
            "rating": self.rating_current,
            "rating_max": self.rating_max,
            "rating_history": [point.model_dump(mode="json") for point in self.rating_history],
            "difficulty_breakdown": dict(self.difficulty_breakdown),
            "extensions": self.model_dump(mode="json")["extensions"],
            "fetched_at": self.fetched_at.isoformat(),
        }


class VerificationInstructions(BaseModel):
    title: str
    field: str
    steps: List[str]
    profile_url: str


class Challenge(BaseModel):
    platform: Platform
    handle: str
    verification_code: str
    expires_at: datetime
    expires_in_minutes: int
    instructions: VerificationInstructions


class ConnectionResult(BaseModel):
    platform: Platform
    handle: str
    connected: bool = True
    verified_at: Optional[datetime] = None


PlatformResult = Union[NormalizedStats, SyncError]


@dataclass
class SyncOutcome:
    """Result of one ``sync_all_for_user`` call; never persisted."""

    user_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: Dict[Platform, PlatformResult] = field(default_factory=dict)
    demo: bool = False

    @property
    def successes(self) -> Dict[Platform, NormalizedStats]:
        return {platform: result for platform, result in self.results.items() if isinstance(result, NormalizedStats)}

    @property
    def failures(self) -> Dict[Platform, SyncError]:
        return {platform: result for platform, result in self.results.items() if isinstance(result, SyncError)}

    def to_payload(self) -> Dict[str, Any]:
        platforms: Dict[str, Any] = {}
        for platform, result in self.results.items():
            platforms[platform.value] = result.to_payload()
        return {
            "user_id": self.user_id,
            "demo": self.demo,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "platforms": platforms,
        }


@dataclass
class SweepSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    users_total: int = 0
    users_succeeded: int = 0
    users_failed: int = 0
    platform_successes: int = 0
    platform_failures: int = 0
    max_in_flight: int = 0
    errors: Dict[str, List[str]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "users_total": self.users_total,
            "users_succeeded": self.users_succeeded,
            "users_failed": self.users_failed,
            "platform_successes": self.platform_successes,
            "platform_failures": self.platform_failures,
            "max_in_flight": self.max_in_flight,
            "errors": {user: list(items) for user, items in self.errors.items()},
        }


__all__ = [
    "Challenge",
    "ConnectionResult",
    "LinkState",
    "NormalizedStats",
    "Platform",
    "PlatformLink",
    "PlatformResult",
    "RatingPoint",
    "SUPPORTED_PLATFORMS",
    "SweepSummary",
    "SyncOutcome",
    "VerificationInstructions",
    "ensure_utc",
    "parse_platform",
]
