"""Typed failures raised by verification, adapters and the sync orchestrator."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base error for the platform integration engine.

    ``kind`` is the stable identifier reported to API callers; ``platform`` is
    set whenever the failure is attached to one (user, platform) pair.
    """

    kind = "SyncError"
    default_detail = "Platform integration failed."

    def __init__(self, detail: Optional[str] = None, *, platform: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        self.platform = platform
        super().__init__(self.detail)

    def with_platform(self, platform: str) -> "SyncError":
        if self.platform is None:
            self.platform = platform
        return self

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.kind, "detail": self.detail}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(platform={self.platform!r}, detail={self.detail!r})"


class InvalidPlatform(SyncError):
    kind = "InvalidPlatform"
    default_detail = "Unsupported platform."


class InvalidHandle(SyncError):
    kind = "InvalidHandle"
    default_detail = "A platform handle is required."


class AlreadyConnected(SyncError):
    kind = "AlreadyConnected"
    default_detail = "This platform is already connected. Disconnect it first."


class NotConnected(SyncError):
    kind = "NotConnected"
    default_detail = "This platform is not connected."


class NoPendingChallenge(SyncError):
    kind = "NoPendingChallenge"
    default_detail = "No verification code found. Please initiate connection first."


class ChallengeExpired(SyncError):
    kind = "ChallengeExpired"
    default_detail = "Verification code expired. Please initiate connection again."


class VerificationFailed(SyncError):
    kind = "VerificationFailed"
    default_detail = "Verification code was not found on the platform profile."


class HandleNotFound(SyncError):
    kind = "HandleNotFound"
    default_detail = "Handle does not exist on the platform."


class RateLimited(SyncError):
    kind = "RateLimited"
    default_detail = "The platform is throttling requests."


class UpstreamUnavailable(SyncError):
    kind = "UpstreamUnavailable"
    default_detail = "The platform could not be reached."


class UpstreamShapeChanged(SyncError):
    kind = "UpstreamShapeChanged"
    default_detail = "The platform response no longer matches the expected format."


__all__ = [
    "AlreadyConnected",
    "ChallengeExpired",
    "HandleNotFound",
    "InvalidHandle",
    "InvalidPlatform",
    "NoPendingChallenge",
    "NotConnected",
    "RateLimited",
    "SyncError",
    "UpstreamShapeChanged",
    "UpstreamUnavailable",
    "VerificationFailed",
]
