"""Proof-of-ownership challenges for external platform accounts.

None of the supported platforms offer OAuth for third parties, so ownership is
proven by asking the user to paste a short random code into a public profile
field (LeetCode summary, Codeforces first name, CodeChef name, GitHub bio) and
then reading that field back through the platform adapter.

Link lifecycle::

    Unconnected -> PendingVerification -> Connected
    PendingVerification -> Unconnected   (expiry or cancel)
    Connected -> Unconnected             (disconnect)

Issuing a new challenge while one is pending replaces the code and restarts the
expiry window.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .adapters.base import PlatformAdapter
from .cache import StatsCache, stats_cache
from .config import Settings, get_settings
from .errors import (
    AlreadyConnected,
    ChallengeExpired,
    InvalidHandle,
    InvalidPlatform,
    NoPendingChallenge,
    SyncError,
    UpstreamUnavailable,
    VerificationFailed,
)
from .link_store import LinkStore, link_store
from .platform_models import (
    Challenge,
    ConnectionResult,
    LinkState,
    Platform,
    PlatformLink,
    parse_platform,
)
from .telemetry import emit_event

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int, prefix: str = "") -> str:
    return prefix + "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _clean_handle(handle: Optional[str]) -> str:
    cleaned = (handle or "").strip().lstrip("@")
    if not cleaned:
        raise InvalidHandle()
    return cleaned


class VerificationManager:
    def __init__(
        self,
        adapters: Mapping[Platform, PlatformAdapter],
        *,
        store: Optional[LinkStore] = None,
        cache: Optional[StatsCache] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._adapters = dict(adapters)
        self._store: LinkStore = store or link_store
        self._cache = cache or stats_cache
        self._settings = settings or get_settings()
        self._clock = clock

    def _adapter(self, platform: Union[str, Platform]) -> PlatformAdapter:
        resolved = parse_platform(platform)
        adapter = self._adapters.get(resolved)
        if adapter is None or not adapter.supports_verification:
            raise InvalidPlatform(f"{resolved.value} does not support profile verification.", platform=resolved.value)
        return adapter

    def _expire_if_needed(self, link: PlatformLink, now: datetime) -> PlatformLink:
        if link.connected or not link.verification_code or not link.is_expired(now):
            return link
        cleared = link.model_copy(update={"verification_code": None, "verification_expiry": None, "handle": None})
        return self._store.save_link(cleared)

    def initiate(self, user_id: str, platform: Union[str, Platform], handle: str) -> Challenge:
        adapter = self._adapter(platform)
        resolved = adapter.platform
        cleaned = _clean_handle(handle)
        link = self._store.get_link(user_id, resolved)
        if link.connected:
            raise AlreadyConnected(
                f"{resolved.value} is already connected as '{link.handle}'.",
                platform=resolved.value,
            )

        now = self._clock()
        ttl = self._settings.verification_ttl_minutes
        code = generate_code(self._settings.verification_code_length, self._settings.verification_code_prefix)
        expires_at = now + timedelta(minutes=ttl)
        self._store.save_link(
            link.model_copy(
                update={
                    "handle": cleaned,
                    "verification_code": code,
                    "verification_expiry": expires_at,
                }
            )
        )
        emit_event(
            "platform_verification",
            user_id=user_id,
            platform=resolved,
            handle=cleaned,
            status="initiated",
            reissued=link.state(now) == LinkState.PENDING_VERIFICATION,
        )
        return Challenge(
            platform=resolved,
            handle=cleaned,
            verification_code=code,
            expires_at=expires_at,
            expires_in_minutes=ttl,
            instructions=adapter.instructions(cleaned, code),
        )

    async def confirm(self, user_id: str, platform: Union[str, Platform], handle: str) -> ConnectionResult:
        adapter = self._adapter(platform)
        resolved = adapter.platform
        cleaned = _clean_handle(handle)
        link = self._store.get_link(user_id, resolved)

        if link.connected:
            if (link.handle or "").lower() == cleaned.lower():
                return ConnectionResult(platform=resolved, handle=link.handle or cleaned, verified_at=link.verified_at)
            raise AlreadyConnected(
                f"{resolved.value} is already connected as '{link.handle}'.",
                platform=resolved.value,
            )

        if not link.verification_code or link.verification_expiry is None:
            raise NoPendingChallenge(platform=resolved.value)

        now = self._clock()
        if link.is_expired(now):
            self._expire_if_needed(link, now)
            emit_event("platform_verification", user_id=user_id, platform=resolved, status="expired")
            raise ChallengeExpired(platform=resolved.value)

        profile_text = await self._read_profile(adapter, cleaned)
        if link.verification_code not in profile_text:
            emit_event("platform_verification", user_id=user_id, platform=resolved, handle=cleaned, status="mismatch")
            raise VerificationFailed(
                f"Code {link.verification_code} was not found on {resolved.value} profile '{cleaned}'.",
                platform=resolved.value,
            )

        current = self._store.get_link(user_id, resolved)
        if current.connected:
            # A concurrent confirm won the race.
            return ConnectionResult(platform=resolved, handle=current.handle or cleaned, verified_at=current.verified_at)
        if current.verification_code != link.verification_code:
            # Reissued or cancelled while the profile was being read.
            emit_event("platform_verification", user_id=user_id, platform=resolved, handle=cleaned, status="superseded")
            raise VerificationFailed(
                f"The verification code for {resolved.value} changed during the check. Confirm the latest code.",
                platform=resolved.value,
            )

        verified_at = self._clock()
        stored = self._store.save_link(
            current.model_copy(
                update={
                    "handle": cleaned,
                    "connected": True,
                    "verification_code": None,
                    "verification_expiry": None,
                    "verified_at": verified_at,
                }
            )
        )
        emit_event("platform_verification", user_id=user_id, platform=resolved, handle=cleaned, status="connected")
        logger.info("Verified %s handle %s for user %s", resolved.value, cleaned, user_id)
        return ConnectionResult(platform=resolved, handle=stored.handle or cleaned, verified_at=stored.verified_at)

    async def _read_profile(self, adapter: PlatformAdapter, handle: str) -> str:
        platform = adapter.platform.value
        try:
            return await asyncio.wait_for(
                adapter.fetch_profile_text(handle),
                timeout=self._settings.sync_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailable(f"{platform} profile read timed out", platform=platform) from exc
        except SyncError as exc:
            raise exc.with_platform(platform)

    def cancel(self, user_id: str, platform: Union[str, Platform]) -> PlatformLink:
        resolved = parse_platform(platform)
        link = self._store.get_link(user_id, resolved)
        if link.connected or not link.verification_code:
            return link
        stored = self._store.save_link(
            link.model_copy(update={"verification_code": None, "verification_expiry": None, "handle": None})
        )
        emit_event("platform_verification", user_id=user_id, platform=resolved, status="cancelled")
        return stored

    def disconnect(self, user_id: str, platform: Union[str, Platform]) -> PlatformLink:
        resolved = parse_platform(platform)
        link = self._store.get_link(user_id, resolved)
        stored = self._store.save_link(link.reset())
        self._store.delete_stats(user_id, resolved)
        self._cache.evict(user_id, resolved)
        emit_event("platform_verification", user_id=user_id, platform=resolved, status="disconnected")
        return stored

    def status(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        now = self._clock()
        payload: Dict[str, Dict[str, Any]] = {}
        for platform, link in self._store.list_links(user_id).items():
            link = self._expire_if_needed(link, now)
            state = link.state(now)
            payload[platform.value] = {
                "state": state.value,
                "connected": link.connected,
                "handle": link.handle,
                "last_synced_at": link.last_synced_at.isoformat() if link.last_synced_at else None,
                "expires_at": (
                    link.verification_expiry.isoformat()
                    if state == LinkState.PENDING_VERIFICATION and link.verification_expiry
                    else None
                ),
            }
        return payload


__all__ = ["CODE_ALPHABET", "VerificationManager", "generate_code"]
