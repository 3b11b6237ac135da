"""Database-backed repository for platform links and stats snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import PlatformLinkModel, PlatformStatsModel, UserModel
from ..platform_models import (
    NormalizedStats,
    Platform,
    PlatformLink,
    RatingPoint,
    SUPPORTED_PLATFORMS,
    ensure_utc,
)


def _normalize_user_id(user_id: str) -> str:
    normalized = (user_id or "").strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


class PlatformLinkRepository:
    """Reads and writes one link and one stats row per (user, platform)."""

    def get_link(self, session: Session, user_id: str, platform: Platform) -> PlatformLink:
        normalized = _normalize_user_id(user_id)
        model = self._link_model(session, normalized, platform)
        if model is None:
            return PlatformLink(user_id=normalized, platform=platform)
        return self._link_to_domain(normalized, model)

    def list_links(self, session: Session, user_id: str) -> Dict[Platform, PlatformLink]:
        normalized = _normalize_user_id(user_id)
        links = {platform: PlatformLink(user_id=normalized, platform=platform) for platform in SUPPORTED_PLATFORMS}
        stmt = (
            select(PlatformLinkModel)
            .join(UserModel, PlatformLinkModel.user_id == UserModel.id)
            .where(UserModel.external_id == normalized)
        )
        for model in session.execute(stmt).scalars():
            try:
                platform = Platform(model.platform)
            except ValueError:
                continue
            links[platform] = self._link_to_domain(normalized, model)
        return links

    def save_link(self, session: Session, link: PlatformLink) -> PlatformLink:
        normalized = _normalize_user_id(link.user_id)
        user = self._require_user(session, normalized)
        model = self._link_model(session, normalized, link.platform)
        if model is None:
            model = PlatformLinkModel(user_id=user.id, platform=link.platform.value)
            session.add(model)
        model.handle = link.handle
        model.connected = link.connected
        model.verification_code = link.verification_code
        model.verification_expiry = link.verification_expiry
        model.verified_at = link.verified_at
        model.last_synced_at = link.last_synced_at
        session.flush()
        return self._link_to_domain(normalized, model)

    def mark_synced(self, session: Session, user_id: str, platform: Platform, synced_at: datetime) -> bool:
        """Advance ``last_synced_at`` on a connected link; never moves it backwards."""
        normalized = _normalize_user_id(user_id)
        model = self._link_model(session, normalized, platform)
        if model is None or not model.connected:
            return False
        current = ensure_utc(model.last_synced_at)
        if current is not None and current >= synced_at:
            return False
        model.last_synced_at = synced_at
        session.flush()
        return True

    def connected_user_ids(self, session: Session) -> List[str]:
        stmt = (
            select(UserModel.external_id)
            .join(PlatformLinkModel, PlatformLinkModel.user_id == UserModel.id)
            .where(PlatformLinkModel.connected.is_(True))
            .distinct()
            .order_by(UserModel.external_id)
        )
        return [row for row in session.execute(stmt).scalars()]

    def get_stats(self, session: Session, user_id: str, platform: Platform) -> Optional[NormalizedStats]:
        model = self._stats_model(session, _normalize_user_id(user_id), platform)
        if model is None:
            return None
        return self._stats_to_domain(model)

    def save_stats(self, session: Session, user_id: str, stats: NormalizedStats) -> bool:
        """Replace the stored snapshot unless a newer one is already present."""
        normalized = _normalize_user_id(user_id)
        user = self._require_user(session, normalized)
        model = self._stats_model(session, normalized, stats.platform)
        if model is None:
            model = PlatformStatsModel(user_id=user.id, platform=stats.platform.value, handle=stats.handle)
            session.add(model)
        elif ensure_utc(model.fetched_at) > stats.fetched_at:
            return False
        payload = stats.model_dump(mode="json")
        model.handle = stats.handle
        model.total_solved = stats.total_solved
        model.rating_current = stats.rating_current
        model.rating_max = stats.rating_max
        model.rating_history = payload["rating_history"]
        model.difficulty_breakdown = payload["difficulty_breakdown"]
        model.extensions = payload["extensions"]
        model.fetched_at = stats.fetched_at
        session.flush()
        return True

    def delete_stats(self, session: Session, user_id: str, platform: Platform) -> None:
        normalized = _normalize_user_id(user_id)
        user = self._find_user(session, normalized)
        if user is None:
            return
        session.execute(
            delete(PlatformStatsModel).where(
                PlatformStatsModel.user_id == user.id,
                PlatformStatsModel.platform == platform.value,
            )
        )

    def _find_user(self, session: Session, user_id: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(UserModel.external_id == user_id)
        return session.execute(stmt).scalar_one_or_none()

    def _require_user(self, session: Session, user_id: str) -> UserModel:
        user = self._find_user(session, user_id)
        if user is None:
            user = UserModel(external_id=user_id)
            session.add(user)
            session.flush()
        return user

    def _link_model(self, session: Session, user_id: str, platform: Platform) -> Optional[PlatformLinkModel]:
        stmt = (
            select(PlatformLinkModel)
            .join(UserModel, PlatformLinkModel.user_id == UserModel.id)
            .where(UserModel.external_id == user_id, PlatformLinkModel.platform == platform.value)
        )
        return session.execute(stmt).scalar_one_or_none()

    def _stats_model(self, session: Session, user_id: str, platform: Platform) -> Optional[PlatformStatsModel]:
        stmt = (
            select(PlatformStatsModel)
            .join(UserModel, PlatformStatsModel.user_id == UserModel.id)
            .where(UserModel.external_id == user_id, PlatformStatsModel.platform == platform.value)
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _link_to_domain(user_id: str, model: PlatformLinkModel) -> PlatformLink:
        return PlatformLink(
            user_id=user_id,
            platform=Platform(model.platform),
            handle=model.handle,
            connected=model.connected,
            verification_code=model.verification_code,
            verification_expiry=model.verification_expiry,
            verified_at=model.verified_at,
            last_synced_at=model.last_synced_at,
        )

    @staticmethod
    def _stats_to_domain(model: PlatformStatsModel) -> NormalizedStats:
        return NormalizedStats(
            platform=Platform(model.platform),
            handle=model.handle,
            total_solved=model.total_solved,
            rating_current=model.rating_current,
            rating_max=model.rating_max,
            rating_history=[RatingPoint.model_validate(point) for point in model.rating_history or []],
            difficulty_breakdown=dict(model.difficulty_breakdown or {}),
            extensions=dict(model.extensions or {}),
            fetched_at=model.fetched_at,
        )


platform_links = PlatformLinkRepository()

__all__ = ["PlatformLinkRepository", "platform_links"]
