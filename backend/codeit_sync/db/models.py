"""ORM models backing platform links and cached platform stats."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin

JSONType = JSON


class UserModel(TimestampMixin, Base):
    __tablename__ = "users"
    __table_args__ = (Index("ix_users_external_id", "external_id", unique=True),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)

    platform_links: Mapped[list["PlatformLinkModel"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    platform_stats: Mapped[list["PlatformStatsModel"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class PlatformLinkModel(TimestampMixin, Base):
    __tablename__ = "platform_links"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", name="uq_platform_link_user_platform"),
        Index("ix_platform_links_connected", "connected"),
        Index("ix_platform_links_handle", "platform", "handle"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    handle: Mapped[str | None] = mapped_column(String(128), nullable=True)
    connected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verification_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verification_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[UserModel] = relationship(back_populates="platform_links")


class PlatformStatsModel(Base):
    __tablename__ = "platform_stats"
    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_platform_stats_user_platform"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    handle: Mapped[str] = mapped_column(String(128), nullable=False)
    total_solved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_current: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rating_max: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rating_history: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    difficulty_breakdown: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict, nullable=False)
    extensions: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    user: Mapped[UserModel] = relationship(back_populates="platform_stats")


__all__ = [
    "PlatformLinkModel",
    "PlatformStatsModel",
    "UserModel",
]
