"""Session-scoped facade over the platform link repository."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol

from .db.session import session_scope
from .platform_models import NormalizedStats, Platform, PlatformLink
from .repositories.platform_links import platform_links


class LinkStore(Protocol):
    """Operations the verification manager and orchestrator need from persistence."""

    def get_link(self, user_id: str, platform: Platform) -> PlatformLink:  # pragma: no cover - protocol definition
        ...

    def list_links(self, user_id: str) -> Dict[Platform, PlatformLink]:  # pragma: no cover - protocol definition
        ...

    def save_link(self, link: PlatformLink) -> PlatformLink:  # pragma: no cover - protocol definition
        ...

    def mark_synced(self, user_id: str, platform: Platform, synced_at: datetime) -> bool:  # pragma: no cover
        ...

    def connected_user_ids(self) -> List[str]:  # pragma: no cover - protocol definition
        ...

    def get_stats(self, user_id: str, platform: Platform) -> Optional[NormalizedStats]:  # pragma: no cover
        ...

    def save_stats(self, user_id: str, stats: NormalizedStats) -> bool:  # pragma: no cover - protocol definition
        ...

    def delete_stats(self, user_id: str, platform: Platform) -> None:  # pragma: no cover - protocol definition
        ...


class DatabaseLinkStore:
    """Each call runs in its own short transaction."""

    def get_link(self, user_id: str, platform: Platform) -> PlatformLink:
        with session_scope(commit=False) as session:
            return platform_links.get_link(session, user_id, platform)

    def list_links(self, user_id: str) -> Dict[Platform, PlatformLink]:
        with session_scope(commit=False) as session:
            return platform_links.list_links(session, user_id)

    def save_link(self, link: PlatformLink) -> PlatformLink:
        with session_scope() as session:
            return platform_links.save_link(session, link)

    def mark_synced(self, user_id: str, platform: Platform, synced_at: datetime) -> bool:
        with session_scope() as session:
            return platform_links.mark_synced(session, user_id, platform, synced_at)

    def connected_user_ids(self) -> List[str]:
        with session_scope(commit=False) as session:
            return platform_links.connected_user_ids(session)

    def get_stats(self, user_id: str, platform: Platform) -> Optional[NormalizedStats]:
        with session_scope(commit=False) as session:
            return platform_links.get_stats(session, user_id, platform)

    def save_stats(self, user_id: str, stats: NormalizedStats) -> bool:
        with session_scope() as session:
            return platform_links.save_stats(session, user_id, stats)

    def delete_stats(self, user_id: str, platform: Platform) -> None:
        with session_scope() as session:
            platform_links.delete_stats(session, user_id, platform)


link_store = DatabaseLinkStore()

__all__ = ["DatabaseLinkStore", "LinkStore", "link_store"]
