"""Platform adapters and the registry that wires them to one HTTP client."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..platform_models import Platform
from .base import PlatformAdapter, RawRatingPoint, RawStats
from .codechef import CodeChefAdapter
from .codeforces import CodeforcesAdapter
from .demo import DemoAdapter
from .github import GitHubAdapter
from .leetcode import LeetCodeAdapter

ADAPTER_TYPES: Dict[Platform, type[PlatformAdapter]] = {
    Platform.LEETCODE: LeetCodeAdapter,
    Platform.CODEFORCES: CodeforcesAdapter,
    Platform.CODECHEF: CodeChefAdapter,
    Platform.GITHUB: GitHubAdapter,
}


def build_http_client(settings: Optional[Settings] = None, **kwargs: object) -> httpx.AsyncClient:
    """Shared client; per-call deadlines are enforced by the orchestrator."""
    settings = settings or get_settings()
    headers = {"User-Agent": settings.http_user_agent}
    return httpx.AsyncClient(
        headers=headers,
        timeout=httpx.Timeout(settings.sync_timeout_seconds),
        follow_redirects=False,
        **kwargs,  # type: ignore[arg-type]
    )


def build_adapters(
    client: httpx.AsyncClient,
    settings: Optional[Settings] = None,
) -> Dict[Platform, PlatformAdapter]:
    settings = settings or get_settings()
    return {platform: adapter_type(settings, client) for platform, adapter_type in ADAPTER_TYPES.items()}


__all__ = [
    "ADAPTER_TYPES",
    "CodeChefAdapter",
    "CodeforcesAdapter",
    "DemoAdapter",
    "GitHubAdapter",
    "LeetCodeAdapter",
    "PlatformAdapter",
    "RawRatingPoint",
    "RawStats",
    "build_adapters",
    "build_http_client",
]
