"""Run a single platform sweep and exit.

Intended for cron-driven deployments that keep ``CODEIT_SWEEP_ENABLED`` off and
trigger the refresh externally instead of through the in-process scheduler.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from codeit_sync.adapters import build_adapters, build_http_client
from codeit_sync.config import get_settings
from codeit_sync.db.session import dispose_engine, init_db
from codeit_sync.platform_models import SweepSummary
from codeit_sync.sync_engine import SyncOrchestrator

LOGGER = logging.getLogger("codeit.sweep")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh every connected platform once.")
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before sweeping.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Override CODEIT_SWEEP_CONCURRENCY for this run.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the sweep summary as JSON.",
    )
    return parser.parse_args(argv)


async def run_sweep_once(concurrency: Optional[int] = None) -> SweepSummary:
    settings = get_settings()
    if concurrency is not None:
        settings = settings.model_copy(update={"sweep_concurrency": max(1, concurrency)})
    async with build_http_client(settings) as client:
        orchestrator = SyncOrchestrator(build_adapters(client, settings), settings=settings)
        return await orchestrator.sweep()


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("CODEIT_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        if args.init_db:
            init_db()
        summary = asyncio.run(run_sweep_once(args.concurrency))
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Sweep run failed: %s", exc)
        return 1
    finally:
        dispose_engine()

    if args.json:
        print(json.dumps(summary.to_payload(), indent=2))
    else:
        LOGGER.info(
            "Swept %s users: %s ok, %s with failures",
            summary.users_total,
            summary.users_succeeded,
            summary.users_failed,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
