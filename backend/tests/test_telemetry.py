from __future__ import annotations

import logging

import pytest

from codeit_sync.errors import UpstreamUnavailable
from codeit_sync.platform_models import Platform
from codeit_sync.telemetry import TelemetryEvent, emit_event, register_listener

from conftest import BASE_TIME


def test_payload_is_flattened_for_listeners() -> None:
    events: list[TelemetryEvent] = []
    register_listener(events.append)

    emit_event(
        "sync_outcome",
        platform=Platform.CODEFORCES,
        at=BASE_TIME,
        succeeded=[Platform.LEETCODE],
        failed={Platform.CODECHEF: UpstreamUnavailable("slow")},
    )

    (event,) = events
    assert event.platform == "codeforces"
    assert event.payload["at"] == "2024-03-01T12:00:00+00:00"
    assert event.payload["succeeded"] == ["leetcode"]
    assert event.payload["failed"] == {"codechef": "UpstreamUnavailable"}


def test_verification_codes_are_redacted(caplog: pytest.LogCaptureFixture) -> None:
    events: list[TelemetryEvent] = []
    register_listener(events.append)

    with caplog.at_level(logging.INFO, logger="codeit.telemetry"):
        emit_event("platform_verification", platform=Platform.LEETCODE, verification_code="AB12CD34")

    assert events[0].payload["verification_code"] == "***"
    assert "AB12CD34" not in caplog.text


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    received: list[str] = []

    def broken(event: TelemetryEvent) -> None:
        raise RuntimeError("listener down")

    register_listener(broken)
    register_listener(lambda event: received.append(event.name))

    with caplog.at_level(logging.ERROR, logger="codeit.telemetry"):
        emit_event("sweep_completed", users_total=0)

    assert received == ["sweep_completed"]
    assert "Telemetry listener failed for sweep_completed" in caplog.text
