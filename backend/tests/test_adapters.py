"""Adapter normalization and upstream error mapping against fake transports."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from codeit_sync.adapters import (
    CodeChefAdapter,
    CodeforcesAdapter,
    GitHubAdapter,
    LeetCodeAdapter,
    build_adapters,
    build_http_client,
)
from codeit_sync.adapters.codechef import division_for_rating, stars_for_rating
from codeit_sync.errors import HandleNotFound, RateLimited, UpstreamShapeChanged, UpstreamUnavailable
from codeit_sync.platform_models import Platform

from conftest import make_settings


def _run(adapter_type, handler: Callable[[httpx.Request], httpx.Response], call, settings=None) -> Any:
    settings = settings or make_settings()

    async def go() -> Any:
        async with build_http_client(settings, transport=httpx.MockTransport(handler)) as client:
            return await call(adapter_type(settings, client))

    return asyncio.run(go())


# LeetCode ------------------------------------------------------------------

LEETCODE_STATS = {
    "data": {
        "matchedUser": {
            "username": "lc_user",
            "profile": {"ranking": 12345},
            "submitStatsGlobal": {
                "acSubmissionNum": [
                    {"difficulty": "All", "count": 300},
                    {"difficulty": "Easy", "count": 150},
                    {"difficulty": "Medium", "count": 120},
                    {"difficulty": "Hard", "count": 30},
                ]
            },
        },
        "userContestRanking": {
            "attendedContestsCount": 2,
            "rating": 1834.56,
            "globalRanking": 9000,
            "topPercentage": 8.5,
        },
    }
}

LEETCODE_HISTORY = {
    "data": {
        "userContestRankingHistory": [
            {"attended": True, "rating": 1600.2, "ranking": 500, "contest": {"title": "Weekly 300", "startTime": 1700000000}},
            {"attended": False, "rating": 1600.2, "ranking": 0, "contest": {"title": "Weekly 301", "startTime": 1700600000}},
            {"attended": True, "rating": 1900.7, "ranking": 80, "contest": {"title": "Biweekly 90", "startTime": 1690000000}},
        ]
    }
}


def _leetcode_handler(request: httpx.Request) -> httpx.Response:
    query = json.loads(request.content)["query"]
    assert request.headers["Referer"] == "https://leetcode.com/"
    if "userContestRankingHistory" in query:
        return httpx.Response(200, json=LEETCODE_HISTORY)
    if "submitStatsGlobal" in query:
        return httpx.Response(200, json=LEETCODE_STATS)
    return httpx.Response(
        200,
        json={"data": {"matchedUser": {"username": "lc_user", "profile": {"realName": "Lee", "aboutMe": "hi K7Q2M9XZ"}}}},
    )


def test_leetcode_normalizes_stats_and_attended_history() -> None:
    stats = _run(LeetCodeAdapter, _leetcode_handler, lambda adapter: adapter.collect("lc_user"))

    assert stats.platform == Platform.LEETCODE
    assert stats.total_solved == 300
    assert stats.difficulty_breakdown == {"easy": 150, "medium": 120, "hard": 30}
    assert stats.rating_current == 1835
    assert stats.rating_max == 1901
    assert [point.contest_name for point in stats.rating_history] == ["Biweekly 90", "Weekly 300"]
    assert stats.rating_history[0].timestamp == datetime.fromtimestamp(1690000000, tz=timezone.utc)
    assert stats.extensions["ranking"] == 12345
    assert stats.extensions["top_percentage"] == 8.5


def test_leetcode_profile_text_includes_summary() -> None:
    text = _run(LeetCodeAdapter, _leetcode_handler, lambda adapter: adapter.fetch_profile_text("lc_user"))
    assert "K7Q2M9XZ" in text


def test_leetcode_unknown_user() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"matchedUser": None}})

    with pytest.raises(HandleNotFound):
        _run(LeetCodeAdapter, handler, lambda adapter: adapter.fetch_profile_text("ghost"))


def test_leetcode_missing_fields_are_shape_changes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"matchedUser": {"username": "lc_user"}}})

    with pytest.raises(UpstreamShapeChanged):
        _run(LeetCodeAdapter, handler, lambda adapter: adapter.collect("lc_user"))


# Codeforces ----------------------------------------------------------------

CODEFORCES_INFO = {
    "handle": "tourist",
    "firstName": "Gennady",
    "lastName": "Korotkevich",
    "organization": "ITMO",
    "rating": 3800,
    "maxRating": 3979,
    "rank": "legendary grandmaster",
    "maxRank": "legendary grandmaster",
    "contribution": 120,
    "lastOnlineTimeSeconds": 1700000000,
}

CODEFORCES_SUBMISSIONS = [
    {"verdict": "OK", "problem": {"contestId": 1, "index": "A", "rating": 800}},
    {"verdict": "OK", "problem": {"contestId": 1, "index": "A", "rating": 800}},
    {"verdict": "OK", "problem": {"contestId": 2, "index": "B"}},
    {"verdict": "WRONG_ANSWER", "problem": {"contestId": 3, "index": "C", "rating": 1900}},
]

CODEFORCES_RATING = [
    {"contestName": "Round 2", "rank": 3, "ratingUpdateTimeSeconds": 1650000000, "oldRating": 1500, "newRating": 1620},
    {"contestName": "Round 1", "rank": 10, "ratingUpdateTimeSeconds": 1600000000, "oldRating": 0, "newRating": 1500},
]


def _codeforces_handler(request: httpx.Request) -> httpx.Response:
    method = request.url.path.rsplit("/", 1)[-1]
    results = {
        "user.info": [CODEFORCES_INFO],
        "user.status": CODEFORCES_SUBMISSIONS,
        "user.rating": CODEFORCES_RATING,
    }
    return httpx.Response(200, json={"status": "OK", "result": results[method]})


def test_codeforces_counts_distinct_accepted_problems() -> None:
    stats = _run(CodeforcesAdapter, _codeforces_handler, lambda adapter: adapter.collect("tourist"))

    assert stats.total_solved == 2
    assert stats.difficulty_breakdown == {"800": 1, "unrated": 1}
    assert stats.rating_current == 3800
    assert stats.rating_max == 3979
    assert [point.rating for point in stats.rating_history] == [1500, 1620]
    assert stats.rating_history[1].rating_change == 120
    assert stats.extensions["rank"] == "legendary grandmaster"
    assert stats.extensions["contests_participated"] == 2


def test_codeforces_profile_text_uses_name_fields() -> None:
    text = _run(CodeforcesAdapter, _codeforces_handler, lambda adapter: adapter.fetch_profile_text("tourist"))
    assert "Gennady" in text
    assert "ITMO" in text


@pytest.mark.parametrize(
    ("comment", "error"),
    [
        ("handles: User with handle ghost not found", HandleNotFound),
        ("Call limit exceeded", RateLimited),
        ("Internal error", UpstreamUnavailable),
    ],
)
def test_codeforces_failed_status_mapping(comment: str, error: type) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"status": "FAILED", "comment": comment})

    with pytest.raises(error):
        _run(CodeforcesAdapter, handler, lambda adapter: adapter.fetch_profile_text("ghost"))


# CodeChef ------------------------------------------------------------------

CODECHEF_PAGE = """
<html><body>
<div class="user-details-container">
  <header><h1 class="h2-style">Chef Ramsay XYZ12345</h1></header>
</div>
<div class="rating-header">
  <div class="rating-number">1845?</div>
  <div class="rating-star"><span>4&#9733;</span></div>
  <small>(Highest Rating 1901)</small>
</div>
<div class="rating-ranks"><ul><li><a><strong>2,345</strong></a> Global Rank</li></ul></div>
<section class="problems-solved"><h3>Total Problems Solved: 187</h3></section>
<script>
var all_rating = [
  {"code": "START100", "getyear": "2023", "getmonth": "8", "getday": "2", "rating": "1700",
   "rank": "1200", "name": "Starters 100", "end_date": "2023-08-02 22:00:00"},
  {"code": "START90", "getyear": "2023", "getmonth": "5", "getday": "3", "rating": "1650",
   "rank": "900", "name": "Starters 90"}
];
</script>
</body></html>
"""


def _codechef_handler(request: httpx.Request) -> httpx.Response:
    assert request.url.path == "/users/chef"
    return httpx.Response(200, text=CODECHEF_PAGE)


def test_codechef_scrapes_profile_page_once() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return _codechef_handler(request)

    stats = _run(CodeChefAdapter, handler, lambda adapter: adapter.collect("chef"))

    assert len(calls) == 1
    assert stats.total_solved == 187
    assert stats.rating_current == 1845
    assert stats.rating_max == 1901
    assert [point.contest_name for point in stats.rating_history] == ["Starters 90", "Starters 100"]
    assert stats.rating_history[0].timestamp == datetime(2023, 5, 3, tzinfo=timezone.utc)
    assert stats.rating_history[1].timestamp == datetime(2023, 8, 2, 22, 0, tzinfo=timezone.utc)
    assert stats.extensions["stars"] == 4
    assert stats.extensions["global_rank"] == 2345
    assert stats.extensions["division"] == "Div 1"


def test_codechef_profile_text_is_display_name() -> None:
    text = _run(CodeChefAdapter, _codechef_handler, lambda adapter: adapter.fetch_profile_text("chef"))
    assert text == "Chef Ramsay XYZ12345"


def test_codechef_redirect_means_unknown_handle() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "https://www.codechef.com/"})

    with pytest.raises(HandleNotFound):
        _run(CodeChefAdapter, handler, lambda adapter: adapter.collect("ghost"))


def test_codechef_missing_rating_block() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html><body><h1>Maintenance</h1></body></html>")

    with pytest.raises(UpstreamShapeChanged):
        _run(CodeChefAdapter, handler, lambda adapter: adapter.collect("chef"))


def test_codechef_rating_bands() -> None:
    assert stars_for_rating(1399) == 1
    assert stars_for_rating(1650) == 3
    assert stars_for_rating(2600) == 7
    assert stars_for_rating(None) is None
    assert division_for_rating(1300) == "Div 4"
    assert division_for_rating(1500) == "Div 3"
    assert division_for_rating(1799) == "Div 2"
    assert division_for_rating(2000) == "Div 1"


# GitHub --------------------------------------------------------------------


def _github_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/users/octocat":
        return httpx.Response(
            200,
            json={
                "login": "octocat",
                "name": "The Octocat",
                "bio": "verify R2D2C3PO",
                "public_repos": 8,
                "followers": 100,
                "following": 1,
            },
        )
    if request.url.path == "/users/octocat/repos":
        assert request.url.params["per_page"] == "100"
        return httpx.Response(
            200,
            json=[
                {"language": "Python", "stargazers_count": 5},
                {"language": "Python", "stargazers_count": 2},
                {"language": "Go", "stargazers_count": 1},
                {"language": None, "stargazers_count": 0},
            ],
        )
    return httpx.Response(404, json={"message": "Not Found"})


def test_github_collects_repository_stats() -> None:
    stats = _run(GitHubAdapter, _github_handler, lambda adapter: adapter.collect("octocat"))

    assert stats.total_solved == 0
    assert stats.rating_current is None
    assert stats.rating_history == []
    assert stats.extensions["total_stars"] == 8
    assert stats.extensions["followers"] == 100
    assert stats.extensions["top_languages"] == [
        {"language": "Python", "count": 2},
        {"language": "Go", "count": 1},
    ]


def test_github_sends_token_and_reads_bio() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["authorization"] = request.headers.get("Authorization")
        return _github_handler(request)

    text = _run(
        GitHubAdapter,
        handler,
        lambda adapter: adapter.fetch_profile_text("octocat"),
        settings=make_settings(github_token="ghp_test"),
    )

    assert "R2D2C3PO" in text
    assert seen["authorization"] == "token ghp_test"


def test_github_unknown_user_and_rate_limit() -> None:
    with pytest.raises(HandleNotFound):
        _run(GitHubAdapter, _github_handler, lambda adapter: adapter.collect("ghost"))

    def limited(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, headers={"x-ratelimit-remaining": "0"}, json={"message": "API rate limit exceeded"})

    with pytest.raises(RateLimited):
        _run(GitHubAdapter, limited, lambda adapter: adapter.collect("octocat"))


# Shared HTTP handling ---------------------------------------------------------


@pytest.mark.parametrize(
    ("handler", "error"),
    [
        (lambda request: httpx.Response(503, text="maintenance"), UpstreamUnavailable),
        (lambda request: httpx.Response(429, text="slow down"), RateLimited),
        (lambda request: httpx.Response(200, text="<html>not json</html>"), UpstreamShapeChanged),
    ],
)
def test_shared_status_mapping(handler, error) -> None:
    with pytest.raises(error) as excinfo:
        _run(CodeforcesAdapter, handler, lambda adapter: adapter.fetch_profile_text("tourist"))
    assert excinfo.value.platform == "codeforces"


def test_transport_errors_are_upstream_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        _run(LeetCodeAdapter, handler, lambda adapter: adapter.collect("lc_user"))


def test_registry_builds_one_adapter_per_platform() -> None:
    async def go() -> dict:
        async with build_http_client(make_settings()) as client:
            return build_adapters(client, make_settings())

    adapters = asyncio.run(go())

    assert set(adapters) == set(Platform)
    assert isinstance(adapters[Platform.CODECHEF], CodeChefAdapter)
    assert adapters[Platform.GITHUB].supports_rating_history is False
