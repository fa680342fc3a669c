from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pytest

from cs.core.config import Alternate, HostBackend, Primary
from cs.core.result import Err, Ok, Result
from cs.output.console import MockConsole
from cs.services.release import host as host_mod
from cs.services.release.errors import ApiError
from cs.services.release.host import HostApiClient, rate_limit_delay
from cs.services.release.model import Proposal
from cs.services.release.timeouts import LIST_PAGE_SIZE, RATE_LIMIT_RETRIES

PRIMARY = Primary(api_url="https://api.github.com", token="ghs_token")
ALTERNATE = Alternate(base_url="https://git.example.com/api/v1", token="gitea_token")

Handler = Callable[[httpx.Request], httpx.Response]


def _call(
    handler: Handler,
    op: Callable[[HostApiClient], Awaitable[Any]],
    *,
    backend: HostBackend = PRIMARY,
    console: MockConsole | None = None,
) -> Any:
    async def main() -> Any:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with HostApiClient(
            backend, "acme/widgets", console=console or MockConsole(), http=http
        ) as client:
            return await op(client)

    return asyncio.run(main())


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    delays: list[float] = []

    async def _no_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(host_mod, "sleep", _no_sleep)
    return delays


def _pull(
    number: int, *, base: str, head: str, head_repo: str = "acme/widgets"
) -> dict[str, object]:
    return {
        "number": number,
        "title": "Version Packages",
        "html_url": f"https://git.example.com/acme/widgets/pulls/{number}",
        "base": {"ref": base, "repo": {"full_name": "acme/widgets"}},
        "head": {"ref": head, "repo": {"full_name": head_repo}},
    }


class TestRateLimitDelay:
    def _response(self, status: int, headers: dict[str, str], text: str = "") -> httpx.Response:
        return httpx.Response(status, headers=headers, text=text)

    def test_primary_uses_reset_header(self) -> None:
        response = self._response(
            403, {"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1000"}
        )
        assert rate_limit_delay(response, now=990.0) == ("primary", 10.0)

    def test_secondary_uses_retry_after(self) -> None:
        response = self._response(403, {"retry-after": "7"})
        assert rate_limit_delay(response, now=0.0) == ("secondary", 7.0)

    def test_secondary_from_message(self) -> None:
        response = self._response(
            403, {}, text='{"message": "You have exceeded a secondary rate limit."}'
        )
        assert rate_limit_delay(response, now=0.0) == ("secondary", 60.0)

    def test_plain_forbidden_is_not_rate_limited(self) -> None:
        response = self._response(403, {}, text='{"message": "Resource not accessible"}')
        assert rate_limit_delay(response, now=0.0) is None

    def test_success_is_not_rate_limited(self) -> None:
        response = self._response(200, {"x-ratelimit-remaining": "0"})
        assert rate_limit_delay(response, now=0.0) is None


class TestPrimaryBackend:
    def test_search_builds_query_and_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"total_count": 1, "items": [{"number": 12}]})

        result: Result[list[Proposal], ApiError] = _call(
            handler,
            lambda c: c.search_open_proposals(base="main", head="changeset-release/main"),
        )
        assert result == Ok([Proposal(number=12)])

        (request,) = seen
        assert request.url.path == "/search/issues"
        assert request.url.params["q"] == (
            "repo:acme/widgets state:open head:changeset-release/main base:main is:pull-request"
        )
        assert request.headers["authorization"] == "Bearer ghs_token"
        assert request.headers["accept"] == "application/vnd.github+json"

    def test_create_proposal(self) -> None:
        bodies: list[object] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/repos/acme/widgets/pulls"
            bodies.append(json.loads(request.read()))
            return httpx.Response(201, json={"number": 3, "title": "Version Packages"})

        result: Result[Proposal, ApiError] = _call(
            handler,
            lambda c: c.create_proposal(
                base="main", head="changeset-release/main", title="Version Packages", body="b"
            ),
        )
        assert result == Ok(Proposal(number=3, title="Version Packages"))
        assert bodies == [
            {
                "base": "main",
                "head": "changeset-release/main",
                "title": "Version Packages",
                "body": "b",
            }
        ]

    def test_primary_rate_limit_is_retried_at_most_twice(self, sleeps: list[float]) -> None:
        calls: list[httpx.Request] = []
        reset = str(int(time.time()) + 30)

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                403,
                headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": reset},
                json={"message": "API rate limit exceeded"},
            )

        console = MockConsole()
        result: Result[list[Proposal], ApiError] = _call(
            handler,
            lambda c: c.search_open_proposals(base="main", head="changeset-release/main"),
            console=console,
        )
        assert isinstance(result, Err)
        assert result.error.status == 403
        assert result.error.message == "API rate limit exceeded"
        assert len(calls) == RATE_LIMIT_RETRIES + 1
        assert len(sleeps) == RATE_LIMIT_RETRIES
        assert all(0 <= s <= 30 for s in sleeps)
        assert len(console.find("Request quota exhausted")) == RATE_LIMIT_RETRIES

    def test_secondary_rate_limit_then_success(self, sleeps: list[float]) -> None:
        responses = [
            httpx.Response(403, headers={"retry-after": "3"}, json={"message": "slow down"}),
            httpx.Response(200, json={"items": []}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        console = MockConsole()
        result: Result[list[Proposal], ApiError] = _call(
            handler,
            lambda c: c.search_open_proposals(base="main", head="changeset-release/main"),
            console=console,
        )
        assert result == Ok([])
        assert sleeps == [3.0]
        assert console.find("SecondaryRateLimit detected")
        assert console.find("Retrying after 3 seconds!")

    def test_not_found_is_not_retried(self, sleeps: list[float]) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={"message": "Not Found"})

        result: Result[Proposal, ApiError] = _call(
            handler, lambda c: c.update_proposal(number=9, title="t", body="b")
        )
        assert isinstance(result, Err)
        assert result.error.status == 404
        assert result.error.status_text == "Not Found"
        assert result.error.url == "https://api.github.com/repos/acme/widgets/pulls/9"
        assert len(calls) == 1
        assert sleeps == []

    def test_list_releases_is_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert _call(handler, lambda c: c.list_releases()) == Ok([])

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result: Result[list[Proposal], ApiError] = _call(
            handler, lambda c: c.search_open_proposals(base="main", head="x")
        )
        assert isinstance(result, Err)
        assert result.error.status == 0
        assert "connection refused" in result.error.message

    def test_unexpected_payload(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"id": 1})

        result: Result[Proposal, ApiError] = _call(
            handler, lambda c: c.create_proposal(base="main", head="x", title="t", body="b")
        )
        assert isinstance(result, Err)
        assert result.error.status_text == "Invalid Payload"


class TestAlternateBackend:
    def test_search_filters_listed_pulls(self) -> None:
        pulls = [
            _pull(1, base="main", head="feature/x"),
            _pull(2, base="develop", head="changeset-release/main"),
            _pull(3, base="main", head="changeset-release/main", head_repo="fork/widgets"),
            _pull(4, base="main", head="changeset-release/main"),
        ]
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=pulls)

        result: Result[list[Proposal], ApiError] = _call(
            handler,
            lambda c: c.search_open_proposals(base="main", head="changeset-release/main"),
            backend=ALTERNATE,
        )
        assert isinstance(result, Ok)
        assert [p.number for p in result.value] == [4]

        (request,) = seen
        assert request.url.host == "git.example.com"
        assert request.url.path == "/api/v1/repos/acme/widgets/pulls"
        assert request.url.params["state"] == "open"
        assert request.headers["authorization"] == "token gitea_token"

    def test_search_reads_every_page(self) -> None:
        first = [_pull(100 + i, base="main", head=f"feature/{i}") for i in range(LIST_PAGE_SIZE)]
        second = [_pull(7, base="main", head="changeset-release/main")]
        pages: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = request.url.params["page"]
            pages.append(page)
            return httpx.Response(200, json=first if page == "1" else second)

        result: Result[list[Proposal], ApiError] = _call(
            handler,
            lambda c: c.search_open_proposals(base="main", head="changeset-release/main"),
            backend=ALTERNATE,
        )
        assert isinstance(result, Ok)
        assert [p.number for p in result.value] == [7]
        assert pages == ["1", "2"]

    def test_rate_limit_is_not_retried(self, sleeps: list[float]) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429, headers={"retry-after": "1"}, text="too many requests")

        result: Result[list[Proposal], ApiError] = _call(
            handler,
            lambda c: c.search_open_proposals(base="main", head="changeset-release/main"),
            backend=ALTERNATE,
        )
        assert isinstance(result, Err)
        assert result.error.status == 429
        assert len(calls) == 1
        assert sleeps == []

    def test_server_error_carries_status_text_and_url(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="database is locked")

        result: Result[Proposal, ApiError] = _call(
            handler,
            lambda c: c.update_proposal(number=4, title="t", body="b"),
            backend=ALTERNATE,
        )
        assert isinstance(result, Err)
        assert result.error.status == 500
        assert result.error.status_text == "Internal Server Error"
        assert result.error.url == "https://git.example.com/api/v1/repos/acme/widgets/pulls/4"
        assert result.error.message == "database is locked"
        assert str(result.error) == (
            "500 Internal Server Error "
            "(https://git.example.com/api/v1/repos/acme/widgets/pulls/4)"
        )

    def test_list_releases(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/repos/acme/widgets/releases"
            return httpx.Response(
                200, json=[{"tag_name": "pkg-a@1.0.0", "name": "pkg-a@1.0.0"}, {"id": 3}]
            )

        result = _call(handler, lambda c: c.list_releases(), backend=ALTERNATE)
        assert isinstance(result, Ok)
        assert [r.tag_name for r in result.value] == ["pkg-a@1.0.0"]

    def test_create_release(self) -> None:
        bodies: list[object] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.read()))
            return httpx.Response(
                201, json={"tag_name": "pkg-a@1.1.0", "name": "pkg-a@1.1.0", "prerelease": False}
            )

        result = _call(
            handler,
            lambda c: c.create_release(
                name="pkg-a@1.1.0", tag_name="pkg-a@1.1.0", body="notes", prerelease=False
            ),
            backend=ALTERNATE,
        )
        assert isinstance(result, Ok)
        assert result.value.tag_name == "pkg-a@1.1.0"
        assert bodies == [
            {
                "name": "pkg-a@1.1.0",
                "tag_name": "pkg-a@1.1.0",
                "body": "notes",
                "prerelease": False,
            }
        ]
