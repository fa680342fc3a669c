"""Code-hosting API client.

One operation set over two backends, chosen once at startup
(``cs.core.config.resolve_backend``):

- ``Primary``: GitHub REST. Proposals are found with the issue search API.
  Requests hitting a primary or secondary rate limit are retried at most
  ``RATE_LIMIT_RETRIES`` times after the delay the server asks for.
- ``Alternate``: Gitea-compatible REST. There is no search, so open pulls are
  listed and filtered here; existing releases can be listed so callers skip
  tags that already have one. No retries.

Every method returns ``Result[..., ApiError]``.
"""

from __future__ import annotations

import time
from asyncio import sleep
from collections.abc import Callable
from types import TracebackType
from typing import TypeVar

import httpx

from cs.core.config import Alternate, HostBackend, Primary
from cs.core.result import Err, Ok, Result
from cs.core.structured import StrDict, as_obj_list, as_str_dict, get_int, get_str, get_table
from cs.output.console import ConsoleProtocol
from cs.services.release.errors import ApiError
from cs.services.release.model import Proposal, Release
from cs.services.release.timeouts import (
    HTTP_TIMEOUT_SECONDS,
    LIST_MAX_PAGES,
    LIST_PAGE_SIZE,
    RATE_LIMIT_RETRIES,
    SECONDARY_RATE_LIMIT_DEFAULT_SECONDS,
)

T = TypeVar("T")

USER_AGENT = "changesets-release"
GITHUB_API_VERSION = "2022-11-28"


def rate_limit_delay(response: httpx.Response, *, now: float) -> tuple[str, float] | None:
    """Classify a rate-limited response.

    Returns:
        ("primary" | "secondary", seconds to wait), or None if the response is
        not a rate-limit rejection.
    """
    if response.status_code not in (403, 429):
        return None

    headers = response.headers
    if headers.get("x-ratelimit-remaining") == "0":
        reset = headers.get("x-ratelimit-reset")
        if reset is not None and reset.isdigit():
            return ("primary", max(0.0, float(reset) - now))
        return ("primary", SECONDARY_RATE_LIMIT_DEFAULT_SECONDS)

    retry_after = headers.get("retry-after")
    if retry_after is not None and retry_after.isdigit():
        return ("secondary", float(retry_after))

    if "secondary rate limit" in response.text.lower():
        return ("secondary", SECONDARY_RATE_LIMIT_DEFAULT_SECONDS)

    if response.status_code == 429:
        return ("primary", SECONDARY_RATE_LIMIT_DEFAULT_SECONDS)
    return None


def _parse_proposal(obj: object) -> Proposal | None:
    data = as_str_dict(obj)
    if data is None:
        return None
    number = get_int(data, "number")
    if number is None:
        return None
    return Proposal(
        number=number,
        title=get_str(data, "title") or "",
        url=get_str(data, "html_url"),
    )


def _parse_release(obj: object) -> Release | None:
    data = as_str_dict(obj)
    if data is None:
        return None
    tag = get_str(data, "tag_name")
    if tag is None:
        return None
    return Release(
        tag_name=tag,
        name=get_str(data, "name"),
        prerelease=data.get("prerelease") is True,
        url=get_str(data, "html_url"),
    )


def _ref_of(pr: StrDict, side: str) -> tuple[str | None, str | None]:
    """Return (ref, repo full name) of a pull request's base or head."""
    end = get_table(pr, side)
    if end is None:
        return (None, None)
    repo = get_table(end, "repo")
    return (get_str(end, "ref"), get_str(repo, "full_name") if repo is not None else None)


class HostApiClient:
    """Pull request and release operations for one repository.

    Attributes:
        backend: Backend selected at startup.
        repository: ``owner/repo``.
    """

    def __init__(
        self,
        backend: HostBackend,
        repository: str,
        *,
        console: ConsoleProtocol,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.backend = backend
        self.repository = repository
        self._console = console
        self._http = http or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)

    async def __aenter__(self) -> HostApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def supports_release_listing(self) -> bool:
        return isinstance(self.backend, Alternate)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def search_open_proposals(
        self, *, base: str, head: str
    ) -> Result[list[Proposal], ApiError]:
        """Find open pull requests from ``head`` into ``base`` in this repository."""
        match self.backend:
            case Primary():
                query = f"repo:{self.repository} state:open head:{head} base:{base} is:pull-request"
                result = await self._request("GET", "/search/issues", params={"q": query})
                if isinstance(result, Err):
                    return result
                data = as_str_dict(result.value) or {}
                items = as_obj_list(data.get("items")) or []
                return Ok([p for p in map(_parse_proposal, items) if p is not None])
            case Alternate():
                listed = await self._get_paginated(
                    f"/repos/{self.repository}/pulls", params={"state": "open"}
                )
                if isinstance(listed, Err):
                    return listed
                found: list[Proposal] = []
                for item in listed.value:
                    pr = as_str_dict(item)
                    if pr is None:
                        continue
                    if _ref_of(pr, "base") != (base, self.repository):
                        continue
                    if _ref_of(pr, "head") != (head, self.repository):
                        continue
                    proposal = _parse_proposal(pr)
                    if proposal is not None:
                        found.append(proposal)
                return Ok(found)

    async def create_proposal(
        self, *, base: str, head: str, title: str, body: str
    ) -> Result[Proposal, ApiError]:
        path = f"/repos/{self.repository}/pulls"
        result = await self._request(
            "POST", path, json={"base": base, "head": head, "title": title, "body": body}
        )
        return self._expect(result, _parse_proposal, path, "pull request")

    async def update_proposal(
        self, *, number: int, title: str, body: str
    ) -> Result[Proposal, ApiError]:
        path = f"/repos/{self.repository}/pulls/{number}"
        result = await self._request("PATCH", path, json={"title": title, "body": body})
        return self._expect(result, _parse_proposal, path, "pull request")

    async def list_releases(self) -> Result[list[Release], ApiError]:
        """List existing releases (alternate backend).

        The primary backend does not list; duplicate tags are rejected by the
        server when a release is created, so an empty list is returned.
        """
        if isinstance(self.backend, Primary):
            return Ok([])
        listed = await self._get_paginated(f"/repos/{self.repository}/releases", params={})
        if isinstance(listed, Err):
            return listed
        return Ok([r for r in map(_parse_release, listed.value) if r is not None])

    async def create_release(
        self, *, name: str, tag_name: str, body: str, prerelease: bool
    ) -> Result[Release, ApiError]:
        path = f"/repos/{self.repository}/releases"
        result = await self._request(
            "POST",
            path,
            json={"name": name, "tag_name": tag_name, "body": body, "prerelease": prerelease},
        )
        return self._expect(result, _parse_release, path, "release")

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _base_url(self) -> str:
        match self.backend:
            case Primary(api_url=url):
                return url
            case Alternate(base_url=url):
                return url

    def _headers(self) -> dict[str, str]:
        match self.backend:
            case Primary(token=token):
                return {
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                    "User-Agent": USER_AGENT,
                }
            case Alternate(token=token):
                return {
                    "Authorization": f"token {token}",
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                }

    def _invalid_payload(self, path: str, message: str) -> ApiError:
        return ApiError(
            status=0,
            status_text="Invalid Payload",
            url=self._base_url() + path,
            message=message,
        )

    def _expect(
        self,
        result: Result[object, ApiError],
        parse: Callable[[object], T | None],
        path: str,
        what: str,
    ) -> Result[T, ApiError]:
        if isinstance(result, Err):
            return result
        parsed = parse(result.value)
        if parsed is None:
            return Err(self._invalid_payload(path, f"unexpected {what} payload"))
        return Ok(parsed)

    async def _send(
        self, method: str, url: str, params: dict[str, str] | None, json: object | None
    ) -> httpx.Response | ApiError:
        try:
            return await self._http.request(
                method, url, params=params, json=json, headers=self._headers()
            )
        except httpx.RequestError as e:
            return ApiError(status=0, status_text="Request Failed", url=url, message=str(e))

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: object | None = None,
    ) -> Result[object, ApiError]:
        url = self._base_url() + path
        retries = RATE_LIMIT_RETRIES if isinstance(self.backend, Primary) else 0

        attempt = 0
        while True:
            response = await self._send(method, url, params, json)
            if isinstance(response, ApiError):
                return Err(response)

            limited = rate_limit_delay(response, now=time.time()) if retries else None
            if limited is None or attempt >= retries:
                break

            kind, delay = limited
            label = (
                "Request quota exhausted" if kind == "primary" else "SecondaryRateLimit detected"
            )
            self._console.warning(f"{label} for request {method} {path}")
            self._console.info(f"Retrying after {delay:g} seconds!")
            attempt += 1
            await sleep(delay)

        if not response.is_success:
            message = ""
            try:
                payload = as_str_dict(response.json())
                message = (get_str(payload, "message") or "") if payload is not None else ""
            except ValueError:
                message = response.text.strip()
            return Err(
                ApiError(
                    status=response.status_code,
                    status_text=response.reason_phrase,
                    url=str(response.request.url),
                    message=message,
                )
            )

        if response.status_code == 204 or not response.content:
            return Ok(None)
        try:
            return Ok(response.json())
        except ValueError as e:
            return Err(
                ApiError(
                    status=response.status_code,
                    status_text="Invalid JSON",
                    url=str(response.request.url),
                    message=str(e),
                )
            )

    async def _get_paginated(
        self, path: str, *, params: dict[str, str]
    ) -> Result[list[object], ApiError]:
        """GET every page of a list endpoint, up to ``LIST_MAX_PAGES`` pages."""
        items: list[object] = []
        for page in range(1, LIST_MAX_PAGES + 1):
            query = {**params, "limit": str(LIST_PAGE_SIZE), "page": str(page)}
            result = await self._request("GET", path, params=query)
            if isinstance(result, Err):
                return result
            batch = as_obj_list(result.value)
            if batch is None:
                return Err(self._invalid_payload(path, "expected a list"))
            items.extend(batch)
            if len(batch) < LIST_PAGE_SIZE:
                return Ok(items)

        self._console.warning(
            f"{path}: stopped after {LIST_MAX_PAGES * LIST_PAGE_SIZE} items; the rest is ignored"
        )
        return Ok(items)
