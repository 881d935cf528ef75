"""Shared fixtures: a fake origin served through httpx.MockTransport."""

from __future__ import annotations

from typing import AsyncIterator

import httpx
import pytest

from offline_manifest.fetch import FetchCache

HOST = "https://main--site--owner.hlx.live"

JAN_1 = "Wed, 01 Jan 2025 00:00:00 GMT"
JAN_1_MS = 1735689600000
JAN_2 = "Thu, 02 Jan 2025 00:00:00 GMT"
JAN_2_MS = 1735776000000


class FakeOrigin:
    """Serves canned responses keyed by URL path and records every request."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, dict[str, str], str]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        path: str,
        status: int = 200,
        last_modified: str | None = None,
        content_type: str | None = None,
        body: str = "",
    ) -> None:
        headers: dict[str, str] = {}
        if last_modified:
            headers["last-modified"] = last_modified
        if content_type:
            headers["content-type"] = content_type
        self.routes[path] = (status, headers, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, headers, body = self.routes.get(request.url.path, (404, {}, ""))
        return httpx.Response(status, headers=headers, text=body)

    def count(self, method: str, path: str) -> int:
        return sum(
            1
            for request in self.requests
            if request.method == method and request.url.path == path
        )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
async def cache(origin: FakeOrigin) -> AsyncIterator[FetchCache]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(origin.handler)) as client:
        yield FetchCache(client)
