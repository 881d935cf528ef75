"""Memoized HTTP access shared by one synthesis run."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Mapping

import anyio
import httpx

from offline_manifest.config import SynthesisConfig
from offline_manifest.errors import FetchError
from offline_manifest.paths import create_url

LOGGER = logging.getLogger("offline_manifest.fetch")


@dataclass(frozen=True)
class CachedResponse:
    """Status, headers and (for GET) body of a completed request."""

    url: str
    method: str
    status_code: int
    headers: httpx.Headers
    text: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").split(";", maxsplit=1)[0].strip().lower()


class RequestRateLimiter:
    """Token bucket capping origin requests per second; a rate of 0 disables it."""

    def __init__(self, rps: float) -> None:
        self.rps = rps
        self.burst = max(1.0, rps)
        self._tokens = self.burst
        self._refilled_at = time.monotonic()
        self._lock = anyio.Lock()
        self.throttled = 0

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self.burst, self._tokens + (now - self._refilled_at) * self.rps)
        self._refilled_at = now

    async def wait_for_slot(self, url: str) -> None:
        if self.rps <= 0:
            return
        while True:
            async with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                delay = (1 - self._tokens) / self.rps
            self.throttled += 1
            LOGGER.debug("Throttling request to %s for %.3fs", url, delay)
            await anyio.sleep(delay)


class FetchCache:
    """Write-once cache of HTTP results keyed by method and absolute URL.

    Concurrent callers asking for the same key wait on a per-key lock, so at
    most one request per key is in flight. Only 2xx responses are stored;
    failures are returned (or raised) to the caller and re-requested on the
    next call.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        headers: Mapping[str, str] | None = None,
        concurrency: int = 10,
        rps: float = 0.0,
    ) -> None:
        self._client = client
        self._headers = dict(headers or {})
        self._semaphore = anyio.Semaphore(max(concurrency, 1))
        self.rate_limiter = RequestRateLimiter(rps)
        self._responses: dict[tuple[str, str], CachedResponse] = {}
        self._locks: dict[tuple[str, str], anyio.Lock] = {}
        self.request_count = 0

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._responses

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> CachedResponse:
        key = (method.upper(), url)
        cached = self._responses.get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, anyio.Lock())
        async with lock:
            cached = self._responses.get(key)
            if cached is not None:
                return cached
            response = await self._send(key[0], url, headers)
            if response.ok:
                self._responses[key] = response
            return response

    async def fetch_text(self, url: str) -> str:
        """GET url and return its body, raising FetchError on a non-2xx status."""

        response = await self.fetch(url, "GET")
        if not response.ok:
            raise FetchError(url, status_code=response.status_code)
        return response.text or ""

    async def fetch_text_at(self, host: str, path: str) -> str:
        return await self.fetch_text(create_url(host, path))

    async def head(self, host: str, path: str) -> CachedResponse:
        return await self.fetch(create_url(host, path), "HEAD")

    async def _send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None,
    ) -> CachedResponse:
        request_headers = {**self._headers, **(headers or {})}
        async with self._semaphore:
            await self.rate_limiter.wait_for_slot(url)
            self.request_count += 1
            start = time.monotonic()
            try:
                response = await self._client.request(method, url, headers=request_headers)
            except httpx.HTTPError as exc:
                raise FetchError(url, cause=exc) from exc
        duration_ms = int((time.monotonic() - start) * 1000)
        LOGGER.debug("%s %s -> %s in %sms", method, url, response.status_code, duration_ms)
        return CachedResponse(
            url=url,
            method=method,
            status_code=response.status_code,
            headers=response.headers,
            text=None if method == "HEAD" else response.text,
        )


@asynccontextmanager
async def open_fetch_cache(config: SynthesisConfig) -> AsyncIterator[FetchCache]:
    """Create a FetchCache backed by a fresh httpx client for one run."""

    timeout = httpx.Timeout(config.timeout)
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        yield FetchCache(
            client,
            headers=config.request_headers(),
            concurrency=config.concurrency,
            rps=config.rps,
        )
