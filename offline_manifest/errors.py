"""Error types raised while synthesizing offline manifests."""

from __future__ import annotations


class OfflineManifestError(RuntimeError):
    """Base class for manifest synthesis errors."""


class FetchError(OfflineManifestError):
    """HTTP request failed or returned a non-2xx status."""

    def __init__(
        self,
        url: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        if status_code is not None:
            message = f"request to fetch {url} failed with status code {status_code}"
        else:
            message = f"request to fetch {url} failed with error {cause}"
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class ParseError(OfflineManifestError):
    """Malformed JSON resource list or HTML payload."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class ResourceUnavailable(OfflineManifestError):
    """A single resource could not be resolved; it is omitted from the manifest."""

    def __init__(self, path: str, status_code: int | None = None) -> None:
        super().__init__(f"resource {path} not available (status {status_code})")
        self.path = path
        self.status_code = status_code


class InvalidManifestData(OfflineManifestError):
    """Page index or channel data is structurally wrong."""


class CyclicFragmentError(OfflineManifestError):
    """A fragment includes itself, directly or transitively."""

    def __init__(self, path: str, chain: list[str]) -> None:
        cycle = " -> ".join([*chain, path])
        super().__init__(f"fragment cycle detected: {cycle}")
        self.path = path
        self.chain = chain
