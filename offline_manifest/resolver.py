"""Resolve declared page resources into manifest entries."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timezone
from email.utils import parsedate_to_datetime

from offline_manifest.config import SynthesisConfig
from offline_manifest.errors import FetchError, ResourceUnavailable
from offline_manifest.fetch import CachedResponse, FetchCache
from offline_manifest.manifest import ManifestEntry, Rendition
from offline_manifest.paths import (
    create_url,
    get_hash_from_media,
    is_media,
    rendition_paths,
    resource_location,
)

LOGGER = logging.getLogger("offline_manifest.resolver")

RENDITION_SIZES: dict[str, tuple[int, int]] = {
    "landscape": (1408, 1024),
    "portrait": (1024, 1408),
}


def parse_last_modified(value: str | None) -> int | None:
    """Parse an HTTP date header into epoch millis."""

    if not value:
        return None
    try:
        moment = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring unparseable last-modified header %r", value)
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


class EntryResolver:
    """Turns page and resource paths into manifest entries via the fetch cache."""

    def __init__(self, cache: FetchCache, config: SynthesisConfig | None = None) -> None:
        self.cache = cache
        self.config = config or SynthesisConfig()

    async def resolve_page_entry(
        self,
        host: str,
        page_path: str,
        forced_fresh_timestamp: int | None = None,
    ) -> ManifestEntry:
        """Entry for the page's own HTML.

        A page regenerated locally in this run takes the forced timestamp
        instead of whatever the origin reports. An unreachable page raises
        FetchError.
        """

        path = f"{page_path}.html"
        if forced_fresh_timestamp is not None:
            return ManifestEntry(path=path, timestamp=forced_fresh_timestamp)
        response = await self.cache.head(host, path)
        if not response.ok:
            raise FetchError(create_url(host, path), status_code=response.status_code)
        return ManifestEntry(
            path=path,
            timestamp=parse_last_modified(response.headers.get("last-modified")),
        )

    async def resolve_resource_entry(
        self,
        host: str,
        resource_path: str,
        use_adaptive_renditions: bool = False,
        page_path: str | None = None,
    ) -> ManifestEntry | None:
        """Entry for one declared resource, or None when it is unavailable.

        Relative resources are checked beside ``page_path``; the entry keeps
        the path as declared.
        """

        path = resource_path.strip()
        location = resource_location(path, page_path)
        try:
            response = await self._require_head(host, location)
        except ResourceUnavailable as exc:
            LOGGER.warning("Skipping manifest entry: %s", exc)
            return None

        if is_media(path, self.config.media_prefixes):
            entry = ManifestEntry(
                path=path,
                hash=get_hash_from_media(
                    path,
                    media_prefix=self.config.media_prefix,
                    image_service_prefix=self.config.image_service_prefix,
                ),
            )
        else:
            entry = ManifestEntry(
                path=path,
                timestamp=parse_last_modified(response.headers.get("last-modified")),
            )

        if use_adaptive_renditions and response.content_type.startswith("image/"):
            renditions = await self._probe_renditions(host, location)
            if renditions:
                entry = replace(entry, renditions=renditions)
        return entry

    async def _require_head(self, host: str, path: str) -> CachedResponse:
        try:
            response = await self.cache.head(host, path)
        except FetchError as exc:
            raise ResourceUnavailable(path) from exc
        if not response.ok:
            raise ResourceUnavailable(path, status_code=response.status_code)
        return response

    async def _probe_renditions(self, host: str, path: str) -> tuple[Rendition, ...]:
        renditions: list[Rendition] = []
        for name, rendition_path in rendition_paths(path).items():
            try:
                await self._require_head(host, rendition_path)
            except ResourceUnavailable:
                LOGGER.info("No %s rendition for %s", name, path)
                continue
            width, height = RENDITION_SIZES[name]
            renditions.append(
                Rendition(name=name, path=rendition_path, width=width, height=height)
            )
        return tuple(renditions)
