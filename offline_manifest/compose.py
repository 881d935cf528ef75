"""Recursive composition of page manifests over nested fragments."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Mapping

import anyio

from offline_manifest.errors import CyclicFragmentError, OfflineManifestError
from offline_manifest.index import PageRecord
from offline_manifest.manifest import ManifestEntry, PageManifest
from offline_manifest.paths import (
    extract_media_from_path,
    get_parent_from_path,
    is_media,
    trim_resource_path,
)
from offline_manifest.resolver import EntryResolver

LOGGER = logging.getLogger("offline_manifest.compose")

PLAIN_HTML_SUFFIX = ".plain.html"


def now_millis() -> int:
    return int(time.time() * 1000)


def declared_resources(page: PageRecord, extra_resources: Iterable[str] = ()) -> list[str]:
    """Union of a page's declared resources, deduplicated, first occurrence first."""

    assets = [trim_resource_path(path) for path in page.assets]
    inline_images = [trim_resource_path(path) for path in page.inline_images]
    combined = [
        *page.scripts,
        *page.styles,
        *assets,
        *inline_images,
        *page.dependencies,
        *extra_resources,
    ]
    return list(dict.fromkeys(path for path in combined if path))


def _latest(current: int | None, candidate: int | None) -> int | None:
    if candidate is None:
        return current
    if current is None:
        return candidate
    return max(current, candidate)


@dataclass(frozen=True)
class Composition:
    """Merged entries of one traversal plus the newest timestamp seen in it."""

    entries: dict[str, ManifestEntry]
    latest: int | None


class ManifestComposer:
    """Builds a PageManifest for a page, folding in every nested fragment."""

    def __init__(
        self,
        resolver: EntryResolver,
        pages: Mapping[str, PageRecord] | Iterable[PageRecord] = (),
        use_adaptive_renditions: bool = False,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.resolver = resolver
        self.config = resolver.config
        if isinstance(pages, Mapping):
            self.pages = dict(pages)
        else:
            self.pages = {page.path: page for page in pages}
        self.use_adaptive_renditions = use_adaptive_renditions
        self.clock = clock

    async def compose(
        self,
        host: str,
        page: PageRecord,
        is_freshly_generated: bool = False,
        extra_resources: Iterable[str] = (),
    ) -> PageManifest:
        synthesis_time = self.clock()
        composition = await self._compose(
            host,
            page,
            is_freshly_generated,
            tuple(extra_resources),
            chain=(),
            synthesis_time=synthesis_time,
        )
        entries = sorted(composition.entries.values(), key=lambda entry: entry.path)
        timestamp = composition.latest if composition.latest is not None else synthesis_time
        return PageManifest(timestamp=timestamp, entries=entries)

    def fragment_record(self, fragment_path: str) -> PageRecord:
        record = self.pages.get(fragment_path)
        if record is None:
            LOGGER.warning("Fragment %s is not in the page index; no declared resources", fragment_path)
            return PageRecord(path=fragment_path)
        return record

    async def _compose(
        self,
        host: str,
        page: PageRecord,
        is_freshly_generated: bool,
        extra_resources: tuple[str, ...],
        chain: tuple[str, ...],
        synthesis_time: int,
    ) -> Composition:
        if page.path in chain:
            raise CyclicFragmentError(page.path, list(chain))
        chain = (*chain, page.path)

        forced = synthesis_time if is_freshly_generated else None
        page_entry = await self.resolver.resolve_page_entry(host, page.path, forced)

        resources = declared_resources(page, extra_resources)
        resolved: list[ManifestEntry | None] = [None] * len(resources)
        fragments: list[Composition | None] = [None] * len(page.fragments)
        failures: list[OfflineManifestError | None] = [None] * len(page.fragments)

        async def resolve_one(index: int, resource_path: str) -> None:
            resolved[index] = await self.resolver.resolve_resource_entry(
                host, resource_path, self.use_adaptive_renditions, page.path
            )

        async def compose_fragment(index: int, fragment_path: str) -> None:
            try:
                fragments[index] = await self._compose(
                    host,
                    self.fragment_record(fragment_path),
                    False,
                    (f"{fragment_path}{PLAIN_HTML_SUFFIX}",),
                    chain,
                    synthesis_time,
                )
            except OfflineManifestError as exc:
                failures[index] = exc

        async with anyio.create_task_group() as tg:
            for index, resource_path in enumerate(resources):
                tg.start_soon(resolve_one, index, resource_path)
            for index, fragment_path in enumerate(page.fragments):
                tg.start_soon(compose_fragment, index, fragment_path)

        for failure in failures:
            if failure is not None:
                raise failure

        entries: dict[str, ManifestEntry] = {page_entry.path: page_entry}
        latest = page_entry.timestamp
        for entry in resolved:
            if entry is None:
                continue
            entries[entry.path] = entry
            latest = _latest(latest, entry.timestamp)

        parent = get_parent_from_path(page.path)
        for fragment in fragments:
            if fragment is None:
                continue
            latest = _latest(latest, fragment.latest)
            for entry in fragment.entries.values():
                if is_media(entry.path, self.config.media_prefixes):
                    rebased = parent + extract_media_from_path(entry.path, self.config.media_prefix)
                    entry = replace(entry, path=rebased)
                entries[entry.path] = entry

        return Composition(entries=entries, latest=latest)
