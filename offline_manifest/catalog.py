"""Assemble per-page manifests and channel metadata into the channel catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Mapping

import anyio

from offline_manifest.compose import ManifestComposer
from offline_manifest.errors import OfflineManifestError
from offline_manifest.index import ChannelMetadata, PageRecord
from offline_manifest.manifest import (
    ChannelCatalog,
    ChannelEntry,
    PageManifest,
    manifest_path_for,
)
from offline_manifest.paths import create_url, get_parent_hierarchy

LOGGER = logging.getLogger("offline_manifest.catalog")

ModifiedCheck = Callable[[str], Awaitable[bool]]


@dataclass(frozen=True)
class CatalogResult:
    """Catalog plus the manifests to publish and the pages that failed."""

    catalog: ChannelCatalog
    manifests: dict[str, PageManifest]
    failures: dict[str, str] = field(default_factory=dict)


def top_level_pages(
    pages: Iterable[PageRecord], channel_paths: Iterable[str] = ()
) -> list[PageRecord]:
    """Pages that get their own manifest.

    A page referenced as a fragment is merged into its includers and never
    published on its own, even when the channel list names it.
    """

    pages = list(pages)
    fragment_paths = {fragment for page in pages for fragment in page.fragments}
    for path in sorted(fragment_paths.intersection(channel_paths)):
        LOGGER.warning("Channel %s is used as a fragment; not publishing it standalone", path)
    return [page for page in pages if page.path not in fragment_paths]


class CatalogBuilder:
    def __init__(
        self,
        composer: ManifestComposer,
        is_path_locally_modified: ModifiedCheck | None = None,
    ) -> None:
        self.composer = composer
        self.config = composer.config
        self.is_path_locally_modified = is_path_locally_modified

    async def is_fresh(self, page_path: str, modified_paths: set[str]) -> bool:
        if page_path in modified_paths:
            return True
        if self.is_path_locally_modified is None:
            return False
        return await self.is_path_locally_modified(page_path)

    def channel_entry(
        self,
        host: str,
        page: PageRecord,
        manifest: PageManifest,
        metadata: ChannelMetadata | None,
    ) -> ChannelEntry:
        if metadata is None:
            external_id, title, live_url = page.path, "", create_url(host, page.path)
            edit_url, online = None, False
        else:
            external_id, title, live_url = metadata.external_id, metadata.title, metadata.live_url
            edit_url, online = metadata.edit_url, metadata.online
        return ChannelEntry(
            manifest_path=None if online else manifest_path_for(page.path),
            last_modified=manifest.timestamp,
            external_id=external_id,
            title=title,
            live_url=live_url,
            edit_url=edit_url,
            hierarchy=get_parent_hierarchy(page.path, self.config.root_marker),
        )

    async def build(
        self,
        host: str,
        pages: Iterable[PageRecord],
        channel_metadata: Iterable[ChannelMetadata] = (),
        modified_paths: Iterable[str] = (),
        extra_resources: Mapping[str, list[str]] | None = None,
    ) -> CatalogResult:
        """Compose every top-level page concurrently and build the catalog.

        A page whose manifest cannot be composed is logged and left out; it
        never aborts its siblings.
        """

        metadata = {row.path: row for row in channel_metadata}
        selected = top_level_pages(pages, metadata.keys())
        modified = set(modified_paths)
        extras = extra_resources or {}
        manifests: list[PageManifest | None] = [None] * len(selected)
        failures: dict[str, str] = {}

        async def compose_page(index: int, page: PageRecord) -> None:
            try:
                fresh = await self.is_fresh(page.path, modified)
                manifests[index] = await self.composer.compose(
                    host, page, fresh, extras.get(page.path, [])
                )
            except OfflineManifestError as exc:
                LOGGER.error("Manifest for %s failed: %s", page.path, exc)
                failures[page.path] = str(exc)

        async with anyio.create_task_group() as tg:
            for index, page in enumerate(selected):
                tg.start_soon(compose_page, index, page)

        channels: list[ChannelEntry] = []
        published: dict[str, PageManifest] = {}
        for page, manifest in zip(selected, manifests):
            if manifest is None:
                continue
            published[page.path] = manifest
            channels.append(self.channel_entry(host, page, manifest, metadata.get(page.path)))

        channels.sort(key=lambda channel: channel.external_id)
        LOGGER.info(
            "Built catalog with %s channels (%s failed)", len(channels), len(failures)
        )
        return CatalogResult(
            catalog=ChannelCatalog(channels=channels),
            manifests=published,
            failures=failures,
        )
