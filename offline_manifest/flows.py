"""Prefect flow orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable

import anyio
from prefect import flow

from offline_manifest.catalog import CatalogBuilder, CatalogResult, top_level_pages
from offline_manifest.compose import ManifestComposer, now_millis
from offline_manifest.config import SynthesisConfig
from offline_manifest.errors import OfflineManifestError
from offline_manifest.fetch import FetchCache, open_fetch_cache
from offline_manifest.generators import GeneratorRegistry
from offline_manifest.generators.default import html_output_path
from offline_manifest.gitutils import discover_host, is_path_locally_modified
from offline_manifest.index import PageRecord, parse_channel_list, parse_page_index
from offline_manifest.resolver import EntryResolver
from offline_manifest.tasks import write_catalog_task, write_manifest_task

LOGGER = logging.getLogger("offline_manifest.flow")

PAGE_INDEX_DEFAULT = "/manifest.json"
CHANNELS_DEFAULT = "/channels.json"


@dataclass(frozen=True)
class FlowOutcome:
    failures: list[str]
    catalog_path: Path | None
    manifest_paths: list[Path]


async def generate_pages(
    host: str,
    pages: list[PageRecord],
    cache: FetchCache,
    registry: GeneratorRegistry,
    out_dir: Path,
) -> dict[str, list[str]]:
    """Run each page's generator; return extra resources per page path."""

    extras: dict[str, list[str]] = {}

    async def generate_one(page: PageRecord) -> None:
        generator = registry.resolve(page.template)
        try:
            extras[page.path] = list(await generator.fn(host, page, cache, out_dir))
        except OfflineManifestError as exc:
            LOGGER.error("HTML generation for %s failed: %s", page.path, exc)

    async with anyio.create_task_group() as tg:
        for page in pages:
            tg.start_soon(generate_one, page)
    return extras


async def _generated_html_modified(out_dir: Path, page_path: str) -> bool:
    target = html_output_path(out_dir, page_path)
    if not target.exists():
        return False
    modified = await is_path_locally_modified(target.name, cwd=target.parent)
    if modified:
        LOGGER.info("Generated HTML at %s differs from the committed version", target)
    return modified


async def run_synthesis(
    config: SynthesisConfig,
    cache: FetchCache,
    out_dir: Path,
    page_index: str = PAGE_INDEX_DEFAULT,
    channels: str = CHANNELS_DEFAULT,
    adaptive_renditions: bool = False,
    generate_html: bool = False,
    registry: GeneratorRegistry | None = None,
    clock: Callable[[], int] = now_millis,
) -> CatalogResult:
    """Fetch the indexes, optionally generate HTML, and build every manifest.

    Failing to fetch or parse the page index or channel list is fatal.
    """

    if not config.host:
        raise OfflineManifestError("No host configured for synthesis.")
    host = config.host
    pages = parse_page_index(await cache.fetch_text_at(host, page_index))
    channel_rows = parse_channel_list(await cache.fetch_text_at(host, channels))
    LOGGER.info("Loaded %s pages and %s channel rows from %s", len(pages), len(channel_rows), host)

    extras: dict[str, list[str]] = {}
    modified_check = None
    if generate_html:
        registry = registry or GeneratorRegistry.from_modules(config.generator_modules)
        selected = top_level_pages(pages, (row.path for row in channel_rows))
        extras = await generate_pages(host, selected, cache, registry, out_dir)
        modified_check = partial(_generated_html_modified, out_dir)

    resolver = EntryResolver(cache, config)
    composer = ManifestComposer(
        resolver, pages, use_adaptive_renditions=adaptive_renditions, clock=clock
    )
    builder = CatalogBuilder(composer, is_path_locally_modified=modified_check)
    return await builder.build(host, pages, channel_rows, extra_resources=extras)


@flow(name="build_catalog_flow")
async def build_catalog_flow(
    out_dir: Path,
    config: SynthesisConfig,
    page_index: str = PAGE_INDEX_DEFAULT,
    channels: str = CHANNELS_DEFAULT,
    adaptive_renditions: bool = False,
    generate_html: bool = False,
) -> FlowOutcome:
    """Synthesize offline manifests for every page and publish the catalog."""

    if not config.host:
        config = config.with_overrides(host=await discover_host())
        LOGGER.info("Using host %s derived from git", config.host)

    out_dir.mkdir(parents=True, exist_ok=True)
    async with open_fetch_cache(config) as cache:
        result = await run_synthesis(
            config,
            cache,
            out_dir,
            page_index=page_index,
            channels=channels,
            adaptive_renditions=adaptive_renditions,
            generate_html=generate_html,
        )
        LOGGER.info("Issued %s requests", cache.request_count)

    manifest_paths = [
        write_manifest_task(out_dir=out_dir, page_path=page_path, manifest=manifest)
        for page_path, manifest in sorted(result.manifests.items())
    ]
    catalog_path = write_catalog_task(out_dir=out_dir, catalog=result.catalog)

    failure_pages = sorted(result.failures)
    if failure_pages:
        LOGGER.error("Failures on pages: %s", failure_pages)
    return FlowOutcome(
        failures=failure_pages,
        catalog_path=catalog_path,
        manifest_paths=manifest_paths,
    )
