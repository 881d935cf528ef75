"""Prefect tasks for writing manifests and the channel catalog."""

from __future__ import annotations

from pathlib import Path

from prefect import get_run_logger, task

from offline_manifest.manifest import ChannelCatalog, ManifestWriter, PageManifest


@task(name="write_manifest_task")
def write_manifest_task(out_dir: Path, page_path: str, manifest: PageManifest) -> Path:
    """Write one page manifest next to where the page is served."""

    logger = get_run_logger()
    target = ManifestWriter(out_dir).write_page_manifest(page_path, manifest)
    logger.info("Wrote manifest for %s to %s (%s entries)", page_path, target, len(manifest.entries))
    return target


@task(name="write_catalog_task")
def write_catalog_task(out_dir: Path, catalog: ChannelCatalog) -> Path:
    """Write the channel catalog."""

    logger = get_run_logger()
    target = ManifestWriter(out_dir).write_catalog(catalog)
    logger.info("Wrote catalog with %s channels to %s", len(catalog.channels), target)
    return target
