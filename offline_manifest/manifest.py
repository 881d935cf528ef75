"""Manifest and catalog records plus their JSON writer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from offline_manifest.paths import HierarchyItem

MANIFEST_VERSION = "3.0"
DEFAULT_PROVIDER = "franklin"
CATALOG_PATH = Path("screens") / "channels.json"
MANIFEST_SUFFIX = ".manifest.json"


@dataclass(frozen=True)
class Rendition:
    """Fixed-size derived variant of an image entry."""

    name: str
    path: str
    width: int
    height: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class ManifestEntry:
    """Manifest entry for one resource.

    Non-media entries carry ``timestamp``; media entries carry ``hash``. An
    entry may carry neither when the origin did not report a last-modified
    time.
    """

    path: str
    timestamp: int | None = None
    hash: str | None = None
    renditions: tuple[Rendition, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"path": self.path}
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        if self.hash is not None:
            payload["hash"] = self.hash
        if self.renditions:
            payload["renditions"] = [rendition.to_dict() for rendition in self.renditions]
        return payload


@dataclass(frozen=True)
class PageManifest:
    """Deduplicated dependency listing for one page and its fragments."""

    timestamp: int
    entries: list[ManifestEntry]
    version: str = MANIFEST_VERSION
    providers: tuple[tuple[str, str], ...] = ((DEFAULT_PROVIDER, "/"),)
    default_provider: str = DEFAULT_PROVIDER

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "entries": [entry.to_dict() for entry in self.entries],
            "contentDelivery": {
                "providers": [
                    {"name": name, "endpoint": endpoint} for name, endpoint in self.providers
                ],
                "defaultProvider": self.default_provider,
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def format_millis(timestamp: int) -> str:
    """Format epoch millis as an ISO-8601 UTC string with millisecond precision."""

    moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{timestamp % 1000:03d}Z"


def manifest_path_for(page_path: str) -> str:
    return f"{page_path}{MANIFEST_SUFFIX}"


@dataclass(frozen=True)
class ChannelEntry:
    """Catalog record for one top-level page."""

    manifest_path: str | None
    last_modified: int
    external_id: str
    title: str
    live_url: str
    edit_url: str | None = None
    hierarchy: list[HierarchyItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "manifestPath": self.manifest_path,
            "lastModified": format_millis(self.last_modified),
            "externalId": self.external_id,
            "title": self.title,
            "liveUrl": self.live_url,
        }
        if self.edit_url:
            payload["editUrl"] = self.edit_url
        payload["hierarchy"] = [item.to_dict() for item in self.hierarchy]
        return payload


@dataclass(frozen=True)
class ChannelCatalog:
    """Published catalog of every channel."""

    channels: list[ChannelEntry]

    def to_dict(self) -> dict[str, Any]:
        return {"channels": [channel.to_dict() for channel in self.channels]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


class ManifestWriter:
    """Writes page manifests and the channel catalog under an output root."""

    def __init__(self, out_dir: Path) -> None:
        self.out_dir = out_dir
        self.out_dir.mkdir(parents=True, exist_ok=True)

    def page_manifest_path(self, page_path: str) -> Path:
        return self.out_dir / manifest_path_for(page_path.lstrip("/"))

    def write_page_manifest(self, page_path: str, manifest: PageManifest) -> Path:
        target = self.page_manifest_path(page_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(manifest.to_json() + "\n", encoding="utf-8")
        return target

    def write_catalog(self, catalog: ChannelCatalog) -> Path:
        target = self.out_dir / CATALOG_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(catalog.to_json() + "\n", encoding="utf-8")
        return target
