"""Parse the page index and channel list published by the origin."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from offline_manifest.errors import InvalidManifestData, ParseError

LOGGER = logging.getLogger("offline_manifest.index")

RESOURCE_FIELDS = ("scripts", "styles", "assets", "inlineImages", "dependencies", "fragments")
TRUTHY = {"true", "yes", "1", "y", "on"}


@dataclass(frozen=True)
class PageRecord:
    """Declared resources of one page, parsed from its index row."""

    path: str
    scripts: list[str] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)
    inline_images: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    fragments: list[str] = field(default_factory=list)
    template: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> PageRecord:
        path = row.get("path")
        if not isinstance(path, str) or not path:
            raise InvalidManifestData(f"Page index row without a path: {row!r}")
        lists = {name: parse_resource_list(row.get(name), name, path) for name in RESOURCE_FIELDS}
        template = row.get("template")
        return cls(
            path=path,
            scripts=lists["scripts"],
            styles=lists["styles"],
            assets=lists["assets"],
            inline_images=lists["inlineImages"],
            dependencies=lists["dependencies"],
            fragments=lists["fragments"],
            template=template.strip() if isinstance(template, str) and template.strip() else None,
        )


@dataclass(frozen=True)
class ChannelMetadata:
    """Catalog metadata for one channel from the channel list."""

    path: str
    external_id: str = ""
    title: str = ""
    live_url: str = ""
    edit_url: str | None = None
    online: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ChannelMetadata:
        path = row.get("path")
        if not isinstance(path, str) or not path:
            raise InvalidManifestData(f"Channel row without a path: {row!r}")
        return cls(
            path=path,
            external_id=_text(row.get("externalId")),
            title=_text(row.get("title")),
            live_url=_text(row.get("liveUrl")),
            edit_url=_text(row.get("editUrl")) or None,
            online=_flag(row.get("online")),
        )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value).strip().lower() in TRUTHY


def load_json(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in {source}: {exc}", source=source) from exc


def parse_resource_list(value: Any, name: str, page_path: str) -> list[str]:
    """Parse a JSON-encoded list of paths into a list of strings."""

    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = load_json(value, f"{page_path} ({name})")
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ParseError(
            f"Field {name} of {page_path} must be a list of strings", source=page_path
        )
    return list(value)


def sheet_rows(payload: Any, sheet_name: str | None = None) -> list[dict[str, Any]]:
    """Return the data rows of a single- or multi-sheet JSON payload."""

    if not isinstance(payload, dict):
        raise InvalidManifestData(f"Sheet payload must be an object, got {type(payload).__name__}")
    sheet_type = payload.get(":type")
    if sheet_type == "multi-sheet":
        if not sheet_name or not isinstance(payload.get(sheet_name), dict):
            raise InvalidManifestData(f"Sheet {sheet_name!r} missing from multi-sheet payload")
        rows = payload[sheet_name].get("data")
    elif sheet_type in ("sheet", None):
        rows = payload.get("data")
    else:
        raise InvalidManifestData(f"Invalid sheet type: {sheet_type}")
    if not isinstance(rows, list):
        raise InvalidManifestData("Sheet payload has no data list")
    return [row for row in rows if isinstance(row, dict)]


def parse_page_index(text: str, sheet_name: str | None = None) -> list[PageRecord]:
    """Parse the page index, skipping rows whose resource lists are malformed."""

    rows = sheet_rows(load_json(text, "page index"), sheet_name)
    records: list[PageRecord] = []
    for row in rows:
        try:
            records.append(PageRecord.from_row(row))
        except (ParseError, InvalidManifestData) as exc:
            LOGGER.error("Skipping page index row %s: %s", row.get("path"), exc)
    return records


def parse_channel_list(text: str, sheet_name: str | None = None) -> list[ChannelMetadata]:
    rows = sheet_rows(load_json(text, "channel list"), sheet_name)
    channels: list[ChannelMetadata] = []
    for row in rows:
        try:
            channels.append(ChannelMetadata.from_row(row))
        except InvalidManifestData as exc:
            LOGGER.error("Skipping channel row: %s", exc)
    return channels
