"""Path helpers for classifying, trimming and rebasing resource paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from offline_manifest.config import (
    IMAGE_SERVICE_PREFIX_DEFAULT,
    MEDIA_PREFIX_DEFAULT,
    ROOT_MARKER_DEFAULT,
)

DEFAULT_MEDIA_PREFIXES = (MEDIA_PREFIX_DEFAULT, IMAGE_SERVICE_PREFIX_DEFAULT)


@dataclass(frozen=True)
class HierarchyItem:
    """Breadcrumb entry for one ancestor of a page."""

    title: str
    path: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "path": self.path}


def create_url(host: str, path: str) -> str:
    """Join host and path with exactly one slash between them."""

    host_part = host[:-1] if host.endswith("/") else host
    path_part = path[1:] if path.startswith("/") else path
    return f"{host_part}/{path_part}"


def get_parent_from_path(path: str) -> str:
    """Drop everything from the last slash onwards."""

    index = path.rfind("/")
    if index < 0:
        return ""
    return path[:index]


def resource_location(path: str, page_path: str | None = None) -> str:
    """Origin path a declared resource is served from.

    Relative paths live beside the page that declares them.
    """

    if page_path is None or path.startswith("/"):
        return path
    return f"{get_parent_from_path(page_path)}/{path}"


def get_current_path_name(path: str) -> str:
    return path[path.rfind("/") + 1 :]


def get_parent_hierarchy(
    path: str, root_marker: str = ROOT_MARKER_DEFAULT
) -> list[HierarchyItem]:
    """Return the ancestors of path, root first, stopping at root_marker."""

    hierarchy: list[HierarchyItem] = []
    current = get_parent_from_path(path)
    while current not in (root_marker, ""):
        hierarchy.append(HierarchyItem(title=get_current_path_name(current), path=current))
        current = get_parent_from_path(current)
    hierarchy.reverse()
    return hierarchy


def trim_resource_path(path: str) -> str:
    """Strip the relative-path dot and any query string."""

    trimmed = path.strip()
    if trimmed.startswith("./"):
        trimmed = trimmed[2:]
    elif trimmed.startswith("."):
        trimmed = trimmed[1:]
    return trimmed.split("?", maxsplit=1)[0]


def is_media(path: str, prefixes: Iterable[str] = DEFAULT_MEDIA_PREFIXES) -> bool:
    """Return True if the path points at hash-addressed media."""

    trimmed = path.strip()
    return any(prefix and prefix in trimmed for prefix in prefixes)


def get_hash_from_media(
    path: str,
    media_prefix: str = MEDIA_PREFIX_DEFAULT,
    image_service_prefix: str = IMAGE_SERVICE_PREFIX_DEFAULT,
) -> str:
    """Extract the content hash of a media path.

    Content-hosted media carry the hash between the prefix and the first dot
    of the file name. Image-service media have no hash, so the trailing path
    segment is used as a stable identifier instead.

    Callers must check ``is_media`` first; other paths yield an empty string.
    """

    trimmed = path.strip()
    if image_service_prefix and image_service_prefix in trimmed:
        identifier = get_current_path_name(trimmed.rstrip("/"))
        return f"scene7-{identifier}"
    start = trimmed.find(media_prefix)
    if start < 0:
        return ""
    start += len(media_prefix)
    end = trimmed.find(".", start)
    if end < 0:
        end = len(trimmed)
    return trimmed[start:end]


def extract_media_from_path(path: str, media_prefix: str = MEDIA_PREFIX_DEFAULT) -> str:
    """Return the portion of path starting at the media prefix."""

    trimmed = path.strip()
    index = trimmed.find(media_prefix)
    if index < 0:
        return trimmed
    return trimmed[index:]


def rendition_paths(path: str) -> dict[str, str]:
    """Map rendition name to the sibling path it is published under."""

    parent = get_parent_from_path(path)
    file_name = get_current_path_name(path)
    stem = file_name.rsplit(".", maxsplit=1)[0] if "." in file_name else file_name
    return {
        name: f"{parent}/{stem}_renditions/{stem}-{name}.jpeg"
        for name in ("landscape", "portrait")
    }
