"""Default HTML generator: mirror the page's published HTML."""

from __future__ import annotations

import logging
from pathlib import Path

from bs4 import BeautifulSoup

from offline_manifest.errors import ParseError
from offline_manifest.fetch import FetchCache
from offline_manifest.index import PageRecord

LOGGER = logging.getLogger("offline_manifest.generators.default")


def html_output_path(out_dir: Path, page_path: str) -> Path:
    return out_dir / f"{page_path.lstrip('/')}.html"


async def generate(host: str, page: PageRecord, cache: FetchCache, out_dir: Path) -> list[str]:
    """Fetch the page, normalize its markup and write ``<path>.html``.

    Returns no extra resources.
    """

    LOGGER.info("Generating default HTML for %s%s", host, page.path)
    text = await cache.fetch_text_at(host, page.path)
    if not text.strip():
        raise ParseError(f"Empty HTML for {page.path}", source=page.path)
    soup = BeautifulSoup(text, "html.parser")
    target = html_output_path(out_dir, page.path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(str(soup), encoding="utf-8")
    return []
