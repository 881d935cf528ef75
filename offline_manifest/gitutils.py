"""Git helpers: local modification checks and origin host discovery."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import anyio

from offline_manifest.errors import InvalidManifestData

LOGGER = logging.getLogger("offline_manifest.git")

ORIGIN_RE = re.compile(r"[:/](?P<owner>[^/:]+)/(?P<repo>[^/]+?)(?:\.git)?/?$")


async def _git(args: list[str], cwd: Path | None = None) -> str | None:
    try:
        result = await anyio.run_process(["git", *args], cwd=cwd, check=False)
    except OSError as exc:
        LOGGER.warning("git %s failed: %s", " ".join(args), exc)
        return None
    if result.returncode != 0:
        LOGGER.debug("git %s exited with %s", " ".join(args), result.returncode)
        return None
    return result.stdout.decode("utf-8", errors="replace").strip()


async def is_path_locally_modified(path: str | Path, cwd: Path | None = None) -> bool:
    """Return True if path differs from the committed version (or is untracked)."""

    output = await _git(["status", "--porcelain", "--", str(path)], cwd=cwd)
    return bool(output)


def parse_origin(url: str) -> tuple[str, str]:
    """Split a git remote URL into (owner, repo)."""

    match = ORIGIN_RE.search(url.strip())
    if not match:
        raise InvalidManifestData(f"Cannot parse owner/repo from git remote {url!r}")
    return match.group("owner"), match.group("repo")


def host_for(owner: str, repo: str, ref: str) -> str:
    return f"https://{ref}--{repo}--{owner}.hlx.live"


async def current_ref(cwd: Path | None = None) -> str | None:
    """Tag pointing at HEAD if there is one, else the current branch."""

    tag = await _git(["describe", "--tags", "--exact-match", "HEAD"], cwd=cwd)
    if tag:
        return tag
    return await _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)


async def discover_host(cwd: Path | None = None) -> str:
    """Derive the live origin host from the origin remote and current ref."""

    origin = await _git(["config", "--get", "remote.origin.url"], cwd=cwd)
    if not origin:
        raise InvalidManifestData("No origin remote found; pass --host explicitly.")
    ref = await current_ref(cwd)
    if not ref:
        raise InvalidManifestData("Cannot determine the current git branch; pass --host explicitly.")
    owner, repo = parse_origin(origin)
    return host_for(owner, repo, ref)
