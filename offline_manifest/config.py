"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

MEDIA_PREFIX_DEFAULT = "media_"
IMAGE_SERVICE_PREFIX_DEFAULT = "/is/image/"
ROOT_MARKER_DEFAULT = "/content"
ALLOWLIST_HEADER = "x-franklin-allowlist-key"


@dataclass(frozen=True)
class SynthesisConfig:
    """Settings shared by every component of one synthesis run."""

    host: str | None = None
    allowlist_key: str | None = None
    media_prefix: str = MEDIA_PREFIX_DEFAULT
    image_service_prefix: str = IMAGE_SERVICE_PREFIX_DEFAULT
    root_marker: str = ROOT_MARKER_DEFAULT
    concurrency: int = 10
    rps: float = 0.0
    timeout: float = 30.0
    generator_modules: tuple[str, ...] = field(default_factory=tuple)

    @property
    def media_prefixes(self) -> tuple[str, str]:
        return (self.media_prefix, self.image_service_prefix)

    def request_headers(self) -> dict[str, str]:
        if not self.allowlist_key:
            return {}
        return {ALLOWLIST_HEADER: self.allowlist_key}

    def with_overrides(self, **overrides: Any) -> SynthesisConfig:
        """Return a copy with every non-None override applied."""

        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def build_config() -> SynthesisConfig:
    """Build configuration from OFFLINE_* environment variables."""

    modules = os.getenv("OFFLINE_GENERATOR_MODULES", "")
    return SynthesisConfig(
        host=os.getenv("OFFLINE_HOST") or None,
        allowlist_key=os.getenv("FRANKLIN_ALLOWLIST_KEY") or None,
        media_prefix=os.getenv("OFFLINE_MEDIA_PREFIX", MEDIA_PREFIX_DEFAULT),
        image_service_prefix=os.getenv(
            "OFFLINE_IMAGE_SERVICE_PREFIX", IMAGE_SERVICE_PREFIX_DEFAULT
        ),
        root_marker=os.getenv("OFFLINE_ROOT_MARKER", ROOT_MARKER_DEFAULT),
        concurrency=int(_env_float("OFFLINE_CONCURRENCY", 10)),
        rps=_env_float("OFFLINE_RPS", 0.0),
        timeout=_env_float("OFFLINE_TIMEOUT", 30.0),
        generator_modules=tuple(
            name.strip() for name in modules.split(",") if name.strip()
        ),
    )
