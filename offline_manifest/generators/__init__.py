"""Registry of per-template HTML generators."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Literal

from offline_manifest.errors import InvalidManifestData
from offline_manifest.fetch import FetchCache
from offline_manifest.generators import default
from offline_manifest.index import PageRecord

LOGGER = logging.getLogger("offline_manifest.generators")

GeneratorFn = Callable[[str, PageRecord, FetchCache, Path], Awaitable[list[str]]]


@dataclass(frozen=True)
class ResolvedGenerator:
    """Generator chosen for a page: the default one or a named plugin."""

    kind: Literal["default", "named"]
    fn: GeneratorFn
    name: str | None = None


class GeneratorRegistry:
    """Maps template names to generator functions."""

    def __init__(self, default_generator: GeneratorFn = default.generate) -> None:
        self.default_generator = default_generator
        self._generators: dict[str, GeneratorFn] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._generators

    def register(self, name: str, fn: GeneratorFn) -> None:
        if name in self._generators:
            LOGGER.warning("Replacing generator registered for template %s", name)
        self._generators[name] = fn

    def resolve(self, template: str | None) -> ResolvedGenerator:
        if template and template in self._generators:
            return ResolvedGenerator(kind="named", fn=self._generators[template], name=template)
        return ResolvedGenerator(kind="default", fn=self.default_generator)

    def load_module(self, module_name: str) -> None:
        """Register ``generate`` from a module under its TEMPLATE (or module) name."""

        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise InvalidManifestData(f"Cannot import generator module {module_name}: {exc}") from exc
        fn = getattr(module, "generate", None)
        if not callable(fn):
            raise InvalidManifestData(f"Generator module {module_name} has no generate()")
        template = getattr(module, "TEMPLATE", None) or module_name.rsplit(".", maxsplit=1)[-1]
        self.register(template, fn)

    @classmethod
    def from_modules(cls, module_names: Iterable[str]) -> GeneratorRegistry:
        registry = cls()
        for module_name in module_names:
            registry.load_module(module_name)
        return registry
