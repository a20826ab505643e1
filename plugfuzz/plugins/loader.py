"""Plugin loader — discovers fuzzer module files and instantiates them.

A plugin is a ``*.py`` file in the plugins directory defining a
``create_plugin()`` factory (see :mod:`plugfuzz.plugins.base`).  Files
whose name starts with ``_`` are ignored.

Usage:
    loader = PluginLoader(plugins_dir="./plugins")
    catalog = loader.load_all()
    fuzzer = find_plugin(catalog, "BitFlipFuzzer")
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from types import ModuleType

from plugfuzz.core.errors import ModuleLoadError, ModuleNotFoundError
from plugfuzz.plugins.base import FACTORY_NAME, FuzzerPlugin

logger = logging.getLogger(__name__)

PLUGIN_SUFFIXES = (".py",)


class PluginLoader:
    """Turns a directory of plugin files into a flat catalog of instances.

    Every file is imported under its own unique module name, so two
    plugins that happen to share helper names never collide.
    """

    def __init__(self, plugins_dir: str | Path) -> None:
        self._plugins_dir = Path(plugins_dir)
        self._loaded_files: list[Path] = []

    @property
    def plugins_dir(self) -> Path:
        return self._plugins_dir

    @property
    def loaded_files(self) -> list[Path]:
        return list(self._loaded_files)

    def discover(self) -> list[Path]:
        """List candidate plugin files, sorted by name.

        An empty directory, or one without recognised files, yields an
        empty list and a warning.
        """
        if not self._plugins_dir.is_dir():
            raise ModuleLoadError(f"Plugins directory not found: {self._plugins_dir}")

        entries = sorted(p for p in self._plugins_dir.iterdir() if p.is_file())
        if not entries:
            logger.warning("No files found in the plugin location %s", self._plugins_dir)
            return []

        candidates = [
            p for p in entries
            if p.suffix in PLUGIN_SUFFIXES and not p.name.startswith("_")
        ]
        if not candidates:
            logger.warning(
                "No plugin files (%s) found in the plugin location %s",
                ", ".join(PLUGIN_SUFFIXES), self._plugins_dir,
            )
        return candidates

    def load_all(self) -> list[FuzzerPlugin]:
        """Discover and load every plugin file into one catalog."""
        self._loaded_files = []
        catalog: list[FuzzerPlugin] = []
        for path in self.discover():
            catalog.extend(self.load_file(path))
        if catalog:
            logger.debug("Plugin catalog checksum: %s", catalog_checksum(self._loaded_files))
        return catalog

    def load_file(self, path: str | Path) -> list[FuzzerPlugin]:
        """Import one plugin file and call its factory.

        Raises:
            ModuleLoadError: the file cannot be imported, has no factory,
                or its factory produces nothing satisfying the contract.
        """
        path = Path(path)
        logger.info("Loading plugins from: %s", path)
        module = _import_isolated(path)

        factory = getattr(module, FACTORY_NAME, None)
        if factory is None or not callable(factory):
            raise ModuleLoadError(
                f"Can't find a '{FACTORY_NAME}' factory in {path}. "
                f"Available names: {', '.join(_public_names(module)) or '(none)'}",
            )

        try:
            produced = factory()
        except Exception as e:
            raise ModuleLoadError(f"Plugin factory in {path} failed: {e}") from e

        instances = [p for p in _as_list(produced) if isinstance(p, FuzzerPlugin)]
        if not instances:
            raise ModuleLoadError(
                f"Factory in {path} returned no object implementing FuzzerPlugin. "
                f"Available names: {', '.join(_public_names(module)) or '(none)'}",
            )

        self._loaded_files.append(path)
        for plugin in instances:
            logger.info("Loaded plugin '%s' from %s", plugin.name, path.name)
        return instances


def find_plugin(catalog: Sequence[FuzzerPlugin], name: str) -> FuzzerPlugin:
    """Return the first plugin whose name matches exactly.

    Raises:
        ModuleNotFoundError: no plugin carries that name.
    """
    for plugin in catalog:
        if plugin.name == name:
            return plugin
    raise ModuleNotFoundError(f"Couldn't find {name} module!")


def catalog_checksum(paths: Iterable[Path]) -> str:
    """Compute SHA-256 checksum over the given plugin files."""
    hasher = hashlib.sha256()
    for path in sorted(paths):
        hasher.update(path.read_bytes())
    return hasher.hexdigest()


# ── Helpers ──────────────────────────────────────────────────────────────────


def _isolated_module_name(path: Path) -> str:
    digest = hashlib.sha256(str(path.resolve()).encode()).hexdigest()[:12]
    return f"plugfuzz_plugin_{path.stem}_{digest}"


def _import_isolated(path: Path) -> ModuleType:
    """Execute a plugin file as a standalone module."""
    mod_name = _isolated_module_name(path)
    try:
        spec = importlib.util.spec_from_file_location(mod_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"no loader for {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[mod_name] = module
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(mod_name, None)
        raise ModuleLoadError(f"Failed to load plugins from {path}: {e}!") from e
    return module


def _as_list(produced: object) -> list[object]:
    if isinstance(produced, (list, tuple)):
        return list(produced)
    return [produced]


def _public_names(module: ModuleType) -> list[str]:
    return sorted(name for name in vars(module) if not name.startswith("_"))
