"""Tests for the plugin loader.

Covers:
    - Discovery filtering (extension, private files, empty directories)
    - Factory-based instantiation and contract checks
    - Load failures surfaced as ModuleLoadError
    - Isolation between plugin files
    - Name resolution
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import ECHO_PLUGIN, SHIPPED_MODULES_DIR
from plugfuzz.core.errors import ModuleLoadError, ModuleNotFoundError
from plugfuzz.plugins.base import BaseFuzzerPlugin, FuzzerPlugin
from plugfuzz.plugins.loader import PluginLoader, catalog_checksum, find_plugin


class TestDiscovery:
    def test_missing_directory(self, tmp_path: Path):
        loader = PluginLoader(tmp_path / "nope")
        with pytest.raises(ModuleLoadError, match="not found"):
            loader.discover()

    def test_empty_directory_warns(self, plugins_dir: Path, caplog):
        loader = PluginLoader(plugins_dir)
        with caplog.at_level(logging.WARNING):
            assert loader.discover() == []
            assert loader.load_all() == []
        assert "No files found" in caplog.text

    def test_no_plugin_files_warns(self, plugins_dir: Path, caplog):
        (plugins_dir / "readme.txt").write_text("not a plugin")
        (plugins_dir / "plugin.dll").write_bytes(b"MZ")
        loader = PluginLoader(plugins_dir)
        with caplog.at_level(logging.WARNING):
            assert loader.discover() == []
        assert "No plugin files" in caplog.text

    def test_private_files_skipped(self, write_plugin, plugins_dir: Path):
        write_plugin("_helpers.py", "raise RuntimeError('must not be imported')\n")
        write_plugin("echo.py", ECHO_PLUGIN)
        loader = PluginLoader(plugins_dir)
        assert [p.name for p in loader.discover()] == ["echo.py"]


class TestLoading:
    def test_load_valid_plugin(self, write_plugin, plugins_dir: Path):
        write_plugin("echo.py", ECHO_PLUGIN)
        catalog = PluginLoader(plugins_dir).load_all()
        assert len(catalog) == 1
        plugin = catalog[0]
        assert plugin.name == "Echo"
        assert plugin.description == "Echo test plugin"
        assert isinstance(plugin, FuzzerPlugin)
        assert isinstance(plugin, BaseFuzzerPlugin)

    def test_factory_may_return_several(self, write_plugin, plugins_dir: Path):
        write_plugin("pair.py", """\
            from plugfuzz.plugins.base import BaseFuzzerPlugin

            class A(BaseFuzzerPlugin):
                name = "A"

            class B(BaseFuzzerPlugin):
                name = "B"

            def create_plugin():
                return [A(), B()]
        """)
        names = [p.name for p in PluginLoader(plugins_dir).load_all()]
        assert names == ["A", "B"]

    def test_import_failure(self, write_plugin, plugins_dir: Path):
        write_plugin("broken.py", "def create_plugin(:\n")
        with pytest.raises(ModuleLoadError, match="Failed to load plugins"):
            PluginLoader(plugins_dir).load_all()

    def test_missing_dependency(self, write_plugin, plugins_dir: Path):
        write_plugin("needs_dep.py", "import plugfuzz_no_such_dependency\n")
        with pytest.raises(ModuleLoadError) as exc_info:
            PluginLoader(plugins_dir).load_all()
        assert isinstance(exc_info.value.__cause__, ImportError)

    def test_missing_factory_lists_names(self, write_plugin, plugins_dir: Path):
        write_plugin("nofactory.py", """\
            class Something:
                pass

            def helper():
                pass
        """)
        with pytest.raises(ModuleLoadError) as exc_info:
            PluginLoader(plugins_dir).load_all()
        message = exc_info.value.message
        assert "create_plugin" in message
        assert "Something" in message
        assert "helper" in message

    def test_factory_returning_non_plugin(self, write_plugin, plugins_dir: Path):
        write_plugin("wrong.py", """\
            class NotAPlugin:
                name = "x"

            def create_plugin():
                return NotAPlugin()
        """)
        with pytest.raises(ModuleLoadError, match="no object implementing FuzzerPlugin"):
            PluginLoader(plugins_dir).load_all()

    def test_factory_raising(self, write_plugin, plugins_dir: Path):
        write_plugin("boom.py", """\
            def create_plugin():
                raise RuntimeError("boom")
        """)
        with pytest.raises(ModuleLoadError, match="boom"):
            PluginLoader(plugins_dir).load_all()

    def test_plugins_do_not_share_globals(self, write_plugin, plugins_dir: Path):
        write_plugin("echo.py", ECHO_PLUGIN)
        write_plugin("echo2.py", ECHO_PLUGIN.replace('HELPER = "echo"', 'HELPER = "other"')
                     .replace('name = "Echo"', 'name = "Echo2"'))
        first, second = PluginLoader(plugins_dir).load_all()
        first_globals = type(first).execute.__globals__
        second_globals = type(second).execute.__globals__
        assert first_globals["HELPER"] == "echo"
        assert second_globals["HELPER"] == "other"
        assert type(first).__module__ != type(second).__module__

    def test_loaded_files_and_checksum(self, write_plugin, plugins_dir: Path):
        path = write_plugin("echo.py", ECHO_PLUGIN)
        loader = PluginLoader(plugins_dir)
        loader.load_all()
        assert loader.loaded_files == [path]
        assert len(catalog_checksum(loader.loaded_files)) == 64

    def test_reloading_does_not_accumulate_files(self, write_plugin, plugins_dir: Path):
        path = write_plugin("echo.py", ECHO_PLUGIN)
        loader = PluginLoader(plugins_dir)
        loader.load_all()
        first = catalog_checksum(loader.loaded_files)
        loader.load_all()
        assert loader.loaded_files == [path]
        assert catalog_checksum(loader.loaded_files) == first

    def test_shipped_modules(self):
        names = {p.name for p in PluginLoader(SHIPPED_MODULES_DIR).load_all()}
        assert names == {"BitFlipFuzzer", "Fuzzer"}


class TestFindPlugin:
    def _catalog(self, write_plugin, plugins_dir: Path) -> list[FuzzerPlugin]:
        write_plugin("echo.py", ECHO_PLUGIN)
        write_plugin("echo_dup.py", ECHO_PLUGIN.replace("Echo test plugin", "Duplicate echo"))
        return PluginLoader(plugins_dir).load_all()

    def test_first_match_wins(self, write_plugin, plugins_dir: Path):
        catalog = self._catalog(write_plugin, plugins_dir)
        assert find_plugin(catalog, "Echo").description == "Echo test plugin"

    def test_match_is_case_sensitive(self, write_plugin, plugins_dir: Path):
        catalog = self._catalog(write_plugin, plugins_dir)
        with pytest.raises(ModuleNotFoundError, match="Couldn't find echo module"):
            find_plugin(catalog, "echo")
