"""Shared fixtures for the plugfuzz test suite."""

from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable

import pytest

from plugfuzz.core.config import EngineConfig
from plugfuzz.modules import bitflip

#: Directory holding the plugins shipped with the package.
SHIPPED_MODULES_DIR = Path(bitflip.__file__).parent


# ── Target programs ──────────────────────────────────────────────────────────

PASSING_TARGET = """\
import sys
with open(sys.argv[1], "rb") as f:
    f.read()
"""

STDERR_TARGET = """\
import sys
sys.stderr.write("corrupt marker at offset 4\\n")
"""

HANGING_TARGET = """\
import time
time.sleep(30)
"""

SIGNAL_TARGET = """\
import os
import signal
os.kill(os.getpid(), signal.SIGSEGV)
"""

NONZERO_EXIT_TARGET = """\
import sys
sys.exit(3)
"""


@pytest.fixture
def write_script(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a Python target script and return its path."""

    def _write(name: str, body: str) -> Path:
        path = tmp_path / "targets" / name
        path.parent.mkdir(exist_ok=True)
        path.write_text(body)
        return path

    return _write


@pytest.fixture
def seed_file(tmp_path: Path) -> Path:
    """A 404-byte seed: 4 marker bytes followed by 400 payload bytes."""
    path = tmp_path / "sample.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0" + bytes(range(200)) * 2)
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


def harness_args(target_script: Path, seed: Path, **extra: Any) -> str:
    """Build a BitFlipFuzzer argument blob that runs a Python script."""
    blob = {
        "targetFileLocation": sys.executable,
        "targetArgs": [str(target_script)],
        "targetSampleDataLocation": str(seed),
    }
    blob.update(extra)
    return json.dumps(blob)


# ── Plugins ──────────────────────────────────────────────────────────────────


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    path = tmp_path / "plugins"
    path.mkdir()
    return path


@pytest.fixture
def write_plugin(plugins_dir: Path) -> Callable[[str, str], Path]:
    """Write a plugin file into the temporary plugins directory."""

    def _write(filename: str, source: str) -> Path:
        path = plugins_dir / filename
        path.write_text(textwrap.dedent(source))
        return path

    return _write


ECHO_PLUGIN = """\
from plugfuzz.plugins.base import BaseFuzzerPlugin

HELPER = "echo"


class Echo(BaseFuzzerPlugin):
    name = "Echo"
    description = "Echo test plugin"

    def load_args(self, arg_string):
        self.arg = arg_string

    def execute(self):
        return 0


def create_plugin():
    return Echo()
"""


# ── Configuration ────────────────────────────────────────────────────────────


@pytest.fixture
def make_config(tmp_path: Path, plugins_dir: Path) -> Callable[..., EngineConfig]:
    """Build an EngineConfig rooted in tmp_path; keyword overrides use aliases."""

    def _make(**overrides: Any) -> EngineConfig:
        data: dict[str, Any] = {
            "cacheDirLocation": str(tmp_path),
            "cacheDirName": "cache-run",
            "pluginsLocation": str(plugins_dir),
            "amountOfThreads": 1,
            "amountOfExecutionPerThread": 1,
        }
        data.update(overrides)
        return EngineConfig.model_validate(data)

    return _make
