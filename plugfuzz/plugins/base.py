"""Fuzzer plugin contract.

A plugin is a single Python file dropped into the plugins directory.  It
must expose a module-level factory::

    def create_plugin() -> FuzzerPlugin: ...

which returns one instance (or a list of instances) satisfying
:class:`FuzzerPlugin`.  The loader calls the factory; it never scans the
file for classes.
"""

from __future__ import annotations

import copy
import logging
from typing import Protocol, runtime_checkable

#: Name of the module-level factory every plugin file must define.
FACTORY_NAME = "create_plugin"

#: ``execute()`` status meaning "keep going".
STATUS_CONTINUE = 0


@runtime_checkable
class FuzzerPlugin(Protocol):
    """Protocol every fuzzer module must satisfy.

    Implementations must define:
        name: str — unique selection key (case-sensitive)
        description: str — human-readable description
        load_args(arg_string) — parse the module argument blob
        set_cache_dir(path) — receive the shared scratch directory
        execute() -> int — one fuzzing iteration, 0 to continue
        duplicate() -> FuzzerPlugin — independent copy for another worker
    """

    name: str
    description: str

    def load_args(self, arg_string: str) -> None:
        ...

    def set_cache_dir(self, path: str) -> None:
        ...

    def execute(self) -> int:
        ...

    def duplicate(self) -> FuzzerPlugin:
        ...


class BaseFuzzerPlugin:
    """Base class for fuzzer plugins.

    Stores the cache directory and implements :meth:`duplicate` as a deep
    copy, so subclasses that keep mutable buffers (seed bytes, counters)
    get isolated worker copies without extra work.
    """

    name: str = ""
    description: str = ""

    def __init__(self) -> None:
        self.cache_dir: str | None = None
        self.log = logging.getLogger(f"plugfuzz.plugin.{self.name or type(self).__name__}")

    def load_args(self, arg_string: str) -> None:
        """Parse the module argument blob.

        Raises:
            ModuleArgumentError: the blob is malformed or incomplete.
        """
        raise NotImplementedError

    def set_cache_dir(self, path: str) -> None:
        self.cache_dir = path

    def execute(self) -> int:
        """Run one fuzzing iteration.

        Returns:
            0 to continue, any other value to stop the calling worker.
        """
        raise NotImplementedError

    def duplicate(self) -> BaseFuzzerPlugin:
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
