"""Engine — one end-to-end fuzzing run.

Loads the plugin catalog, resolves the requested module, fans out N
worker threads each holding its own ``duplicate()`` of the module, and
runs M iterations per worker.  Workers are joined with a single barrier
before the cache directory is cleaned up.

Architecture::

    Engine.run(argv)
     ├─ prepare_cache_dir()
     ├─ PluginLoader.load_all()      ──► catalog
     ├─ find_plugin(catalog, name)   ──► selected
     ├─ Worker-0  (selected.duplicate())
     ├─ …
     ├─ Worker-N  (selected.duplicate())
     └─ cleanup_cache_dir()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from plugfuzz.core.config import EngineConfig
from plugfuzz.core.errors import CacheDirectoryError, ModuleArgumentError, PlugfuzzError
from plugfuzz.core.logging import bind_worker_context, clear_worker_context
from plugfuzz.plugins.base import STATUS_CONTINUE, FuzzerPlugin
from plugfuzz.plugins.loader import PluginLoader, find_plugin

logger = logging.getLogger(__name__)

USAGE_HINT = "Call program with this pattern: plugfuzz <plugin.name> <plugin.args>"

#: Status recorded for a worker whose ``execute()`` raised.
STATUS_EXCEPTION = -99


class RunState(str, Enum):
    """Lifecycle of a single run."""
    IDLE = "idle"
    CONFIG_LOADED = "config_loaded"
    MODULES_DISCOVERED = "modules_discovered"
    CATALOG_PRINTED = "catalog_printed"
    MODULE_SELECTED = "module_selected"
    EXECUTING = "executing"
    CLEANUP = "cleanup"
    FINISHED = "finished"


class RunOutcome(str, Enum):
    """How a run ended."""
    COMPLETED = "completed"
    NO_MODULES = "no_modules"
    CATALOG_PRINTED = "catalog_printed"
    USAGE_ERROR = "usage_error"
    FAILED = "failed"


@dataclass
class WorkerResult:
    """What one worker did."""
    worker_id: int
    iterations: int = 0
    status: int = STATUS_CONTINUE

    @property
    def stopped_early(self) -> bool:
        return self.status != STATUS_CONTINUE


@dataclass
class RunReport:
    """Summary of a finished run."""
    state: RunState = RunState.IDLE
    outcome: RunOutcome | None = None
    module_name: str | None = None
    cache_dir: Path | None = None
    workers: list[WorkerResult] = field(default_factory=list)

    @property
    def total_iterations(self) -> int:
        return sum(w.iterations for w in self.workers)


class Engine:
    """Orchestrates discovery, selection, execution and cleanup.

    The configuration is passed in explicitly; the engine keeps no global
    state and can be driven several times.
    """

    def __init__(
        self,
        config: EngineConfig,
        loader: PluginLoader | None = None,
        output: Callable[[str], None] = print,
    ) -> None:
        self.config = config
        self.loader = loader or PluginLoader(config.plugins_location)
        self._output = output
        self.state = RunState.CONFIG_LOADED

    # ── Public API ───────────────────────────────────────────────────────

    def run(self, argv: Sequence[str]) -> RunReport:
        """Execute one run for the given positional arguments.

        Raises:
            PlugfuzzError: on any fatal discovery/selection error, after
                logging it.  Unexpected exceptions are logged the same way
                and re-raised unchanged.
        """
        self.state = RunState.CONFIG_LOADED
        report = RunReport(state=self.state)
        try:
            self._run(list(argv), report)
        except PlugfuzzError as e:
            logger.error("%s", e.message)
            report.outcome = RunOutcome.FAILED
            self._transition(report, RunState.FINISHED)
            raise
        except Exception:
            logger.exception("Run aborted in state %s", self.state.value)
            report.outcome = RunOutcome.FAILED
            self._transition(report, RunState.FINISHED)
            raise
        self._transition(report, RunState.FINISHED)
        logger.info("Finished ;)")
        return report

    def prepare_cache_dir(self) -> Path | None:
        """Create the cache directory if configured and missing.

        Raises:
            CacheDirectoryError: the path cannot be created, e.g. a file
                already sits there.
        """
        cache_dir = self.config.cache_dir_path()
        if cache_dir is None:
            logger.warning("Cache directory will not be used")
            return None
        if not cache_dir.is_dir():
            try:
                cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CacheDirectoryError(f"Cannot create cache directory {cache_dir}: {e}") from e
            logger.info("Created cache directory %s", cache_dir)
        return cache_dir

    @staticmethod
    def cleanup_cache_dir(cache_dir: Path | None) -> bool:
        """Delete ``cache_dir`` if it exists and is empty.

        Returns True when the directory was removed.  Never raises.
        """
        if cache_dir is None or not cache_dir.is_dir():
            return False
        try:
            if any(cache_dir.iterdir()):
                logger.info("Cache directory %s keeps retained artifacts", cache_dir)
                return False
            cache_dir.rmdir()
        except OSError as e:
            logger.warning("Failed to clean up cache directory %s: %s", cache_dir, e)
            return False
        logger.info("Cache directory is empty, deleted it")
        return True

    def print_catalog(self, catalog: Sequence[FuzzerPlugin]) -> None:
        logger.info("Installed plugins:")
        for plugin in catalog:
            self._output(f"{plugin.name}\t - {plugin.description}")
        logger.info(USAGE_HINT)

    # ── Internals ────────────────────────────────────────────────────────

    def _run(self, argv: list[str], report: RunReport) -> None:
        cache_dir = self.prepare_cache_dir()
        report.cache_dir = cache_dir

        catalog = self.loader.load_all()
        if not catalog:
            report.outcome = RunOutcome.NO_MODULES
            return
        self._transition(report, RunState.MODULES_DISCOVERED)

        if not argv:
            self.print_catalog(catalog)
            report.outcome = RunOutcome.CATALOG_PRINTED
            self._transition(report, RunState.CATALOG_PRINTED)
            return
        if len(argv) != 2:
            logger.error(
                "Not valid arguments! Run program without parameters to see "
                "available options or read docs!",
            )
            report.outcome = RunOutcome.USAGE_ERROR
            return

        name, module_args = argv
        selected = find_plugin(catalog, name)
        report.module_name = selected.name
        self._transition(report, RunState.MODULE_SELECTED)

        try:
            selected.load_args(module_args)
        except PlugfuzzError:
            raise
        except Exception as e:
            raise ModuleArgumentError(f"{selected.name} rejected its arguments: {e}") from e
        if cache_dir is not None:
            selected.set_cache_dir(str(cache_dir))

        self._transition(report, RunState.EXECUTING)
        report.workers = self._execute(selected)

        self._transition(report, RunState.CLEANUP)
        self.cleanup_cache_dir(cache_dir)
        report.outcome = RunOutcome.COMPLETED

    def _execute(self, selected: FuzzerPlugin) -> list[WorkerResult]:
        threads_count = self.config.amount_of_threads
        if threads_count <= 1:
            result = WorkerResult(worker_id=0)
            self._worker_loop(selected, result)
            return [result]

        results = [WorkerResult(worker_id=i) for i in range(threads_count)]
        threads = [
            threading.Thread(
                target=self._worker_loop,
                args=(selected.duplicate(), results[i]),
                name=f"fuzz-worker-{i}",
            )
            for i in range(threads_count)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _worker_loop(self, plugin: FuzzerPlugin, result: WorkerResult) -> None:
        """Call ``execute()`` up to M times, stopping on a non-zero status."""
        try:
            for i in range(self.config.amount_of_execution_per_thread):
                bind_worker_context(result.worker_id, i + 1)
                logger.info("Executing iteration")
                result.iterations += 1
                try:
                    status = plugin.execute()
                except Exception:
                    logger.exception("Fuzzer %s raised; stopping this worker", plugin.name)
                    result.status = STATUS_EXCEPTION
                    break
                if status != STATUS_CONTINUE:
                    logger.error("Fuzzer returned %d!", status)
                    result.status = status
                    break
        finally:
            clear_worker_context()

    def _transition(self, report: RunReport, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state
        report.state = state

