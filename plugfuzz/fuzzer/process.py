"""Bounded-wait execution of a target program.

:func:`run_target` spawns the target without a shell, waits up to a fixed
timeout and returns either :class:`Completed` or :class:`TimedOut`.  On
timeout the whole process group is killed before returning, so callers
never see a live child.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

from plugfuzz.core.errors import TargetLaunchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 3.0

#: How long to drain the pipes of a killed target before giving up on them.
REAP_GRACE_SEC = 1.0

_POSIX = hasattr(os, "killpg")


@dataclass(frozen=True)
class Completed:
    """Target exited within the timeout."""
    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    duration_ms: float = 0.0

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def failed(self) -> bool:
        """Anything on stderr, or death by signal, counts as a failure."""
        return bool(self.stderr_text.strip()) or self.exit_code < 0


@dataclass(frozen=True)
class TimedOut:
    """Target exceeded the timeout and was killed."""
    timeout_sec: float


ProcessOutcome = Union[Completed, TimedOut]


def run_target(cmd: Sequence[str], timeout: float = DEFAULT_TIMEOUT_SEC) -> ProcessOutcome:
    """Run ``cmd`` and wait at most ``timeout`` seconds.

    Raises:
        TargetLaunchError: the executable could not be started.
    """
    kwargs: dict = {}
    if _POSIX:
        kwargs["start_new_session"] = True
    elif hasattr(subprocess, "CREATE_NO_WINDOW"):
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

    start = time.monotonic()
    try:
        proc = subprocess.Popen(
            list(cmd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **kwargs,
        )
    except OSError as e:
        raise TargetLaunchError(f"Failed to start target {cmd[0]!r}: {e}") from e

    try:
        out, err = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_tree(proc)
        _reap(proc)
        return TimedOut(timeout_sec=timeout)

    return Completed(
        exit_code=proc.returncode,
        stdout=out or b"",
        stderr=err or b"",
        duration_ms=(time.monotonic() - start) * 1000,
    )


def _kill_tree(proc: subprocess.Popen) -> None:
    """Forcibly terminate the process and everything it spawned."""
    if _POSIX:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError as e:
            logger.debug("killpg(%d) refused: %s; killing leader only", proc.pid, e)
    proc.kill()


def _reap(proc: subprocess.Popen) -> None:
    """Collect a killed target without waiting on descendants that escaped its group."""
    try:
        proc.communicate(timeout=REAP_GRACE_SEC)
    except subprocess.TimeoutExpired:
        logger.debug("Target %d left descendants holding its pipes; closing them", proc.pid)
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                stream.close()
        proc.wait()
