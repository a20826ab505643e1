"""Exception taxonomy for the fuzzing engine.

Every fatal condition raised during configuration, discovery or module
selection derives from :class:`PlugfuzzError`, so the CLI can report it
uniformly.  Per-iteration target failures are never raised; fuzzer
modules log them and keep the offending artifact instead.
"""

from __future__ import annotations


class PlugfuzzError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, *, details: list[str] | None = None) -> None:
        self.message = message
        self.details = details or []
        super().__init__(message)


class MissingConfigurationError(PlugfuzzError):
    """The configuration file is absent or structurally invalid."""


class ModuleLoadError(PlugfuzzError):
    """A plugin file failed to import or exposes no conforming module."""


class ModuleNotFoundError(PlugfuzzError):  # noqa: A001
    """No loaded module matches the requested name."""


class ModuleArgumentError(PlugfuzzError):
    """A module rejected its argument blob."""


class TargetLaunchError(PlugfuzzError):
    """The target executable could not be spawned."""


class CacheDirectoryError(PlugfuzzError):
    """The cache directory could not be created."""
