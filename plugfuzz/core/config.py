"""Core configuration for the fuzzing engine.

Two layers:

* :class:`Settings` — process-level knobs read from ``PLUGFUZZ_*``
  environment variables (log level, environment, config file path).
* :class:`EngineConfig` — the run configuration document (``config.json``)
  describing the cache directory, plugin location and worker pool size.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from plugfuzz.core.errors import MissingConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PLUGFUZZ_",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    config_file: str = "config.json"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()


class EngineConfig(BaseModel):
    """Run configuration, loaded once and never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cache_dir_location: str | None = Field(default=None, alias="cacheDirLocation")
    cache_dir_name: str = Field(alias="cacheDirName")
    plugins_location: str = Field(alias="pluginsLocation")
    amount_of_threads: int = Field(alias="amountOfThreads", ge=1)
    amount_of_execution_per_thread: int = Field(alias="amountOfExecutionPerThread", ge=1)

    def cache_dir_path(self) -> Path | None:
        """Resolve the cache directory, or ``None`` when caching is disabled."""
        location = (self.cache_dir_location or "").strip()
        name = (self.cache_dir_name or "").strip()
        if not location and not name:
            return None
        base = Path(location) if location else Path(os.getcwd())
        return base / name


def parse_engine_config(data: Any, source: str = "<config>") -> EngineConfig:
    """Validate an already-decoded configuration mapping."""
    if not isinstance(data, dict):
        raise MissingConfigurationError(
            f"Configuration {source} is corrupted: expected a mapping",
        )
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        fields = [
            ".".join(str(part) for part in err["loc"]) or "<root>"
            for err in e.errors()
        ]
        raise MissingConfigurationError(
            f"Configuration {source} is corrupted; invalid or missing fields: {', '.join(fields)}",
            details=[err["msg"] for err in e.errors()],
        ) from e


def load_engine_config(path: str | Path) -> EngineConfig:
    """Read and validate the run configuration file.

    The document is JSON; YAML is accepted too since it is a superset.

    Raises:
        MissingConfigurationError: the file is missing, unparsable or
            lacks required fields.
    """
    path = Path(path)
    if not path.is_file():
        raise MissingConfigurationError(f"Configuration file '{path}' is missing!")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise MissingConfigurationError(
            f"Configuration file '{path}' is corrupted: {e}",
        ) from e

    return parse_engine_config(data, source=f"'{path}'")
