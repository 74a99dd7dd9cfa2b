"""Centralized daemon configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files in the working directory: .env, .env.local

Command line flags do not mutate this instance; the CLI derives a copy with
`Settings.model_copy(update=...)` so the cached object stays a faithful view
of the environment.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cdispd.core.contracts.dispatch import CompareOptions, InvocationOptions

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed daemon configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `CDISPD_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    interval : float
        Seconds to wait between two polls of the snapshot source.
    cache_root : Path
        Directory holding `current.cid` and the `profile.<cid>.json` files.
    state_dir : Path | None
        Directory of per-component state markers. Markers are disabled when unset.
    journal_dir : Path | None
        Directory receiving one JSON record per executed cycle, if set.
    auto_register_component / auto_register_package : bool
        Whether a component implicitly subscribes to its own configuration
        path and to its package path.
    dry_run : bool
        Compute dispatch decisions but never run `ncd_command`.
    ncd_command, ncd_retries, ncd_timeout, ncd_useprofile
        Executable and pass-through options of the reconfiguration program.
    """

    environment: EnvName = Field(default="dev", alias="CDISPD_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")

    interval: float = Field(default=60.0, gt=0, alias="CDISPD_INTERVAL")
    cache_root: Path = Field(default=Path("/var/lib/ccm"), alias="CDISPD_CACHE_ROOT")
    state_dir: Path | None = Field(default=None, alias="CDISPD_STATE_DIR")
    journal_dir: Path | None = Field(default=None, alias="CDISPD_JOURNAL_DIR")

    auto_register_component: bool = Field(default=True, alias="CDISPD_AUTOREG_COMP")
    auto_register_package: bool = Field(default=True, alias="CDISPD_AUTOREG_PKG")
    dry_run: bool = Field(default=False, alias="CDISPD_NOACTION")

    ncd_command: str = Field(default="ncm-ncd", alias="CDISPD_NCD_COMMAND")
    ncd_retries: int | None = Field(default=None, ge=0, alias="CDISPD_NCD_RETRIES")
    ncd_timeout: int | None = Field(default=None, ge=0, alias="CDISPD_NCD_TIMEOUT")
    ncd_useprofile: str | None = Field(default=None, alias="CDISPD_NCD_USEPROFILE")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)

    def compare_options(self) -> CompareOptions:
        """Return the subscription toggles consumed by the diff engine."""
        return CompareOptions(
            auto_register_component_path=self.auto_register_component,
            auto_register_package_path=self.auto_register_package,
        )

    def invocation_options(self) -> InvocationOptions:
        """Return the pass-through options handed to the invoker."""
        return InvocationOptions(
            state_dir=self.state_dir,
            retries=self.ncd_retries,
            timeout=self.ncd_timeout,
            profile_id=self.ncd_useprofile,
            dry_run=self.dry_run,
        )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests (and the SIGHUP restart path)
    can force a rebuild via `load_settings.cache_clear()`.
    """
    os.environ.setdefault("CDISPD_ENV", "dev")
    return Settings()


settings: Settings = load_settings()


def get_logger(name: str = "cdispd") -> logging.Logger:
    """Return a process-global logger configured to the current log level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
