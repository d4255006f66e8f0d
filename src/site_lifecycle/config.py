"""Runtime configuration for the site lifecycle orchestrator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

ENV_PREFIX = "SITE_LIFECYCLE_"


@dataclass(slots=True)
class StorageSettings:
    """SQLite connection policy."""

    sqlite_busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class ExecutorSettings:
    """Roadmap executor settings."""

    running_stale_after_seconds: int = 1_800

    @property
    def running_stale_after(self) -> timedelta:
        return timedelta(seconds=self.running_stale_after_seconds)


@dataclass(slots=True)
class SchedulerSettings:
    """Autonomous scheduler cadence and lease settings."""

    interval_seconds: float = 300.0
    lease_ttl_seconds: float = 240.0
    lock_resource: str = "autonomous-roadmap"

    @property
    def lease_ttl(self) -> timedelta:
        return timedelta(seconds=self.lease_ttl_seconds)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".site_lifecycle.db")
    log_level: str = "INFO"
    storage: StorageSettings = field(default_factory=StorageSettings)
    executor: ExecutorSettings = field(default_factory=ExecutorSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(_env("DB_PATH", ".site_lifecycle.db")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            storage=StorageSettings(
                sqlite_busy_timeout_ms=int(_env("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            ),
            executor=ExecutorSettings(
                running_stale_after_seconds=int(_env("RUNNING_STALE_AFTER_SECONDS", "1800")),
            ),
            scheduler=SchedulerSettings(
                interval_seconds=float(_env("SCHEDULER_INTERVAL_SECONDS", "300")),
                lease_ttl_seconds=float(_env("SCHEDULER_LEASE_TTL_SECONDS", "240")),
                lock_resource=_env("SCHEDULER_LOCK_RESOURCE", "autonomous-roadmap").strip(),
            ),
        )

    def validate_for_executor(self) -> None:
        """Raise configuration error if executor settings are invalid."""

        if self.storage.sqlite_busy_timeout_ms <= 0:
            raise ValueError(f"{ENV_PREFIX}SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.executor.running_stale_after_seconds <= 0:
            raise ValueError(f"{ENV_PREFIX}RUNNING_STALE_AFTER_SECONDS must be > 0.")
        if logging.getLevelName(self.log_level) == f"Level {self.log_level}":
            raise ValueError(f"{ENV_PREFIX}LOG_LEVEL has unknown level: {self.log_level}")

    def validate_for_scheduler(self) -> None:
        """Raise configuration error if scheduler settings are invalid."""

        self.validate_for_executor()
        if self.scheduler.interval_seconds <= 0:
            raise ValueError(f"{ENV_PREFIX}SCHEDULER_INTERVAL_SECONDS must be > 0.")
        if self.scheduler.lease_ttl_seconds <= 0:
            raise ValueError(f"{ENV_PREFIX}SCHEDULER_LEASE_TTL_SECONDS must be > 0.")
        if self.scheduler.lease_ttl_seconds >= self.scheduler.interval_seconds:
            raise ValueError(
                f"{ENV_PREFIX}SCHEDULER_LEASE_TTL_SECONDS must be shorter than "
                f"{ENV_PREFIX}SCHEDULER_INTERVAL_SECONDS.",
            )
        if not self.scheduler.lock_resource:
            raise ValueError(f"{ENV_PREFIX}SCHEDULER_LOCK_RESOURCE must not be empty.")


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)
