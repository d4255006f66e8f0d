from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import allure
import pytest

from site_lifecycle.config import SchedulerSettings, Settings, StorageSettings

pytestmark = [
    allure.epic("Site Roadmap"),
    allure.feature("Configuration"),
]


def test_defaults_are_valid_for_scheduler() -> None:
    settings = Settings()

    settings.validate_for_scheduler()

    assert settings.executor.running_stale_after == timedelta(minutes=30)
    assert settings.scheduler.lease_ttl == timedelta(minutes=4)
    assert settings.scheduler.lock_resource == "autonomous-roadmap"


def test_from_env_reads_prefixed_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SITE_LIFECYCLE_DB_PATH", "/tmp/sites.db")
    monkeypatch.setenv("SITE_LIFECYCLE_LOG_LEVEL", "debug")
    monkeypatch.setenv("SITE_LIFECYCLE_RUNNING_STALE_AFTER_SECONDS", "600")
    monkeypatch.setenv("SITE_LIFECYCLE_SCHEDULER_INTERVAL_SECONDS", "120")
    monkeypatch.setenv("SITE_LIFECYCLE_SCHEDULER_LEASE_TTL_SECONDS", "90")
    monkeypatch.setenv("SITE_LIFECYCLE_SCHEDULER_LOCK_RESOURCE", " roadmap-eu ")

    settings = Settings.from_env()

    assert settings.db_path == Path("/tmp/sites.db")
    assert settings.log_level == "DEBUG"
    assert settings.executor.running_stale_after == timedelta(minutes=10)
    assert settings.scheduler.interval_seconds == 120.0
    assert settings.scheduler.lease_ttl == timedelta(seconds=90)
    assert settings.scheduler.lock_resource == "roadmap-eu"


def test_explicit_db_path_wins_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SITE_LIFECYCLE_DB_PATH", "/tmp/sites.db")

    settings = Settings.from_env(db_path=Path("local.db"))

    assert settings.db_path == Path("local.db")


def test_lease_must_expire_before_next_pass() -> None:
    settings = Settings(
        scheduler=SchedulerSettings(interval_seconds=300.0, lease_ttl_seconds=300.0),
    )

    with pytest.raises(ValueError, match="must be shorter than"):
        settings.validate_for_scheduler()


def test_empty_lock_resource_is_rejected() -> None:
    settings = Settings(scheduler=SchedulerSettings(lock_resource=""))

    with pytest.raises(ValueError, match="LOCK_RESOURCE"):
        settings.validate_for_scheduler()


def test_non_positive_busy_timeout_is_rejected() -> None:
    settings = Settings(storage=StorageSettings(sqlite_busy_timeout_ms=0))

    with pytest.raises(ValueError, match="SQLITE_BUSY_TIMEOUT_MS"):
        settings.validate_for_executor()


def test_unknown_log_level_is_rejected() -> None:
    settings = Settings(log_level="CHATTY")

    with pytest.raises(ValueError, match="LOG_LEVEL"):
        settings.validate_for_executor()
