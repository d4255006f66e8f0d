"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from site_lifecycle.roadmap.catalog import lane_for
from site_lifecycle.roadmap.models import (
    JobCreate,
    JobStatus,
    JobType,
    JobView,
    SiteCreate,
    SiteView,
)
from site_lifecycle.roadmap.repository import LifecycleRepository
from site_lifecycle.storage.common import utc_now


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[LifecycleRepository]:
    repo = LifecycleRepository(tmp_path / "lifecycle.db")
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def site(repository: LifecycleRepository) -> SiteView:
    return repository.create_site(SiteCreate(name="Lisbon Food Tours", site_id="site-1"))


class RecordingQueue:
    """In-memory queue that records enqueue calls."""

    def __init__(self, *, fail_for: set[JobType] | None = None) -> None:
        self.calls: list[tuple[JobType, dict[str, Any]]] = []
        self.fail_for = fail_for or set()

    def enqueue(self, job_type: JobType, payload: dict[str, Any]) -> str:
        if job_type in self.fail_for:
            raise ConnectionError("queue unavailable")
        self.calls.append((job_type, payload))
        return f"job-{len(self.calls)}"

    @property
    def job_types(self) -> list[JobType]:
        return [job_type for job_type, _ in self.calls]


def insert_record(
    repository: LifecycleRepository,
    *,
    site_id: str,
    job_type: JobType,
    status: JobStatus,
    started_at: datetime | None = None,
    error_summary: str | None = None,
) -> JobView:
    """Insert a real task record and move it into ``status`` like a handler would."""

    job = repository.insert_job(
        JobCreate(
            job_type=job_type,
            lane=lane_for(job_type),
            site_id=site_id,
            payload={"site_id": site_id},
        ),
    )
    if status == JobStatus.PENDING:
        return job
    if status in (JobStatus.SCHEDULED, JobStatus.RETRYING):
        _force(repository, job.job_id, status=status.value)
        return _reload(repository, job.job_id)

    assert repository.mark_job_running(job.job_id)
    if started_at is not None:
        _force(repository, job.job_id, started_at=started_at.replace(tzinfo=None))
    if status == JobStatus.COMPLETED:
        assert repository.mark_job_completed(job.job_id)
    elif status == JobStatus.FAILED:
        assert repository.mark_job_failed(job.job_id, error_summary=error_summary or "boom")
    return _reload(repository, job.job_id)


def _force(repository: LifecycleRepository, job_id: str, **values: Any) -> None:
    assignments = ", ".join(f"{name} = ?" for name in values)
    params = [
        value.strftime("%Y-%m-%d %H:%M:%S.%f") if isinstance(value, datetime) else value
        for value in values.values()
    ]
    repository._connection.execute(
        f"UPDATE site_jobs SET {assignments} WHERE job_id = ?",
        (*params, job_id),
    )
    repository._connection.commit()


def _reload(repository: LifecycleRepository, job_id: str) -> JobView:
    job = repository.get_job(job_id)
    assert job is not None
    return job


def job_view(
    job_type: JobType,
    status: JobStatus,
    *,
    job_id: str | None = None,
    lane: str | None = None,
    started_at: datetime | None = None,
    created_at: datetime | None = None,
) -> JobView:
    """Build a detached task record for pure planning tests."""

    now = utc_now()
    return JobView(
        job_id=job_id or f"{job_type.value.lower()}-{status.value}",
        site_id="site-1",
        job_type=job_type.value,
        lane=lane or lane_for(job_type),
        status=status,
        priority=5,
        attempts=1 if status != JobStatus.PENDING else 0,
        max_attempts=3,
        payload={"site_id": "site-1"},
        error_summary=None,
        scheduled_for=None,
        started_at=started_at,
        completed_at=None,
        created_at=created_at or now,
        updated_at=now,
    )
