"""Controllers for site lifecycle CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from site_lifecycle.config import Settings
from site_lifecycle.roadmap.executor import RoadmapExecutor
from site_lifecycle.roadmap.leases import SqliteLeaseLock
from site_lifecycle.roadmap.models import (
    ExecutionMode,
    ExecutionResult,
    JobStatus,
    SiteCreate,
)
from site_lifecycle.roadmap.queue import RepositoryJobQueue
from site_lifecycle.roadmap.repository import LifecycleRepository
from site_lifecycle.roadmap.scheduler import AutonomousScheduler
from site_lifecycle.roadmap.status import RoadmapStatusService


@dataclass(slots=True)
class SiteAddCommand:
    """CLI input for site registration."""

    db_path: Path | None
    name: str
    site_id: str | None
    seo_config: str | None
    homepage_config: str | None


@dataclass(slots=True)
class SiteListCommand:
    db_path: Path | None
    limit: int


@dataclass(slots=True)
class SitePauseCommand:
    """CLI input for pausing or resuming autonomous processing."""

    db_path: Path | None
    site_id: str
    paused: bool


@dataclass(slots=True)
class RoadmapCommand:
    """CLI input for roadmap init/show/execute/retry."""

    db_path: Path | None
    site_id: str


@dataclass(slots=True)
class SchedulerRunCommand:
    """CLI input for the autonomous scheduler."""

    db_path: Path | None
    once: bool
    max_passes: int | None


@dataclass(slots=True)
class JobListCommand:
    db_path: Path | None
    site_id: str | None
    status: str | None
    limit: int


class LifecycleCliController:
    """Coordinates site, roadmap, scheduler and job CLI operations."""

    def add_site(self, command: SiteAddCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        payload = SiteCreate(
            name=command.name,
            site_id=command.site_id,
            seo_config=_parse_json_option("--seo-config", command.seo_config),
            homepage_config=_parse_json_option("--homepage-config", command.homepage_config),
        )
        with _repository(settings) as repository:
            site = repository.create_site(payload)
        return [f"Site registered: site_id={site.site_id} name={site.name} status={site.status.value}"]

    def list_sites(self, command: SiteListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            sites = repository.list_sites(limit=command.limit)

        if not sites:
            return ["No sites registered."]
        lines = [f"Sites: {len(sites)}"]
        for site in sites:
            paused = " paused" if site.autonomous_processes_paused else ""
            lines.append(
                f"- {site.site_id} name={site.name} status={site.status.value}"
                f" primary_domain={site.primary_domain or '-'}{paused}",
            )
        return lines

    def set_paused(self, command: SitePauseCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            site = repository.update_site(
                command.site_id,
                autonomous_processes_paused=command.paused,
            )
        state = "paused" if site.autonomous_processes_paused else "resumed"
        return [f"Autonomous processing {state} for site {site.site_id}"]

    def init_roadmap(self, command: RoadmapCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            created = RoadmapStatusService(repository).initialize_site_roadmap(command.site_id)
        if not created:
            return [f"Roadmap already initialized for site {command.site_id}"]
        return [
            f"Roadmap initialized for site {command.site_id}: {len(created)} planned task(s)",
            *[f"- {job_type.value}" for job_type in created],
        ]

    def show_roadmap(self, command: RoadmapCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            view = RoadmapStatusService(repository).get_site_roadmap(command.site_id)

        lines = [
            f"Roadmap for site {view.site_id}: {view.completed}/{view.total} completed "
            f"({view.percentage}%), invalid={view.invalid_tasks}",
        ]
        for phase in view.phases:
            lines.append(
                f"{phase.name} [{phase.status}] {phase.completed}/{phase.total} "
                f"({phase.percentage}%)",
            )
            for task in phase.tasks:
                detail = ""
                if task.waiting_for:
                    detail = " waiting for: " + ", ".join(item.value for item in task.waiting_for)
                elif task.validation_error:
                    detail = f" artifact: {task.validation_error}"
                elif task.job is not None and task.job.error_summary:
                    detail = f" error: {task.job.error_summary}"
                lines.append(f"  - {task.job_type.value}: {task.status}{detail}")
        return lines

    def execute_roadmap(
        self,
        command: RoadmapCommand,
        *,
        mode: ExecutionMode = ExecutionMode.AUTONOMOUS,
    ) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_executor()
        with _repository(settings) as repository:
            result = _executor(repository, settings).execute(command.site_id, mode=mode)
        return render_execution_result(result)

    def run_scheduler(self, command: SchedulerRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_scheduler()
        with _repository(settings) as repository:
            scheduler = AutonomousScheduler(
                repository=repository,
                executor=_executor(repository, settings),
                lock=SqliteLeaseLock(repository.engine),
                lock_resource=settings.scheduler.lock_resource,
                lease_ttl=settings.scheduler.lease_ttl,
                interval_seconds=settings.scheduler.interval_seconds,
            )
            if command.once:
                summary = scheduler.run_pass()
                lines = [
                    "Scheduler pass: "
                    f"lock_acquired={summary.lock_acquired} "
                    f"sites_processed={summary.sites_processed} "
                    f"tasks_queued={summary.tasks_queued} "
                    f"invalid_cleaned={summary.invalid_cleaned} "
                    f"placeholders_removed={summary.placeholders_removed} "
                    f"errors={len(summary.errors)}",
                ]
                lines.extend(f"- {error}" for error in summary.errors)
                return lines

            loop_summary = scheduler.run_loop(max_passes=command.max_passes)
        return [
            "Scheduler summary: "
            f"passes={loop_summary.passes} skipped_passes={loop_summary.skipped_passes} "
            f"sites_processed={loop_summary.sites_processed} "
            f"tasks_queued={loop_summary.tasks_queued} errors={loop_summary.errors}",
        ]

    def list_jobs(self, command: JobListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status_filter: JobStatus | None = None
        if command.status is not None:
            try:
                status_filter = JobStatus(command.status.lower())
            except ValueError as error:
                raise ValueError(f"Unsupported job status: {command.status!r}") from error

        with _repository(settings) as repository:
            jobs = repository.list_jobs(
                site_id=command.site_id,
                status=status_filter,
                limit=command.limit,
            )

        if not jobs:
            return ["No jobs found."]
        lines = [f"Jobs: {len(jobs)}"]
        for job in jobs:
            error = f" error={job.error_summary}" if job.error_summary else ""
            lines.append(
                f"- {job.job_id} site={job.site_id or '-'} type={job.job_type} "
                f"lane={job.lane} status={job.status.value} "
                f"attempts={job.attempts}/{job.max_attempts}{error}",
            )
        return lines


def render_execution_result(result: ExecutionResult) -> list[str]:
    lines = [f"Site {result.site_id} ({result.mode.value}): {result.message}"]
    if result.requeued:
        lines.append("Requeued: " + "; ".join(task.describe() for task in result.requeued))
    if result.cleaned:
        lines.append("Cleaned: " + "; ".join(result.cleaned))
    if result.queued:
        lines.append("Queued: " + ", ".join(job_type.value for job_type in result.queued))
    if result.skipped:
        lines.append("Skipped: " + ", ".join(job_type.value for job_type in result.skipped))
    if result.blocked:
        lines.append("Blocked: " + "; ".join(task.describe() for task in result.blocked))
    return lines


def _parse_json_option(option: str, raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as error:
        raise ValueError(f"{option} must be a JSON object: {error}") from error
    if not isinstance(parsed, dict):
        raise ValueError(f"{option} must be a JSON object.")
    return parsed


def _executor(repository: LifecycleRepository, settings: Settings) -> RoadmapExecutor:
    return RoadmapExecutor(
        repository=repository,
        queue=RepositoryJobQueue(repository),
        running_stale_after=settings.executor.running_stale_after,
    )


@contextmanager
def _repository(settings: Settings) -> Iterator[LifecycleRepository]:
    repository = LifecycleRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.storage.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
