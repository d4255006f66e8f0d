"""Operator view of a site's roadmap and placeholder initialization."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from site_lifecycle.roadmap.catalog import (
    ARTIFACT_ONLY_COMPLETION,
    PHASES,
    PLANNED_LANE,
    ROADMAP,
    PhaseSpec,
    TaskSpec,
)
from site_lifecycle.roadmap.models import ArtifactCheck, JobStatus, JobType, JobView
from site_lifecycle.roadmap.repository import LifecycleRepository
from site_lifecycle.roadmap.validator import ArtifactValidator

logger = logging.getLogger(__name__)

# Synthetic task states shown next to the queue statuses.
STATUS_PLANNED = "PLANNED"
STATUS_BLOCKED = "BLOCKED"
STATUS_INVALID = "INVALID"
STATUS_COMPLETED = "COMPLETED"


@dataclass(slots=True)
class TaskStatusView:
    job_type: JobType
    label: str
    description: str
    status: str
    validation_error: str | None = None
    waiting_for: tuple[JobType, ...] = ()
    job: JobView | None = None


@dataclass(slots=True)
class PhaseStatusView:
    key: str
    name: str
    description: str
    status: str
    completed: int
    total: int
    tasks: list[TaskStatusView] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        return _percentage(self.completed, self.total)


@dataclass(slots=True)
class SiteRoadmapView:
    site_id: str
    phases: list[PhaseStatusView]
    completed: int
    total: int
    invalid_tasks: int

    @property
    def percentage(self) -> int:
        return _percentage(self.completed, self.total)


def _percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(completed * 100 / total)


def _pick_record(records: Sequence[JobView]) -> JobView | None:
    """Prefer the newest real record over a placeholder."""

    real = [record for record in records if record.lane != PLANNED_LANE]
    if real:
        return max(real, key=lambda record: record.created_at)
    return records[0] if records else None


def _phase_status(tasks: Sequence[TaskStatusView]) -> str:
    statuses = [task.status for task in tasks]
    if any(status in (JobStatus.FAILED.value.upper(), STATUS_INVALID) for status in statuses):
        return "failed"
    if statuses and all(status == STATUS_COMPLETED for status in statuses):
        return "completed"
    if any(
        status in (JobStatus.RUNNING.value.upper(), STATUS_COMPLETED) for status in statuses
    ):
        return "in_progress"
    return "pending"


def build_site_roadmap(
    site_id: str,
    records: Sequence[JobView],
    validations: dict[JobType, ArtifactCheck],
    *,
    roadmap: tuple[TaskSpec, ...] = ROADMAP,
    phases: tuple[PhaseSpec, ...] = PHASES,
) -> SiteRoadmapView:
    """Compute effective per-task status grouped by phase.

    A COMPLETED record whose artifact check fails is reported as INVALID. A step
    without a real record is PLANNED, or BLOCKED while a dependency is not truly
    completed.
    """

    by_type: dict[str, list[JobView]] = {}
    for record in records:
        by_type.setdefault(record.job_type, []).append(record)

    def _valid(job_type: JobType) -> bool:
        check = validations.get(job_type)
        return check is not None and check.valid

    completed_types: set[JobType] = set()
    for spec in roadmap:
        has_completed = any(
            record.status == JobStatus.COMPLETED and record.lane != PLANNED_LANE
            for record in by_type.get(spec.job_type.value, [])
        )
        if _valid(spec.job_type) and (
            has_completed or spec.job_type in ARTIFACT_ONLY_COMPLETION
        ):
            completed_types.add(spec.job_type)

    task_views: dict[JobType, TaskStatusView] = {}
    for spec in roadmap:
        record = _pick_record(by_type.get(spec.job_type.value, []))
        check = validations.get(spec.job_type)
        view = TaskStatusView(
            job_type=spec.job_type,
            label=spec.label,
            description=spec.description,
            status=STATUS_PLANNED,
            job=record if record is not None and record.lane != PLANNED_LANE else None,
        )
        if spec.job_type in completed_types:
            view.status = STATUS_COMPLETED
        elif view.job is not None:
            if view.job.status == JobStatus.COMPLETED:
                view.status = STATUS_INVALID
                view.validation_error = check.reason if check is not None else None
                logger.warning(
                    "Site %s: %s marked completed but artifact validation failed: %s",
                    site_id,
                    spec.job_type.value,
                    view.validation_error,
                )
            else:
                view.status = view.job.status.value.upper()
        if view.status == STATUS_PLANNED:
            waiting_for = tuple(
                other.job_type
                for other in roadmap
                if other.job_type in spec.depends_on and other.job_type not in completed_types
            )
            if waiting_for:
                view.status = STATUS_BLOCKED
                view.waiting_for = waiting_for
        task_views[spec.job_type] = view

    phase_views: list[PhaseStatusView] = []
    for phase in phases:
        tasks = [task_views[spec.job_type] for spec in roadmap if spec.phase == phase.key]
        phase_views.append(
            PhaseStatusView(
                key=phase.key,
                name=phase.name,
                description=phase.description,
                status=_phase_status(tasks),
                completed=sum(1 for task in tasks if task.status == STATUS_COMPLETED),
                total=len(tasks),
                tasks=tasks,
            ),
        )

    all_tasks = list(task_views.values())
    return SiteRoadmapView(
        site_id=site_id,
        phases=phase_views,
        completed=sum(1 for task in all_tasks if task.status == STATUS_COMPLETED),
        total=len(all_tasks),
        invalid_tasks=sum(1 for task in all_tasks if task.status == STATUS_INVALID),
    )


class RoadmapStatusService:
    """Repository-backed roadmap view and initialization."""

    def __init__(
        self,
        repository: LifecycleRepository,
        *,
        roadmap: tuple[TaskSpec, ...] = ROADMAP,
    ) -> None:
        self.repository = repository
        self.roadmap = roadmap
        self.validator = ArtifactValidator(repository)

    def get_site_roadmap(self, site_id: str) -> SiteRoadmapView:
        if self.repository.get_site(site_id) is None:
            raise RuntimeError(f"Site not found: {site_id}")
        return build_site_roadmap(
            site_id,
            self.repository.list_site_jobs(site_id),
            self.validator.validate(site_id),
            roadmap=self.roadmap,
        )

    def initialize_site_roadmap(self, site_id: str) -> list[JobType]:
        """Create one planned placeholder per roadmap step without any record.

        Returns the job types a placeholder was created for; a second call
        creates nothing.
        """

        if self.repository.get_site(site_id) is None:
            raise RuntimeError(f"Site not found: {site_id}")

        created: list[JobType] = []
        for spec in self.roadmap:
            placeholder = self.repository.create_placeholder(
                site_id=site_id,
                job_type=spec.job_type,
                priority=spec.priority,
            )
            if placeholder is not None:
                created.append(spec.job_type)
        logger.info("Initialized roadmap for site %s: %d planned task(s)", site_id, len(created))
        return created
