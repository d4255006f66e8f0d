"""Roadmap executor: reconcile task records against artifacts and queue ready steps.

The decision step is a pure function (``plan_reconciliation``) over the task
records and artifact checks of one site. ``RoadmapExecutor`` loads that state,
applies the plan's deletions through the repository and enqueues the ready
steps through the injected queue. Because every decision is re-derived from
persisted state, a pass interrupted half-way is repaired by the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from site_lifecycle.roadmap.catalog import (
    ARTIFACT_ONLY_COMPLETION,
    PLANNED_LANE,
    ROADMAP,
    TaskSpec,
    check_catalog,
)
from site_lifecycle.roadmap.models import (
    LIVE_JOB_STATUSES,
    ArtifactCheck,
    BlockedTask,
    ExecutionMode,
    ExecutionResult,
    JobStatus,
    JobType,
    JobView,
    RequeuedTask,
    SiteSnapshot,
)
from site_lifecycle.roadmap.payloads import PayloadPreconditionError, build_payload
from site_lifecycle.roadmap.queue import JobQueue
from site_lifecycle.roadmap.repository import LifecycleRepository
from site_lifecycle.roadmap.validator import validate_site_artifacts
from site_lifecycle.storage.common import utc_now

logger = logging.getLogger(__name__)

DEFAULT_RUNNING_STALE_AFTER = timedelta(minutes=30)


class StepAction(str, Enum):
    SKIP = "skip"
    BLOCK = "block"
    ENQUEUE = "enqueue"


@dataclass(frozen=True, slots=True)
class StepDecision:
    """What the pass does with one roadmap step."""

    job_type: JobType
    action: StepAction
    waiting_for: tuple[JobType, ...] = ()
    placeholder_id: str | None = None


@dataclass(frozen=True, slots=True)
class RecordDeletion:
    """A task record removed before the roadmap walk."""

    job_type: JobType
    job_id: str
    reason: str

    def describe(self) -> str:
        return f"{self.job_type.value} ({self.reason})"


@dataclass(slots=True)
class ReconciliationPlan:
    """Explicit decision lists for one site and one pass."""

    truly_completed: frozenset[JobType]
    active_or_blocking: frozenset[JobType]
    requeued: list[RequeuedTask] = field(default_factory=list)
    retry_deletions: list[RecordDeletion] = field(default_factory=list)
    placeholder_deletions: list[RecordDeletion] = field(default_factory=list)
    steps: list[StepDecision] = field(default_factory=list)

    def steps_with(self, action: StepAction) -> list[StepDecision]:
        return [step for step in self.steps if step.action == action]


def _job_type(record: JobView) -> JobType | None:
    try:
        return JobType(record.job_type)
    except ValueError:
        return None


def _is_placeholder(record: JobView) -> bool:
    return record.lane == PLANNED_LANE


def _is_stale_running(record: JobView, *, now: datetime, stale_after: timedelta) -> bool:
    started = record.started_at or record.created_at
    return now - started > stale_after


def plan_reconciliation(  # noqa: C901
    records: Sequence[JobView],
    validations: dict[JobType, ArtifactCheck],
    *,
    mode: ExecutionMode,
    now: datetime,
    running_stale_after: timedelta = DEFAULT_RUNNING_STALE_AFTER,
    roadmap: tuple[TaskSpec, ...] = ROADMAP,
) -> ReconciliationPlan:
    """Decide deletions and per-step actions without touching storage."""

    def _valid(job_type: JobType) -> bool:
        check = validations.get(job_type)
        return check is not None and check.valid

    typed: list[tuple[JobType, JobView]] = []
    for record in records:
        known = _job_type(record)
        if known is not None:
            typed.append((known, record))

    truly_completed: set[JobType] = {
        job_type
        for job_type, record in typed
        if record.status == JobStatus.COMPLETED and not _is_placeholder(record) and _valid(job_type)
    }
    truly_completed.update(
        job_type for job_type in ARTIFACT_ONLY_COMPLETION if _valid(job_type)
    )

    deleted_ids: set[str] = set()
    requeued: list[RequeuedTask] = []
    for job_type, record in typed:
        if record.status != JobStatus.COMPLETED or _is_placeholder(record) or _valid(job_type):
            continue
        check = validations.get(job_type)
        reason = check.reason if check is not None and check.reason else "artifact missing"
        requeued.append(RequeuedTask(job_type=job_type, job_id=record.job_id, reason=reason))
        deleted_ids.add(record.job_id)

    roadmap_types = {spec.job_type for spec in roadmap}
    retry_deletions: list[RecordDeletion] = []
    if mode == ExecutionMode.MANUAL:
        # Only roadmap steps are re-queued below, so only they may be cleared.
        for job_type, record in typed:
            if _is_placeholder(record) or job_type not in roadmap_types:
                continue
            cause: str | None = None
            if record.status == JobStatus.FAILED:
                cause = "failed"
            elif record.status == JobStatus.PENDING:
                cause = "pending"
            elif record.status == JobStatus.RUNNING and _is_stale_running(
                record,
                now=now,
                stale_after=running_stale_after,
            ):
                cause = "stale running"
            if cause is not None:
                retry_deletions.append(
                    RecordDeletion(job_type=job_type, job_id=record.job_id, reason=cause),
                )
                deleted_ids.add(record.job_id)

    blocking_statuses = set(LIVE_JOB_STATUSES)
    if mode == ExecutionMode.AUTONOMOUS:
        blocking_statuses.add(JobStatus.FAILED)
    active_or_blocking = {
        job_type
        for job_type, record in typed
        if not _is_placeholder(record)
        and record.job_id not in deleted_ids
        and record.status in blocking_statuses
    }

    # A placeholder and a live record for the same type are mutually exclusive.
    live_types = {
        job_type
        for job_type, record in typed
        if not _is_placeholder(record)
        and record.job_id not in deleted_ids
        and record.status in LIVE_JOB_STATUSES
    }

    placeholder_deletions: list[RecordDeletion] = []
    placeholders: dict[JobType, str] = {}
    for job_type, record in typed:
        if not _is_placeholder(record):
            continue
        drop_reason: str | None = None
        if job_type in truly_completed:
            drop_reason = "placeholder for completed task"
        elif job_type in live_types:
            drop_reason = "placeholder for active task"
        if drop_reason is not None:
            placeholder_deletions.append(
                RecordDeletion(job_type=job_type, job_id=record.job_id, reason=drop_reason),
            )
        else:
            placeholders[job_type] = record.job_id

    steps: list[StepDecision] = []
    for spec in roadmap:
        job_type = spec.job_type
        if job_type in truly_completed or job_type in active_or_blocking:
            steps.append(StepDecision(job_type=job_type, action=StepAction.SKIP))
            continue
        unmet = tuple(
            other.job_type
            for other in roadmap
            if other.job_type in spec.depends_on and other.job_type not in truly_completed
        )
        if unmet:
            steps.append(
                StepDecision(job_type=job_type, action=StepAction.BLOCK, waiting_for=unmet),
            )
            continue
        steps.append(
            StepDecision(
                job_type=job_type,
                action=StepAction.ENQUEUE,
                placeholder_id=placeholders.get(job_type),
            ),
        )

    return ReconciliationPlan(
        truly_completed=frozenset(truly_completed),
        active_or_blocking=frozenset(active_or_blocking),
        requeued=requeued,
        retry_deletions=retry_deletions,
        placeholder_deletions=placeholder_deletions,
        steps=steps,
    )


def summarize(*, requeued: int, queued: int, blocked: int) -> str:
    messages: list[str] = []
    if requeued:
        messages.append(f"Cleaned up {requeued} invalid job(s)")
    if queued:
        messages.append(f"Queued {queued} task(s) for execution")
    if not messages:
        if blocked:
            messages.append("No tasks could be queued - check blocked tasks for dependencies")
        else:
            messages.append("All tasks are already completed or in progress")
    return ". ".join(messages)


class RoadmapExecutor:
    """Apply reconciliation plans for one site at a time."""

    def __init__(
        self,
        repository: LifecycleRepository,
        queue: JobQueue,
        *,
        roadmap: tuple[TaskSpec, ...] = ROADMAP,
        running_stale_after: timedelta = DEFAULT_RUNNING_STALE_AFTER,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        check_catalog(roadmap)
        self.repository = repository
        self.queue = queue
        self.roadmap = roadmap
        self.running_stale_after = running_stale_after
        self.clock = clock

    def execute(
        self,
        site_id: str,
        *,
        mode: ExecutionMode = ExecutionMode.AUTONOMOUS,
    ) -> ExecutionResult:
        """Run one reconciliation pass for ``site_id``.

        Storage errors propagate to the caller; the scheduler collects them
        per site.
        """

        snapshot = self.repository.load_site_snapshot(site_id)
        if snapshot.site is None:
            raise RuntimeError(f"Site not found: {site_id}")

        records = self.repository.list_site_jobs(site_id)
        plan = plan_reconciliation(
            records,
            validate_site_artifacts(snapshot),
            mode=mode,
            now=self.clock(),
            running_stale_after=self.running_stale_after,
            roadmap=self.roadmap,
        )

        result = ExecutionResult(site_id=site_id, mode=mode)

        for task in plan.requeued:
            logger.warning(
                "Site %s: %s marked completed but artifact missing (%s); re-queueing",
                site_id,
                task.job_type.value,
                task.reason,
            )
            self.repository.delete_job(task.job_id)
            result.requeued.append(task)

        for deletion in [*plan.retry_deletions, *plan.placeholder_deletions]:
            if self.repository.delete_job(deletion.job_id):
                result.cleaned.append(deletion.describe())

        for step in plan.steps:
            if step.action == StepAction.SKIP:
                result.skipped.append(step.job_type)
            elif step.action == StepAction.BLOCK:
                result.blocked.append(
                    BlockedTask(
                        job_type=step.job_type,
                        reason="waiting for: "
                        + ", ".join(job_type.value for job_type in step.waiting_for),
                        waiting_for=step.waiting_for,
                    ),
                )
            else:
                self._enqueue_step(step=step, snapshot=snapshot, result=result)

        result.message = summarize(
            requeued=len(result.requeued),
            queued=len(result.queued),
            blocked=len(result.blocked),
        )
        logger.info("Site %s (%s pass): %s", site_id, mode.value, result.message)
        return result

    def retry(self, site_id: str) -> ExecutionResult:
        """Manual retry: clear failed, pending and stale records, then re-run."""

        return self.execute(site_id, mode=ExecutionMode.MANUAL)

    def _enqueue_step(
        self,
        *,
        step: StepDecision,
        snapshot: SiteSnapshot,
        result: ExecutionResult,
    ) -> None:
        try:
            payload = build_payload(snapshot, step.job_type)
        except PayloadPreconditionError as error:
            logger.info(
                "Site %s: %s not ready: %s",
                snapshot.site_id,
                step.job_type.value,
                error,
            )
            result.blocked.append(BlockedTask(job_type=step.job_type, reason=f"error: {error}"))
            return

        try:
            if step.placeholder_id is not None:
                self.repository.delete_job(step.placeholder_id)
            self.queue.enqueue(step.job_type, payload)
        except Exception as error:  # noqa: BLE001
            logger.exception(
                "Site %s: failed to queue %s",
                snapshot.site_id,
                step.job_type.value,
            )
            result.blocked.append(BlockedTask(job_type=step.job_type, reason=f"error: {error}"))
            return
        result.queued.append(step.job_type)
