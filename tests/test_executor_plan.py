from __future__ import annotations

from datetime import timedelta

import allure
import pytest

from conftest import job_view
from site_lifecycle.roadmap.catalog import PLANNED_LANE, ROADMAP
from site_lifecycle.roadmap.executor import StepAction, plan_reconciliation, summarize
from site_lifecycle.roadmap.models import ArtifactCheck, ExecutionMode, JobStatus, JobType
from site_lifecycle.storage.common import utc_now

pytestmark = [
    allure.epic("Site Roadmap"),
    allure.feature("Reconciliation Planning"),
]


def _validations(*valid: JobType) -> dict[JobType, ArtifactCheck]:
    return {
        job_type: ArtifactCheck(valid=True)
        if job_type in valid
        else ArtifactCheck(valid=False, reason=f"no artifact for {job_type.value}")
        for job_type in JobType
    }


def _actions(plan) -> dict[JobType, StepAction]:
    return {step.job_type: step.action for step in plan.steps}


def test_fresh_site_enqueues_only_root_steps() -> None:
    plan = plan_reconciliation([], _validations(), mode=ExecutionMode.AUTONOMOUS, now=utc_now())

    enqueued = [step.job_type for step in plan.steps_with(StepAction.ENQUEUE)]
    assert enqueued == [JobType.CONTENT_GENERATE, JobType.DOMAIN_REGISTER]
    blocked = {step.job_type: step.waiting_for for step in plan.steps_with(StepAction.BLOCK)}
    assert blocked[JobType.CONTENT_OPTIMIZE] == (JobType.CONTENT_GENERATE,)
    assert blocked[JobType.DOMAIN_VERIFY] == (JobType.DOMAIN_REGISTER,)
    assert blocked[JobType.SITE_DEPLOY] == (JobType.CONTENT_REVIEW, JobType.SSL_PROVISION)


def test_steps_partition_the_roadmap() -> None:
    records = [
        job_view(JobType.CONTENT_GENERATE, JobStatus.COMPLETED),
        job_view(JobType.DOMAIN_REGISTER, JobStatus.RUNNING),
    ]
    plan = plan_reconciliation(
        records,
        _validations(JobType.CONTENT_GENERATE),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert [step.job_type for step in plan.steps] == [spec.job_type for spec in ROADMAP]
    actions = _actions(plan)
    assert actions[JobType.CONTENT_GENERATE] == StepAction.SKIP
    assert actions[JobType.DOMAIN_REGISTER] == StepAction.SKIP
    assert actions[JobType.CONTENT_OPTIMIZE] == StepAction.ENQUEUE
    assert actions[JobType.DOMAIN_VERIFY] == StepAction.BLOCK


def test_completed_record_with_missing_artifact_is_requeued() -> None:
    record = job_view(JobType.CONTENT_GENERATE, JobStatus.COMPLETED, job_id="stale-content")
    plan = plan_reconciliation(
        [record],
        _validations(),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert [task.job_id for task in plan.requeued] == ["stale-content"]
    assert plan.requeued[0].reason == "no artifact for CONTENT_GENERATE"
    assert JobType.CONTENT_GENERATE not in plan.truly_completed
    assert _actions(plan)[JobType.CONTENT_GENERATE] == StepAction.ENQUEUE
    assert _actions(plan)[JobType.CONTENT_OPTIMIZE] == StepAction.BLOCK


def test_domain_pipeline_counts_valid_artifact_without_record() -> None:
    plan = plan_reconciliation(
        [],
        _validations(JobType.DOMAIN_REGISTER, JobType.DOMAIN_VERIFY),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert {JobType.DOMAIN_REGISTER, JobType.DOMAIN_VERIFY} <= plan.truly_completed
    actions = _actions(plan)
    assert actions[JobType.DOMAIN_REGISTER] == StepAction.SKIP
    assert actions[JobType.SSL_PROVISION] == StepAction.ENQUEUE


def test_content_artifact_without_record_is_not_completion() -> None:
    plan = plan_reconciliation(
        [],
        _validations(JobType.CONTENT_GENERATE),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert JobType.CONTENT_GENERATE not in plan.truly_completed
    assert _actions(plan)[JobType.CONTENT_OPTIMIZE] == StepAction.BLOCK


def test_autonomous_mode_leaves_failed_records_alone() -> None:
    record = job_view(JobType.CONTENT_GENERATE, JobStatus.FAILED)
    plan = plan_reconciliation(
        [record],
        _validations(),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert plan.retry_deletions == []
    assert JobType.CONTENT_GENERATE in plan.active_or_blocking
    assert _actions(plan)[JobType.CONTENT_GENERATE] == StepAction.SKIP


def test_manual_mode_clears_failed_pending_and_stale_running() -> None:
    now = utc_now()
    records = [
        job_view(JobType.CONTENT_GENERATE, JobStatus.FAILED, job_id="failed"),
        job_view(JobType.DOMAIN_REGISTER, JobStatus.PENDING, job_id="pending"),
        job_view(
            JobType.CONTENT_OPTIMIZE,
            JobStatus.RUNNING,
            job_id="stale",
            started_at=now - timedelta(hours=2),
        ),
        job_view(
            JobType.DOMAIN_VERIFY,
            JobStatus.RUNNING,
            job_id="fresh",
            started_at=now - timedelta(minutes=5),
        ),
        job_view(JobType.SSL_PROVISION, JobStatus.PENDING, job_id="placeholder", lane=PLANNED_LANE),
    ]
    plan = plan_reconciliation(
        records,
        _validations(),
        mode=ExecutionMode.MANUAL,
        now=now,
        running_stale_after=timedelta(minutes=30),
    )

    deleted = {deletion.job_id: deletion.reason for deletion in plan.retry_deletions}
    assert deleted == {"failed": "failed", "pending": "pending", "stale": "stale running"}
    assert plan.active_or_blocking == {JobType.DOMAIN_VERIFY}
    actions = _actions(plan)
    assert actions[JobType.CONTENT_GENERATE] == StepAction.ENQUEUE
    assert actions[JobType.DOMAIN_REGISTER] == StepAction.ENQUEUE


def test_running_record_without_start_uses_creation_time() -> None:
    now = utc_now()
    record = job_view(
        JobType.CONTENT_GENERATE,
        JobStatus.RUNNING,
        created_at=now - timedelta(hours=1),
    )
    plan = plan_reconciliation(
        [record],
        _validations(),
        mode=ExecutionMode.MANUAL,
        now=now,
        running_stale_after=timedelta(minutes=30),
    )

    assert [deletion.reason for deletion in plan.retry_deletions] == ["stale running"]


def test_placeholders_are_replaced_or_dropped() -> None:
    records = [
        job_view(JobType.CONTENT_GENERATE, JobStatus.PENDING, job_id="ph-content", lane=PLANNED_LANE),
        job_view(JobType.DOMAIN_REGISTER, JobStatus.PENDING, job_id="ph-domain", lane=PLANNED_LANE),
    ]
    plan = plan_reconciliation(
        records,
        _validations(JobType.DOMAIN_REGISTER),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert [deletion.job_id for deletion in plan.placeholder_deletions] == ["ph-domain"]
    content_step = next(step for step in plan.steps if step.job_type == JobType.CONTENT_GENERATE)
    assert content_step.action == StepAction.ENQUEUE
    assert content_step.placeholder_id == "ph-content"
    # Placeholders never count as active work.
    assert plan.active_or_blocking == frozenset()


def test_unknown_job_types_are_ignored() -> None:
    record = job_view(JobType.CONTENT_GENERATE, JobStatus.RUNNING)
    record.job_type = "LEGACY_JOB"
    plan = plan_reconciliation([record], _validations(), mode=ExecutionMode.AUTONOMOUS, now=utc_now())

    assert _actions(plan)[JobType.CONTENT_GENERATE] == StepAction.ENQUEUE


def test_summary_messages() -> None:
    assert summarize(requeued=1, queued=2, blocked=3) == (
        "Cleaned up 1 invalid job(s). Queued 2 task(s) for execution"
    )
    assert summarize(requeued=0, queued=0, blocked=3) == (
        "No tasks could be queued - check blocked tasks for dependencies"
    )
    assert summarize(requeued=0, queued=0, blocked=0) == (
        "All tasks are already completed or in progress"
    )


def test_manual_mode_keeps_records_outside_the_roadmap() -> None:
    records = [
        job_view(JobType.SEO_AUTO_OPTIMIZE, JobStatus.FAILED, job_id="auto-optimize"),
        job_view(JobType.SOCIAL_POST_GENERATE, JobStatus.PENDING, job_id="social-post"),
        job_view(JobType.CONTENT_GENERATE, JobStatus.FAILED, job_id="content"),
    ]
    plan = plan_reconciliation(records, _validations(), mode=ExecutionMode.MANUAL, now=utc_now())

    assert [deletion.job_id for deletion in plan.retry_deletions] == ["content"]


def test_placeholder_next_to_live_record_is_dropped() -> None:
    records = [
        job_view(JobType.CONTENT_OPTIMIZE, JobStatus.PENDING, job_id="ph-optimize", lane=PLANNED_LANE),
        job_view(JobType.CONTENT_OPTIMIZE, JobStatus.PENDING, job_id="live-optimize"),
        job_view(JobType.CONTENT_REVIEW, JobStatus.PENDING, job_id="ph-review", lane=PLANNED_LANE),
    ]
    plan = plan_reconciliation(
        records,
        _validations(JobType.CONTENT_GENERATE),
        mode=ExecutionMode.AUTONOMOUS,
        now=utc_now(),
    )

    assert [(item.job_id, item.reason) for item in plan.placeholder_deletions] == [
        ("ph-optimize", "placeholder for active task"),
    ]
    assert _actions(plan)[JobType.CONTENT_OPTIMIZE] == StepAction.SKIP


def test_manual_retry_keeps_placeholder_of_cleared_record() -> None:
    records = [
        job_view(JobType.CONTENT_GENERATE, JobStatus.PENDING, job_id="ph-content", lane=PLANNED_LANE),
        job_view(JobType.CONTENT_GENERATE, JobStatus.PENDING, job_id="live-content"),
    ]
    plan = plan_reconciliation(records, _validations(), mode=ExecutionMode.MANUAL, now=utc_now())

    assert plan.placeholder_deletions == []
    content_step = next(step for step in plan.steps if step.job_type == JobType.CONTENT_GENERATE)
    assert content_step.action == StepAction.ENQUEUE
    assert content_step.placeholder_id == "ph-content"


@pytest.mark.parametrize(
    ("records", "valid"),
    [
        ([], ()),
        (
            [
                job_view(JobType.CONTENT_GENERATE, JobStatus.COMPLETED),
                job_view(JobType.DOMAIN_REGISTER, JobStatus.COMPLETED),
            ],
            (JobType.CONTENT_GENERATE,),
        ),
        (
            [
                job_view(JobType.CONTENT_GENERATE, JobStatus.COMPLETED),
                job_view(JobType.CONTENT_OPTIMIZE, JobStatus.COMPLETED),
                job_view(JobType.CONTENT_REVIEW, JobStatus.FAILED),
                job_view(JobType.GSC_SETUP, JobStatus.COMPLETED),
            ],
            (
                JobType.CONTENT_GENERATE,
                JobType.CONTENT_OPTIMIZE,
                JobType.DOMAIN_REGISTER,
                JobType.DOMAIN_VERIFY,
                JobType.SSL_PROVISION,
            ),
        ),
        (
            [
                job_view(JobType.CONTENT_GENERATE, JobStatus.COMPLETED),
                job_view(JobType.CONTENT_OPTIMIZE, JobStatus.COMPLETED),
                job_view(JobType.CONTENT_REVIEW, JobStatus.COMPLETED),
                job_view(JobType.GSC_SETUP, JobStatus.COMPLETED),
                job_view(JobType.GSC_VERIFY, JobStatus.RUNNING),
                job_view(JobType.SITE_DEPLOY, JobStatus.COMPLETED),
            ],
            tuple(JobType),
        ),
    ],
)
def test_enqueued_steps_have_every_dependency_truly_completed(records, valid) -> None:
    roadmap = {spec.job_type: spec for spec in ROADMAP}
    for mode in ExecutionMode:
        plan = plan_reconciliation(records, _validations(*valid), mode=mode, now=utc_now())

        for step in plan.steps_with(StepAction.ENQUEUE):
            assert roadmap[step.job_type].depends_on <= plan.truly_completed
        for step in plan.steps_with(StepAction.BLOCK):
            assert step.waiting_for
            assert not set(step.waiting_for) & plan.truly_completed
