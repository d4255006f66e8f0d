"""SQLModel-backed persistence facade for sites, domains, content and site jobs."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import func, or_
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, delete, select

from site_lifecycle.roadmap.models import (
    LIVE_JOB_STATUSES,
    ContentCreate,
    DomainCreate,
    DomainStatus,
    DomainView,
    JobCreate,
    JobStatus,
    JobType,
    JobView,
    SiteCreate,
    SiteSnapshot,
    SiteStatus,
    SiteView,
)
from site_lifecycle.storage.alembic_runner import upgrade_head
from site_lifecycle.storage.common import (
    build_sqlite_engine,
    connect_sqlite_with_policy,
    dump_json,
    load_json_object,
    optional_utc,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from site_lifecycle.storage.sqlmodel_models import (
    PLANNED_LANE,
    Domain,
    Site,
    SiteContent,
    SiteJob,
)

logger = logging.getLogger(__name__)

_SITE_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "status",
        "autonomous_processes_paused",
        "primary_domain",
        "gsc_property_url",
        "gsc_verified",
        "gsc_verified_at",
        "gsc_last_synced_at",
        "seo_config",
        "homepage_config",
    },
)
_DOMAIN_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "registrar",
        "cdn_zone_id",
        "ssl_enabled",
        "registered_at",
        "verified_at",
    },
)


class LifecycleRepository:
    """Persistence facade backed by SQLModel + SQLite."""

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)
        # Keep low-level connection for tests and ad-hoc debugging queries.
        self._connection = connect_sqlite_with_policy(
            db_path=db_path,
            busy_timeout_ms=sqlite_busy_timeout_ms,
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self._connection.close()
        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    # Sites

    def create_site(self, payload: SiteCreate) -> SiteView:
        now = utc_now()
        row = Site(
            site_id=payload.site_id or str(uuid4()),
            name=payload.name,
            status=payload.status.value,
            autonomous_processes_paused=False,
            seo_config_json=dump_json(payload.seo_config),
            homepage_config_json=dump_json(payload.homepage_config),
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_site_view(row)

    def get_site(self, site_id: str) -> SiteView | None:
        with Session(self.engine) as session:
            row = session.get(Site, site_id)
            return _to_site_view(row) if row is not None else None

    def update_site(self, site_id: str, **changes: Any) -> SiteView:
        """Patch gating-relevant site fields."""

        unknown = set(changes) - _SITE_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported site fields: {', '.join(sorted(unknown))}")

        with Session(self.engine) as session:
            row = session.get(Site, site_id)
            if row is None:
                raise RuntimeError(f"Site not found: {site_id}")
            for name, value in changes.items():
                if name == "status":
                    row.status = SiteStatus(value).value
                elif name == "seo_config":
                    row.seo_config_json = dump_json(value)
                elif name == "homepage_config":
                    row.homepage_config_json = dump_json(value)
                elif isinstance(value, datetime):
                    setattr(row, name, to_db_datetime(value))
                else:
                    setattr(row, name, value)
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_site_view(row)

    def list_sites(self, *, limit: int = 100) -> list[SiteView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(Site).order_by(col(Site.created_at).asc()).limit(limit),
            ).all()
        return [_to_site_view(row) for row in rows]

    def list_schedulable_sites(self, *, excluded_statuses: Iterable[SiteStatus]) -> list[SiteView]:
        """Sites the autonomous pass may act on: not paused and not out of scope."""

        excluded = [status.value for status in excluded_statuses]
        with Session(self.engine) as session:
            rows = session.exec(
                select(Site)
                .where(
                    col(Site.autonomous_processes_paused).is_(False),
                    col(Site.status).not_in(excluded),
                )
                .order_by(col(Site.created_at).asc()),
            ).all()
        return [_to_site_view(row) for row in rows]

    # Domains

    def add_domain(self, payload: DomainCreate) -> DomainView:
        now = utc_now()
        row = Domain(
            domain_id=payload.domain_id or str(uuid4()),
            site_id=payload.site_id,
            domain=payload.domain,
            status=payload.status.value,
            registrar=payload.registrar,
            cdn_zone_id=payload.cdn_zone_id,
            ssl_enabled=payload.ssl_enabled,
            registered_at=(
                to_db_datetime(payload.registered_at) if payload.registered_at else None
            ),
            verified_at=to_db_datetime(payload.verified_at) if payload.verified_at else None,
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_domain_view(row)

    def update_domain(self, domain_id: str, **changes: Any) -> DomainView:
        unknown = set(changes) - _DOMAIN_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported domain fields: {', '.join(sorted(unknown))}")

        with Session(self.engine) as session:
            row = session.get(Domain, domain_id)
            if row is None:
                raise RuntimeError(f"Domain not found: {domain_id}")
            for name, value in changes.items():
                if name == "status":
                    row.status = DomainStatus(value).value
                elif isinstance(value, datetime):
                    setattr(row, name, to_db_datetime(value))
                else:
                    setattr(row, name, value)
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_domain_view(row)

    def list_domains(self, site_id: str) -> list[DomainView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(Domain)
                .where(Domain.site_id == site_id)
                .order_by(col(Domain.created_at).asc()),
            ).all()
        return [_to_domain_view(row) for row in rows]

    # Content

    def add_content(self, payload: ContentCreate) -> str:
        content_id = str(uuid4())
        with Session(self.engine) as session:
            session.add(
                SiteContent(
                    content_id=content_id,
                    site_id=payload.site_id,
                    title=payload.title,
                    content_type=payload.content_type,
                    is_ai_generated=payload.is_ai_generated,
                    created_at=utc_now(),
                ),
            )
            session.commit()
        return content_id

    def count_ai_content(self, site_id: str) -> int:
        with Session(self.engine) as session:
            return self._count_ai_content(session=session, site_id=site_id)

    def load_site_snapshot(self, site_id: str) -> SiteSnapshot:
        """Read site, domains and AI content count in one session."""

        with Session(self.engine) as session:
            site = session.get(Site, site_id)
            if site is None:
                return SiteSnapshot(site_id=site_id, site=None)
            domains = session.exec(
                select(Domain)
                .where(Domain.site_id == site_id)
                .order_by(col(Domain.created_at).asc()),
            ).all()
            return SiteSnapshot(
                site_id=site_id,
                site=_to_site_view(site),
                domains=[_to_domain_view(row) for row in domains],
                ai_content_count=self._count_ai_content(session=session, site_id=site_id),
            )

    # Site jobs

    def list_site_jobs(self, site_id: str) -> list[JobView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(SiteJob)
                .where(SiteJob.site_id == site_id)
                .order_by(col(SiteJob.priority).asc(), col(SiteJob.created_at).asc()),
            ).all()
        return [_to_job_view(row) for row in rows]

    def list_jobs(
        self,
        *,
        site_id: str | None = None,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[JobView]:
        with Session(self.engine) as session:
            statement = select(SiteJob).order_by(col(SiteJob.created_at).desc()).limit(limit)
            if site_id is not None:
                statement = statement.where(SiteJob.site_id == site_id)
            if status is not None:
                statement = statement.where(SiteJob.status == status.value)
            rows = session.exec(statement).all()
        return [_to_job_view(row) for row in rows]

    def get_job(self, job_id: str) -> JobView | None:
        with Session(self.engine) as session:
            row = session.get(SiteJob, job_id)
            return _to_job_view(row) if row is not None else None

    def insert_job(self, payload: JobCreate) -> JobView:
        """Insert one task record; raises IntegrityError on a live duplicate."""

        now = utc_now()
        row = SiteJob(
            job_id=str(uuid4()),
            site_id=payload.site_id,
            job_type=payload.job_type.value,
            lane=payload.lane,
            status=payload.status.value,
            priority=payload.priority,
            attempts=0,
            max_attempts=payload.max_attempts,
            payload_json=dump_json(payload.payload),
            scheduled_for=(
                to_db_datetime(payload.scheduled_for) if payload.scheduled_for else None
            ),
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_job_view(row)

    def find_live_job(self, *, site_id: str, job_type: JobType) -> JobView | None:
        """Return the non-placeholder record currently owning (site, type), if any."""

        with Session(self.engine) as session:
            row = session.exec(
                select(SiteJob).where(
                    SiteJob.site_id == site_id,
                    SiteJob.job_type == job_type.value,
                    SiteJob.lane != PLANNED_LANE,
                    col(SiteJob.status).in_([status.value for status in LIVE_JOB_STATUSES]),
                ),
            ).first()
            return _to_job_view(row) if row is not None else None

    def create_placeholder(self, *, site_id: str, job_type: JobType, priority: int) -> JobView | None:
        """Create a planned placeholder unless any record for (site, type) exists."""

        with Session(self.engine) as session:
            existing = session.exec(
                select(SiteJob.job_id).where(
                    SiteJob.site_id == site_id,
                    SiteJob.job_type == job_type.value,
                ),
            ).first()
            if existing is not None:
                return None

        try:
            return self.insert_job(
                JobCreate(
                    job_type=job_type,
                    lane=PLANNED_LANE,
                    site_id=site_id,
                    status=JobStatus.PENDING,
                    priority=priority,
                    payload={"site_id": site_id, "planned": True},
                ),
            )
        except IntegrityError:
            return None

    def delete_job(self, job_id: str) -> bool:
        with Session(self.engine) as session:
            result = session.exec(delete(SiteJob).where(col(SiteJob.job_id) == job_id))
            session.commit()
            return result.rowcount == 1

    def delete_orphaned_placeholders(self, *, out_of_scope: Iterable[SiteStatus]) -> int:
        """Delete planned placeholders of sites that left orchestrator scope."""

        statuses = [status.value for status in out_of_scope]
        with Session(self.engine) as session:
            out_of_scope_sites = select(Site.site_id).where(col(Site.status).in_(statuses))
            result = session.exec(
                delete(SiteJob).where(
                    col(SiteJob.lane) == PLANNED_LANE,
                    or_(
                        col(SiteJob.site_id).is_(None),
                        col(SiteJob.site_id).in_(out_of_scope_sites),
                    ),
                ),
            )
            session.commit()
            return result.rowcount or 0

    def mark_job_running(self, job_id: str) -> bool:
        """Handler-side transition: queued record picked up by a worker."""

        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            row = session.get(SiteJob, job_id)
            if row is None:
                return False
            result = session.exec(
                sa_update(SiteJob)
                .where(
                    col(SiteJob.job_id) == job_id,
                    col(SiteJob.lane) != PLANNED_LANE,
                    col(SiteJob.status).in_(
                        [
                            JobStatus.PENDING.value,
                            JobStatus.SCHEDULED.value,
                            JobStatus.RETRYING.value,
                        ],
                    ),
                )
                .values(
                    status=JobStatus.RUNNING.value,
                    attempts=row.attempts + 1,
                    started_at=now,
                    completed_at=None,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def mark_job_completed(self, job_id: str) -> bool:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(SiteJob)
                .where(
                    col(SiteJob.job_id) == job_id,
                    col(SiteJob.status) == JobStatus.RUNNING.value,
                )
                .values(
                    status=JobStatus.COMPLETED.value,
                    completed_at=now,
                    error_summary=None,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def mark_job_failed(self, job_id: str, *, error_summary: str) -> bool:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(SiteJob)
                .where(
                    col(SiteJob.job_id) == job_id,
                    col(SiteJob.status) == JobStatus.RUNNING.value,
                )
                .values(
                    status=JobStatus.FAILED.value,
                    error_summary=error_summary,
                    completed_at=now,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def _count_ai_content(self, *, session: Session, site_id: str) -> int:
        count = session.exec(
            select(func.count())
            .select_from(SiteContent)
            .where(
                SiteContent.site_id == site_id,
                col(SiteContent.is_ai_generated).is_(True),
            ),
        ).one()
        return int(count)


def _to_site_view(row: Site) -> SiteView:
    return SiteView(
        site_id=row.site_id,
        name=row.name,
        status=SiteStatus(row.status),
        autonomous_processes_paused=bool(row.autonomous_processes_paused),
        primary_domain=row.primary_domain,
        gsc_property_url=row.gsc_property_url,
        gsc_verified=bool(row.gsc_verified),
        gsc_verified_at=optional_utc(row.gsc_verified_at),
        gsc_last_synced_at=optional_utc(row.gsc_last_synced_at),
        seo_config=load_json_object(row.seo_config_json),
        homepage_config=load_json_object(row.homepage_config_json),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_domain_view(row: Domain) -> DomainView:
    return DomainView(
        domain_id=row.domain_id,
        site_id=row.site_id,
        domain=row.domain,
        status=DomainStatus(row.status),
        registrar=row.registrar,
        cdn_zone_id=row.cdn_zone_id,
        ssl_enabled=bool(row.ssl_enabled),
        registered_at=optional_utc(row.registered_at),
        verified_at=optional_utc(row.verified_at),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_job_view(row: SiteJob) -> JobView:
    return JobView(
        job_id=row.job_id,
        site_id=row.site_id,
        job_type=row.job_type,
        lane=row.lane,
        status=JobStatus(row.status),
        priority=row.priority,
        attempts=row.attempts,
        max_attempts=row.max_attempts,
        payload=load_json_object(row.payload_json),
        error_summary=row.error_summary,
        scheduled_for=optional_utc(row.scheduled_for),
        started_at=optional_utc(row.started_at),
        completed_at=optional_utc(row.completed_at),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
