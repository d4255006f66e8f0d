"""SQLModel ORM tables for site lifecycle storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, text
from sqlmodel import Field, SQLModel

PLANNED_LANE = "planned"
LIVE_JOB_STATUSES_SQL = "('pending', 'running', 'scheduled', 'retrying')"


class Site(SQLModel, table=True):
    __tablename__ = "sites"  # type: ignore[bad-override]

    site_id: str = Field(primary_key=True)
    name: str = Field(index=True)
    status: str = Field(index=True)
    autonomous_processes_paused: bool = Field(default=False, index=True)
    primary_domain: str | None = None
    gsc_property_url: str | None = None
    gsc_verified: bool = False
    gsc_verified_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    gsc_last_synced_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    seo_config_json: str | None = Field(default=None, sa_column=Column(Text))
    homepage_config_json: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Domain(SQLModel, table=True):
    __tablename__ = "domains"  # type: ignore[bad-override]

    domain_id: str = Field(primary_key=True)
    site_id: str = Field(
        sa_column=Column(
            ForeignKey("sites.site_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    domain: str = Field(unique=True)
    status: str = Field(index=True)
    registrar: str | None = None
    cdn_zone_id: str | None = None
    ssl_enabled: bool = False
    registered_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    verified_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class SiteContent(SQLModel, table=True):
    __tablename__ = "site_contents"  # type: ignore[bad-override]

    content_id: str = Field(primary_key=True)
    site_id: str = Field(
        sa_column=Column(
            ForeignKey("sites.site_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    title: str
    content_type: str = Field(index=True)
    is_ai_generated: bool = False
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class SiteJob(SQLModel, table=True):
    __tablename__ = "site_jobs"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_site_jobs_site_type", "site_id", "job_type"),
        Index(
            "uq_site_jobs_live_per_site_type",
            "site_id",
            "job_type",
            unique=True,
            sqlite_where=text(
                f"lane != '{PLANNED_LANE}' AND status IN {LIVE_JOB_STATUSES_SQL}",
            ),
        ),
        Index(
            "uq_site_jobs_planned_per_site_type",
            "site_id",
            "job_type",
            unique=True,
            sqlite_where=text(f"lane = '{PLANNED_LANE}'"),
        ),
    )

    job_id: str = Field(primary_key=True)
    site_id: str | None = Field(
        default=None,
        sa_column=Column(
            ForeignKey("sites.site_id", ondelete="CASCADE"),
            nullable=True,
        ),
    )
    job_type: str = Field(index=True)
    lane: str = Field(index=True)
    status: str = Field(index=True)
    priority: int = 5
    attempts: int = 0
    max_attempts: int = 3
    payload_json: str | None = Field(default=None, sa_column=Column(Text))
    error_summary: str | None = Field(default=None, sa_column=Column(Text))
    scheduled_for: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    started_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    completed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class OrchestratorLease(SQLModel, table=True):
    __tablename__ = "orchestrator_leases"  # type: ignore[bad-override]

    resource: str = Field(primary_key=True)
    holder_id: str
    acquired_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
