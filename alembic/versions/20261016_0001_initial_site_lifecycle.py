"""Initial site lifecycle schema: sites, domains, content and site jobs."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261016_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sites",
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column(
            "autonomous_processes_paused",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("primary_domain", sa.String(), nullable=True),
        sa.Column("gsc_property_url", sa.String(), nullable=True),
        sa.Column("gsc_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("gsc_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("gsc_last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seo_config_json", sa.Text(), nullable=True),
        sa.Column("homepage_config_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("site_id"),
    )
    op.create_index("ix_sites_name", "sites", ["name"])
    op.create_index("ix_sites_status", "sites", ["status"])
    op.create_index(
        "ix_sites_autonomous_processes_paused",
        "sites",
        ["autonomous_processes_paused"],
    )

    op.create_table(
        "domains",
        sa.Column("domain_id", sa.String(), nullable=False),
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("domain", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("registrar", sa.String(), nullable=True),
        sa.Column("cdn_zone_id", sa.String(), nullable=True),
        sa.Column("ssl_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.site_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("domain_id"),
        sa.UniqueConstraint("domain"),
    )
    op.create_index("ix_domains_site_id", "domains", ["site_id"])
    op.create_index("ix_domains_status", "domains", ["status"])

    op.create_table(
        "site_contents",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("is_ai_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.site_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("content_id"),
    )
    op.create_index("ix_site_contents_site_id", "site_contents", ["site_id"])
    op.create_index("ix_site_contents_content_type", "site_contents", ["content_type"])

    op.create_table(
        "site_jobs",
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("site_id", sa.String(), nullable=True),
        sa.Column("job_type", sa.String(), nullable=False),
        sa.Column("lane", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("error_summary", sa.Text(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.site_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index("ix_site_jobs_job_type", "site_jobs", ["job_type"])
    op.create_index("ix_site_jobs_lane", "site_jobs", ["lane"])
    op.create_index("ix_site_jobs_status", "site_jobs", ["status"])
    op.create_index("idx_site_jobs_site_type", "site_jobs", ["site_id", "job_type"])
    op.create_index(
        "uq_site_jobs_live_per_site_type",
        "site_jobs",
        ["site_id", "job_type"],
        unique=True,
        sqlite_where=sa.text(
            "lane != 'planned' AND status IN ('pending', 'running', 'scheduled', 'retrying')",
        ),
    )
    op.create_index(
        "uq_site_jobs_planned_per_site_type",
        "site_jobs",
        ["site_id", "job_type"],
        unique=True,
        sqlite_where=sa.text("lane = 'planned'"),
    )


def downgrade() -> None:
    op.drop_index("uq_site_jobs_planned_per_site_type", table_name="site_jobs")
    op.drop_index("uq_site_jobs_live_per_site_type", table_name="site_jobs")
    op.drop_index("idx_site_jobs_site_type", table_name="site_jobs")
    op.drop_index("ix_site_jobs_status", table_name="site_jobs")
    op.drop_index("ix_site_jobs_lane", table_name="site_jobs")
    op.drop_index("ix_site_jobs_job_type", table_name="site_jobs")
    op.drop_table("site_jobs")
    op.drop_index("ix_site_contents_content_type", table_name="site_contents")
    op.drop_index("ix_site_contents_site_id", table_name="site_contents")
    op.drop_table("site_contents")
    op.drop_index("ix_domains_status", table_name="domains")
    op.drop_index("ix_domains_site_id", table_name="domains")
    op.drop_table("domains")
    op.drop_index("ix_sites_autonomous_processes_paused", table_name="sites")
    op.drop_index("ix_sites_status", table_name="sites")
    op.drop_index("ix_sites_name", table_name="sites")
    op.drop_table("sites")
