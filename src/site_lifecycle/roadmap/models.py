"""Domain models for the site lifecycle roadmap."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SiteStatus(str, Enum):
    """Platform-owned site lifecycle states."""

    DRAFT = "draft"
    REVIEW = "review"
    DNS_PENDING = "dns_pending"
    GSC_VERIFICATION = "gsc_verification"
    SSL_PENDING = "ssl_pending"
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


TERMINAL_SITE_STATUSES = frozenset({SiteStatus.ACTIVE, SiteStatus.PAUSED, SiteStatus.ARCHIVED})


class DomainStatus(str, Enum):
    REGISTERING = "registering"
    DNS_PENDING = "dns_pending"
    SSL_PENDING = "ssl_pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Task record states as reported by the job queue."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"
    SCHEDULED = "scheduled"


LIVE_JOB_STATUSES = frozenset(
    {JobStatus.PENDING, JobStatus.RUNNING, JobStatus.SCHEDULED, JobStatus.RETRYING},
)


class JobType(str, Enum):
    """Every job type the platform queue knows about."""

    SITE_CREATE = "SITE_CREATE"
    SITE_DEPLOY = "SITE_DEPLOY"
    CONTENT_GENERATE = "CONTENT_GENERATE"
    CONTENT_OPTIMIZE = "CONTENT_OPTIMIZE"
    CONTENT_REVIEW = "CONTENT_REVIEW"
    DOMAIN_REGISTER = "DOMAIN_REGISTER"
    DOMAIN_VERIFY = "DOMAIN_VERIFY"
    SSL_PROVISION = "SSL_PROVISION"
    GSC_SETUP = "GSC_SETUP"
    GSC_VERIFY = "GSC_VERIFY"
    GSC_SYNC = "GSC_SYNC"
    GA4_SETUP = "GA4_SETUP"
    GA4_DAILY_SYNC = "GA4_DAILY_SYNC"
    SEO_ANALYZE = "SEO_ANALYZE"
    SEO_AUTO_OPTIMIZE = "SEO_AUTO_OPTIMIZE"
    SEO_OPPORTUNITY_SCAN = "SEO_OPPORTUNITY_SCAN"
    SEO_OPPORTUNITY_OPTIMIZE = "SEO_OPPORTUNITY_OPTIMIZE"
    METRICS_AGGREGATE = "METRICS_AGGREGATE"
    PERFORMANCE_REPORT = "PERFORMANCE_REPORT"
    REFRESH_ANALYTICS_VIEWS = "REFRESH_ANALYTICS_VIEWS"
    ABTEST_ANALYZE = "ABTEST_ANALYZE"
    ABTEST_REBALANCE = "ABTEST_REBALANCE"
    LINK_OPPORTUNITY_SCAN = "LINK_OPPORTUNITY_SCAN"
    LINK_BACKLINK_MONITOR = "LINK_BACKLINK_MONITOR"
    LINK_OUTREACH_GENERATE = "LINK_OUTREACH_GENERATE"
    LINK_ASSET_GENERATE = "LINK_ASSET_GENERATE"
    PRODUCT_SYNC = "PRODUCT_SYNC"
    SUPPLIER_SYNC = "SUPPLIER_SYNC"
    KEYWORD_ENRICHMENT = "KEYWORD_ENRICHMENT"
    MICROSITE_CREATE = "MICROSITE_CREATE"
    MICROSITE_BRAND_GENERATE = "MICROSITE_BRAND_GENERATE"
    MICROSITE_CONTENT_GENERATE = "MICROSITE_CONTENT_GENERATE"
    MICROSITE_HOMEPAGE_ENRICH = "MICROSITE_HOMEPAGE_ENRICH"
    MICROSITE_PUBLISH = "MICROSITE_PUBLISH"
    MICROSITE_GSC_SYNC = "MICROSITE_GSC_SYNC"
    MICROSITE_ANALYTICS_SYNC = "MICROSITE_ANALYTICS_SYNC"
    MICROSITE_GA4_SYNC = "MICROSITE_GA4_SYNC"
    SOCIAL_POST_GENERATE = "SOCIAL_POST_GENERATE"
    SOCIAL_POST_PUBLISH = "SOCIAL_POST_PUBLISH"
    SOCIAL_DAILY_POSTING = "SOCIAL_DAILY_POSTING"
    AD_CAMPAIGN_SYNC = "AD_CAMPAIGN_SYNC"
    AD_PERFORMANCE_REPORT = "AD_PERFORMANCE_REPORT"
    AD_BUDGET_OPTIMIZER = "AD_BUDGET_OPTIMIZER"
    AD_CONVERSION_UPLOAD = "AD_CONVERSION_UPLOAD"
    AD_PLATFORM_IDS_SYNC = "AD_PLATFORM_IDS_SYNC"
    PAID_KEYWORD_SCAN = "PAID_KEYWORD_SCAN"
    BIDDING_ENGINE_RUN = "BIDDING_ENGINE_RUN"


class ExecutionMode(str, Enum):
    """How aggressively the executor cleans up existing task records."""

    AUTONOMOUS = "autonomous"
    MANUAL = "manual"


@dataclass(slots=True)
class SiteCreate:
    """Input payload for registering a site with the orchestrator."""

    name: str
    site_id: str | None = None
    status: SiteStatus = SiteStatus.DRAFT
    seo_config: dict[str, Any] = field(default_factory=dict)
    homepage_config: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SiteView:
    site_id: str
    name: str
    status: SiteStatus
    autonomous_processes_paused: bool
    primary_domain: str | None
    gsc_property_url: str | None
    gsc_verified: bool
    gsc_verified_at: datetime | None
    gsc_last_synced_at: datetime | None
    seo_config: dict[str, Any]
    homepage_config: dict[str, Any]
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class DomainCreate:
    site_id: str
    domain: str
    status: DomainStatus = DomainStatus.REGISTERING
    registrar: str | None = None
    cdn_zone_id: str | None = None
    ssl_enabled: bool = False
    registered_at: datetime | None = None
    verified_at: datetime | None = None
    domain_id: str | None = None


@dataclass(slots=True)
class DomainView:
    domain_id: str
    site_id: str
    domain: str
    status: DomainStatus
    registrar: str | None
    cdn_zone_id: str | None
    ssl_enabled: bool
    registered_at: datetime | None
    verified_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class ContentCreate:
    site_id: str
    title: str
    content_type: str = "page"
    is_ai_generated: bool = True


@dataclass(slots=True)
class JobCreate:
    """Input payload for writing one task record."""

    job_type: JobType
    lane: str
    site_id: str | None = None
    status: JobStatus = JobStatus.PENDING
    priority: int = 5
    max_attempts: int = 3
    payload: dict[str, Any] = field(default_factory=dict)
    scheduled_for: datetime | None = None


@dataclass(slots=True)
class JobView:
    """Readable task record view for the executor and CLI."""

    job_id: str
    site_id: str | None
    job_type: str
    lane: str
    status: JobStatus
    priority: int
    attempts: int
    max_attempts: int
    payload: dict[str, Any]
    error_summary: str | None
    scheduled_for: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class SiteSnapshot:
    """Persisted state of one site that validation and payloads are derived from."""

    site_id: str
    site: SiteView | None
    domains: list[DomainView] = field(default_factory=list)
    ai_content_count: int = 0


@dataclass(frozen=True, slots=True)
class ArtifactCheck:
    valid: bool
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class BlockedTask:
    """A roadmap step that could not be queued this pass."""

    job_type: JobType
    reason: str
    waiting_for: tuple[JobType, ...] = ()

    def describe(self) -> str:
        return f"{self.job_type.value} ({self.reason})"


@dataclass(frozen=True, slots=True)
class RequeuedTask:
    """A COMPLETED record removed because its artifact is missing."""

    job_type: JobType
    job_id: str
    reason: str

    def describe(self) -> str:
        return f"{self.job_type.value} ({self.reason})"


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one executor pass for one site."""

    site_id: str
    mode: ExecutionMode
    queued: list[JobType] = field(default_factory=list)
    skipped: list[JobType] = field(default_factory=list)
    blocked: list[BlockedTask] = field(default_factory=list)
    requeued: list[RequeuedTask] = field(default_factory=list)
    cleaned: list[str] = field(default_factory=list)
    message: str = ""


@dataclass(slots=True)
class SchedulerPassSummary:
    """Aggregate counters for one autonomous scheduler pass."""

    lock_acquired: bool = False
    sites_processed: int = 0
    tasks_queued: int = 0
    invalid_cleaned: int = 0
    placeholders_removed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SchedulerLoopSummary:
    passes: int = 0
    skipped_passes: int = 0
    sites_processed: int = 0
    tasks_queued: int = 0
    errors: int = 0
