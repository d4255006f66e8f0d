"""Static roadmap catalog: lifecycle phases, task dependencies and execution order.

The roadmap is a plain typed table. The executor walks ``ROADMAP`` in order and
never hard-codes a job type, so adding or re-wiring a step only touches this
module. ``check_catalog`` rejects tables that would deadlock every site
(cycles, dependencies that appear after their dependents, unknown steps).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from site_lifecycle.roadmap.models import JobType
from site_lifecycle.storage.sqlmodel_models import PLANNED_LANE

__all__ = [
    "ARTIFACT_ONLY_COMPLETION",
    "EXECUTION_ORDER",
    "JOB_TYPE_LANES",
    "PHASES",
    "PLANNED_LANE",
    "ROADMAP",
    "CatalogError",
    "PhaseSpec",
    "TaskSpec",
    "check_catalog",
    "lane_for",
    "roadmap_index",
]


class CatalogError(ValueError):
    """Raised when a roadmap table is not a valid dependency graph."""


@dataclass(frozen=True, slots=True)
class PhaseSpec:
    key: str
    name: str
    description: str


@dataclass(frozen=True, slots=True)
class TaskSpec:
    """One roadmap step: phase membership, dependencies and placeholder priority."""

    job_type: JobType
    phase: str
    depends_on: frozenset[JobType]
    priority: int
    label: str
    description: str


PHASES: tuple[PhaseSpec, ...] = (
    PhaseSpec("content", "Content Creation", "Generating and optimizing site content"),
    PhaseSpec("domain", "Domain & SSL", "Registering domain and setting up SSL"),
    PhaseSpec(
        "seo",
        "SEO & Analytics",
        "Setting up Google Search Console, Analytics, and SEO",
    ),
    PhaseSpec("launch", "Site Launch", "Deploying site to production"),
    PhaseSpec(
        "optimization",
        "Ongoing Optimization",
        "Continuous content and performance optimization",
    ),
)


def _step(
    job_type: JobType,
    phase: str,
    depends_on: Iterable[JobType],
    priority: int,
    label: str,
    description: str,
) -> TaskSpec:
    return TaskSpec(
        job_type=job_type,
        phase=phase,
        depends_on=frozenset(depends_on),
        priority=priority,
        label=label,
        description=description,
    )


# Ordered: every dependency precedes its dependents.
ROADMAP: tuple[TaskSpec, ...] = (
    _step(
        JobType.CONTENT_GENERATE,
        "content",
        (),
        3,
        "Generate Content",
        "Write homepage and key pages using AI",
    ),
    _step(
        JobType.DOMAIN_REGISTER,
        "domain",
        (),
        3,
        "Register Domain",
        "Purchase and configure domain name",
    ),
    _step(
        JobType.CONTENT_OPTIMIZE,
        "content",
        (JobType.CONTENT_GENERATE,),
        4,
        "Optimize Content",
        "Improve content for SEO and conversions",
    ),
    _step(
        JobType.DOMAIN_VERIFY,
        "domain",
        (JobType.DOMAIN_REGISTER,),
        4,
        "Verify Domain",
        "Confirm domain ownership and DNS settings",
    ),
    _step(
        JobType.CONTENT_REVIEW,
        "content",
        (JobType.CONTENT_OPTIMIZE,),
        5,
        "Review Content",
        "Quality check all generated content",
    ),
    _step(
        JobType.SSL_PROVISION,
        "domain",
        (JobType.DOMAIN_VERIFY,),
        5,
        "Setup SSL",
        "Install security certificate for HTTPS",
    ),
    _step(
        JobType.GSC_SETUP,
        "seo",
        (JobType.SSL_PROVISION,),
        4,
        "Setup Search Console",
        "Add site to Google Search Console",
    ),
    _step(
        JobType.GSC_VERIFY,
        "seo",
        (JobType.GSC_SETUP,),
        5,
        "Verify Search Console",
        "Verify site ownership in GSC",
    ),
    _step(
        JobType.GA4_SETUP,
        "seo",
        (JobType.SSL_PROVISION,),
        5,
        "Setup Google Analytics",
        "Create GA4 property and tracking",
    ),
    _step(
        JobType.GSC_SYNC,
        "seo",
        (JobType.GSC_VERIFY,),
        6,
        "Sync Search Data",
        "Import search performance data",
    ),
    _step(
        JobType.SITE_DEPLOY,
        "launch",
        (JobType.CONTENT_REVIEW, JobType.SSL_PROVISION),
        2,
        "Deploy Site",
        "Publish site to the web",
    ),
    _step(
        JobType.SEO_ANALYZE,
        "optimization",
        (JobType.SITE_DEPLOY,),
        6,
        "Analyze SEO",
        "Check and improve search optimization",
    ),
    _step(
        JobType.SEO_OPPORTUNITY_SCAN,
        "optimization",
        (JobType.SEO_ANALYZE,),
        7,
        "Scan Opportunities",
        "Find new keyword opportunities",
    ),
    _step(
        JobType.SEO_OPPORTUNITY_OPTIMIZE,
        "optimization",
        (JobType.SEO_OPPORTUNITY_SCAN,),
        8,
        "Optimize Opportunities",
        "Recursive AI optimization for SEO",
    ),
    _step(
        JobType.METRICS_AGGREGATE,
        "optimization",
        (JobType.SITE_DEPLOY,),
        9,
        "Collect Metrics",
        "Gather performance analytics",
    ),
)

EXECUTION_ORDER: tuple[JobType, ...] = tuple(spec.job_type for spec in ROADMAP)

# Handlers for these steps may run through a path that leaves no site-linked
# record, so a valid artifact alone counts as completion.
ARTIFACT_ONLY_COMPLETION = frozenset(
    {JobType.DOMAIN_REGISTER, JobType.DOMAIN_VERIFY, JobType.SSL_PROVISION},
)

JOB_TYPE_LANES: dict[JobType, str] = {
    JobType.SITE_CREATE: "site",
    JobType.SITE_DEPLOY: "site",
    JobType.CONTENT_GENERATE: "content",
    JobType.CONTENT_OPTIMIZE: "content",
    JobType.CONTENT_REVIEW: "content",
    JobType.DOMAIN_REGISTER: "domain",
    JobType.DOMAIN_VERIFY: "domain",
    JobType.SSL_PROVISION: "domain",
    JobType.GSC_SETUP: "gsc",
    JobType.GSC_VERIFY: "gsc",
    JobType.GSC_SYNC: "gsc",
    JobType.GA4_SETUP: "analytics",
    JobType.GA4_DAILY_SYNC: "analytics",
    JobType.SEO_ANALYZE: "seo",
    JobType.SEO_AUTO_OPTIMIZE: "seo",
    JobType.SEO_OPPORTUNITY_SCAN: "seo",
    JobType.SEO_OPPORTUNITY_OPTIMIZE: "seo",
    JobType.METRICS_AGGREGATE: "analytics",
    JobType.PERFORMANCE_REPORT: "analytics",
    JobType.REFRESH_ANALYTICS_VIEWS: "analytics",
    JobType.ABTEST_ANALYZE: "abtest",
    JobType.ABTEST_REBALANCE: "abtest",
    JobType.LINK_OPPORTUNITY_SCAN: "seo",
    JobType.LINK_BACKLINK_MONITOR: "seo",
    JobType.LINK_OUTREACH_GENERATE: "seo",
    JobType.LINK_ASSET_GENERATE: "seo",
    JobType.PRODUCT_SYNC: "sync",
    JobType.SUPPLIER_SYNC: "sync",
    JobType.KEYWORD_ENRICHMENT: "ads",
    JobType.MICROSITE_CREATE: "microsite",
    JobType.MICROSITE_BRAND_GENERATE: "microsite",
    JobType.MICROSITE_CONTENT_GENERATE: "microsite",
    JobType.MICROSITE_HOMEPAGE_ENRICH: "microsite",
    JobType.MICROSITE_PUBLISH: "microsite",
    JobType.MICROSITE_GSC_SYNC: "microsite",
    JobType.MICROSITE_ANALYTICS_SYNC: "microsite",
    JobType.MICROSITE_GA4_SYNC: "microsite",
    JobType.SOCIAL_POST_GENERATE: "social",
    JobType.SOCIAL_POST_PUBLISH: "social",
    JobType.SOCIAL_DAILY_POSTING: "social",
    JobType.AD_CAMPAIGN_SYNC: "ads",
    JobType.AD_PERFORMANCE_REPORT: "ads",
    JobType.AD_BUDGET_OPTIMIZER: "ads",
    JobType.AD_CONVERSION_UPLOAD: "ads",
    JobType.AD_PLATFORM_IDS_SYNC: "ads",
    JobType.PAID_KEYWORD_SCAN: "ads",
    JobType.BIDDING_ENGINE_RUN: "ads",
}


def lane_for(job_type: JobType) -> str:
    """Queue lane a real (non-placeholder) record of this type is written to."""

    try:
        return JOB_TYPE_LANES[job_type]
    except KeyError as error:
        raise ValueError(f"Unknown job type: {job_type} (no lane mapping found)") from error


def roadmap_index(roadmap: tuple[TaskSpec, ...] = ROADMAP) -> dict[JobType, TaskSpec]:
    return {spec.job_type: spec for spec in roadmap}


def check_catalog(
    roadmap: tuple[TaskSpec, ...] = ROADMAP,
    phases: tuple[PhaseSpec, ...] = PHASES,
) -> None:
    """Raise CatalogError unless the roadmap is an acyclic, topologically ordered table."""

    positions: dict[JobType, int] = {}
    for position, spec in enumerate(roadmap):
        if spec.job_type in positions:
            raise CatalogError(f"Duplicate roadmap step: {spec.job_type.value}")
        positions[spec.job_type] = position

    phase_keys = {phase.key for phase in phases}
    for spec in roadmap:
        if spec.phase not in phase_keys:
            raise CatalogError(f"Unknown phase {spec.phase!r} for {spec.job_type.value}")
        if spec.job_type not in JOB_TYPE_LANES:
            raise CatalogError(f"No queue lane mapped for {spec.job_type.value}")
        for dependency in spec.depends_on:
            if dependency not in positions:
                raise CatalogError(
                    f"{spec.job_type.value} depends on {dependency.value}, "
                    "which is not a roadmap step",
                )

    cycle = _find_cycle(roadmap)
    if cycle:
        raise CatalogError(
            "Roadmap dependency cycle: " + " -> ".join(job_type.value for job_type in cycle),
        )

    for spec in roadmap:
        for dependency in spec.depends_on:
            if positions[dependency] > positions[spec.job_type]:
                raise CatalogError(
                    f"{spec.job_type.value} is ordered before its dependency "
                    f"{dependency.value}",
                )


def _find_cycle(roadmap: tuple[TaskSpec, ...]) -> list[JobType]:
    edges = {spec.job_type: sorted(spec.depends_on, key=lambda item: item.value) for spec in roadmap}
    visiting: list[JobType] = []
    done: set[JobType] = set()

    def _visit(node: JobType) -> list[JobType]:
        if node in done:
            return []
        if node in visiting:
            return [*visiting[visiting.index(node) :], node]
        visiting.append(node)
        for dependency in edges.get(node, ()):
            cycle = _visit(dependency)
            if cycle:
                return cycle
        visiting.pop()
        done.add(node)
        return []

    for spec in roadmap:
        cycle = _visit(spec.job_type)
        if cycle:
            return cycle
    return []
