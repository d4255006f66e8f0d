"""Artifact checks proving that a task's real-world effect exists."""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError

from site_lifecycle.roadmap.models import (
    ArtifactCheck,
    DomainStatus,
    JobType,
    SiteSnapshot,
)
from site_lifecycle.roadmap.repository import LifecycleRepository

logger = logging.getLogger(__name__)

GA_MEASUREMENT_ID_KEY = "ga_measurement_id"

_VALID = ArtifactCheck(valid=True)


def _check(condition: bool, reason: str) -> ArtifactCheck:
    return _VALID if condition else ArtifactCheck(valid=False, reason=reason)


def _site_create(snapshot: SiteSnapshot) -> ArtifactCheck:
    return _check(snapshot.site is not None, "Site record not found")


def _content(reason: str) -> Callable[[SiteSnapshot], ArtifactCheck]:
    def _validate(snapshot: SiteSnapshot) -> ArtifactCheck:
        return _check(snapshot.ai_content_count > 0, reason)

    return _validate


def _domain_register(snapshot: SiteSnapshot) -> ArtifactCheck:
    return _check(bool(snapshot.domains), "No domain registered for site")


def _domain_verify(snapshot: SiteSnapshot) -> ArtifactCheck:
    verified = any(domain.verified_at is not None for domain in snapshot.domains)
    return _check(verified, "No verified domains found")


def _ssl_provision(snapshot: SiteSnapshot) -> ArtifactCheck:
    ssl_enabled = any(domain.ssl_enabled for domain in snapshot.domains)
    return _check(ssl_enabled, "No domains with SSL enabled")


def _gsc_setup(snapshot: SiteSnapshot) -> ArtifactCheck:
    configured = snapshot.site is not None and bool(snapshot.site.gsc_property_url)
    return _check(configured, "No GSC property URL configured")


def _gsc_verify(snapshot: SiteSnapshot) -> ArtifactCheck:
    verified = snapshot.site is not None and snapshot.site.gsc_verified
    return _check(verified, "GSC not verified")


def _gsc_sync(snapshot: SiteSnapshot) -> ArtifactCheck:
    synced = snapshot.site is not None and snapshot.site.gsc_last_synced_at is not None
    return _check(synced, "GSC data never synced")


def _ga4_setup(snapshot: SiteSnapshot) -> ArtifactCheck:
    measurement_id = (
        snapshot.site.seo_config.get(GA_MEASUREMENT_ID_KEY) if snapshot.site is not None else None
    )
    return _check(bool(measurement_id), "No GA4 measurement ID configured")


def _site_deploy(snapshot: SiteSnapshot) -> ArtifactCheck:
    has_primary = snapshot.site is not None and bool(snapshot.site.primary_domain)
    has_active = any(domain.status == DomainStatus.ACTIVE for domain in snapshot.domains)
    return _check(has_primary and has_active, "Site not deployed (no active domain)")


ARTIFACT_CHECKS: dict[JobType, Callable[[SiteSnapshot], ArtifactCheck]] = {
    JobType.SITE_CREATE: _site_create,
    JobType.CONTENT_GENERATE: _content("No AI-generated content found"),
    JobType.CONTENT_OPTIMIZE: _content("No content to optimize"),
    JobType.CONTENT_REVIEW: _content("No content to review"),
    JobType.DOMAIN_REGISTER: _domain_register,
    JobType.DOMAIN_VERIFY: _domain_verify,
    JobType.SSL_PROVISION: _ssl_provision,
    JobType.GSC_SETUP: _gsc_setup,
    JobType.GSC_VERIFY: _gsc_verify,
    JobType.GSC_SYNC: _gsc_sync,
    JobType.GA4_SETUP: _ga4_setup,
    JobType.SITE_DEPLOY: _site_deploy,
}


def validate_site_artifacts(snapshot: SiteSnapshot) -> dict[JobType, ArtifactCheck]:
    """Check every job type against the persisted state of one site.

    Types without a persistent artifact (analysis, metrics, fan-out jobs) are
    always valid.
    """

    return {
        job_type: ARTIFACT_CHECKS[job_type](snapshot) if job_type in ARTIFACT_CHECKS else _VALID
        for job_type in JobType
    }


def unavailable_artifacts(reason: str) -> dict[JobType, ArtifactCheck]:
    """Validation map used when the site state could not be read at all."""

    return {
        job_type: ArtifactCheck(valid=False, reason=reason) if job_type in ARTIFACT_CHECKS else _VALID
        for job_type in JobType
    }


class ArtifactValidator:
    """Repository-backed validator for status views and diagnostics.

    Never raises: storage failures come back as invalid checks with a reason.
    """

    def __init__(self, repository: LifecycleRepository) -> None:
        self.repository = repository

    def validate(self, site_id: str) -> dict[JobType, ArtifactCheck]:
        try:
            snapshot = self.repository.load_site_snapshot(site_id)
        except SQLAlchemyError as error:
            logger.exception("Artifact validation failed to load site %s", site_id)
            return unavailable_artifacts(f"Site state unavailable: {error}")

        if snapshot.site is None:
            return unavailable_artifacts("Site record not found")
        return validate_site_artifacts(snapshot)
