"""Handler input parameters derived from persisted site and domain state."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from site_lifecycle.roadmap.models import (
    DomainStatus,
    DomainView,
    JobType,
    SiteSnapshot,
)

DEFAULT_CONTENT_CATEGORY = "experiences"
GSC_SYNC_DIMENSIONS = ("query", "page", "country", "device")

_STATIC_HINTS: dict[JobType, dict[str, Any]] = {
    JobType.CONTENT_OPTIMIZE: {"optimization_type": "seo"},
    JobType.CONTENT_REVIEW: {"review_type": "quality"},
    JobType.DOMAIN_REGISTER: {"registrar": "cloudflare", "auto_renew": True},
    JobType.SEO_ANALYZE: {"full_site_audit": False},
    JobType.SEO_OPPORTUNITY_SCAN: {"force_rescan": False},
    JobType.SEO_OPPORTUNITY_OPTIMIZE: {},
    JobType.METRICS_AGGREGATE: {"aggregation_type": "daily"},
}


class PayloadPreconditionError(ValueError):
    """Persisted state does not yet allow building a handler payload."""


def build_payload(snapshot: SiteSnapshot, job_type: JobType) -> dict[str, Any]:
    """Build the enqueue payload for ``job_type``.

    Raises:
        PayloadPreconditionError: When the state the handler needs is missing,
            e.g. verifying a domain before any domain was registered.
    """

    payload: dict[str, Any] = {"site_id": snapshot.site_id}

    if job_type in _STATIC_HINTS:
        payload.update(_STATIC_HINTS[job_type])
        return payload

    if job_type == JobType.CONTENT_GENERATE:
        payload.update(_content_generate(snapshot))
    elif job_type == JobType.DOMAIN_VERIFY:
        payload.update(_domain_verify(snapshot))
    elif job_type == JobType.SSL_PROVISION:
        payload.update(_ssl_provision(snapshot))
    elif job_type in (JobType.GSC_SETUP, JobType.GSC_VERIFY):
        payload.update(_gsc_domain(snapshot))
    elif job_type == JobType.GSC_SYNC:
        payload.update(_gsc_sync(snapshot))
    elif job_type == JobType.GA4_SETUP:
        payload.update(_ga4_setup(snapshot))
    elif job_type == JobType.SITE_DEPLOY:
        payload.update(_site_deploy(snapshot))
    return payload


def _content_generate(snapshot: SiteSnapshot) -> dict[str, Any]:
    homepage = snapshot.site.homepage_config if snapshot.site is not None else {}
    seo = snapshot.site.seo_config if snapshot.site is not None else {}

    destination = _first_name(homepage.get("destinations"))
    if not destination:
        destination = str(seo.get("destination") or seo.get("location") or "")

    category = _first_name(homepage.get("categories"))
    if not category:
        keywords = seo.get("primary_keywords")
        if isinstance(keywords, list) and keywords:
            category = str(keywords[0])
    return {
        "content_type": "destination",
        "destination": destination,
        "category": category or DEFAULT_CONTENT_CATEGORY,
    }


def _first_name(items: Any) -> str:
    """Name of the first homepage config entry; entries are dicts or plain strings."""

    if not isinstance(items, list) or not items:
        return ""
    first = items[0]
    if isinstance(first, dict):
        return str(first.get("name") or "")
    return str(first or "")


def _domain_verify(snapshot: SiteSnapshot) -> dict[str, Any]:
    if not snapshot.domains:
        raise PayloadPreconditionError("no domain found for site")

    unverified = sorted(
        (domain for domain in snapshot.domains if domain.verified_at is None),
        key=lambda domain: _sort_key(domain.registered_at, domain),
    )
    if unverified:
        domain = unverified[0]
    else:
        domain = max(snapshot.domains, key=lambda item: item.created_at)
    return {"domain_id": domain.domain_id, "verification_method": "dns"}


def _ssl_provision(snapshot: SiteSnapshot) -> dict[str, Any]:
    verified = [domain for domain in snapshot.domains if domain.verified_at is not None]
    if not verified:
        raise PayloadPreconditionError("no verified domain found")

    domain = max(verified, key=lambda item: _sort_key(item.verified_at, item))
    provider = "cloudflare" if (domain.registrar or "").lower() == "cloudflare" else "letsencrypt"
    return {"domain_id": domain.domain_id, "provider": provider}


def _gsc_domain(snapshot: SiteSnapshot) -> dict[str, Any]:
    for domain in snapshot.domains:
        if domain.status == DomainStatus.ACTIVE and domain.cdn_zone_id:
            return {"domain": domain.domain, "cdn_zone_id": domain.cdn_zone_id}
    raise PayloadPreconditionError("no active domain with a CDN zone")


def _gsc_sync(snapshot: SiteSnapshot) -> dict[str, Any]:
    property_url = snapshot.site.gsc_property_url if snapshot.site is not None else None
    if not property_url:
        raise PayloadPreconditionError("no search console property configured")
    return {"property_url": property_url, "dimensions": list(GSC_SYNC_DIMENSIONS)}


def _ga4_setup(snapshot: SiteSnapshot) -> dict[str, Any]:
    site = snapshot.site
    return {
        "site_name": site.name if site is not None else "",
        "domain": site.primary_domain if site is not None else None,
    }


def _site_deploy(snapshot: SiteSnapshot) -> dict[str, Any]:
    domain = snapshot.site.primary_domain if snapshot.site is not None else None
    if not domain:
        ssl_domains = [item for item in snapshot.domains if item.ssl_enabled]
        if not ssl_domains:
            raise PayloadPreconditionError("no SSL-enabled domain")
        domain = max(ssl_domains, key=lambda item: item.created_at).domain
    return {"environment": "production", "domain": domain}


def _sort_key(value: datetime | None, domain: DomainView) -> datetime:
    return value if value is not None else domain.created_at
