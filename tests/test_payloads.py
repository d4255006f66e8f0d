from __future__ import annotations

from datetime import timedelta

import allure
import pytest

from site_lifecycle.roadmap.models import (
    DomainCreate,
    DomainStatus,
    JobType,
    SiteCreate,
    SiteView,
)
from site_lifecycle.roadmap.payloads import PayloadPreconditionError, build_payload
from site_lifecycle.roadmap.repository import LifecycleRepository
from site_lifecycle.storage.common import utc_now

pytestmark = [
    allure.epic("Site Roadmap"),
    allure.feature("Payload Builder"),
]


def test_every_payload_carries_site_id(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    snapshot = repository.load_site_snapshot(site.site_id)
    for job_type in (
        JobType.CONTENT_GENERATE,
        JobType.CONTENT_OPTIMIZE,
        JobType.CONTENT_REVIEW,
        JobType.DOMAIN_REGISTER,
        JobType.GA4_SETUP,
        JobType.SEO_ANALYZE,
        JobType.METRICS_AGGREGATE,
    ):
        assert build_payload(snapshot, job_type)["site_id"] == site.site_id


def test_static_hints(repository: LifecycleRepository, site: SiteView) -> None:
    snapshot = repository.load_site_snapshot(site.site_id)

    assert build_payload(snapshot, JobType.DOMAIN_REGISTER) == {
        "site_id": site.site_id,
        "registrar": "cloudflare",
        "auto_renew": True,
    }
    assert build_payload(snapshot, JobType.CONTENT_OPTIMIZE)["optimization_type"] == "seo"
    assert build_payload(snapshot, JobType.CONTENT_REVIEW)["review_type"] == "quality"
    assert build_payload(snapshot, JobType.METRICS_AGGREGATE)["aggregation_type"] == "daily"
    assert build_payload(snapshot, JobType.SEO_OPPORTUNITY_SCAN)["force_rescan"] is False


def test_content_generate_prefers_homepage_config(repository: LifecycleRepository) -> None:
    site = repository.create_site(
        SiteCreate(
            name="Porto Wine",
            homepage_config={
                "destinations": [{"name": "Porto"}],
                "categories": [{"name": "Wine tasting"}],
            },
            seo_config={"destination": "Lisbon", "primary_keywords": ["food tours"]},
        ),
    )
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.CONTENT_GENERATE)

    assert payload == {
        "site_id": site.site_id,
        "content_type": "destination",
        "destination": "Porto",
        "category": "Wine tasting",
    }


def test_content_generate_falls_back_to_seo_config(repository: LifecycleRepository) -> None:
    site = repository.create_site(
        SiteCreate(
            name="Lisbon Food",
            seo_config={"location": "Lisbon", "primary_keywords": ["food tours", "tapas"]},
        ),
    )
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.CONTENT_GENERATE)

    assert payload["destination"] == "Lisbon"
    assert payload["category"] == "food tours"


def test_content_generate_has_safe_defaults(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.CONTENT_GENERATE)

    assert payload["destination"] == ""
    assert payload["category"] == "experiences"


def test_domain_verify_without_domain_fails(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    with pytest.raises(PayloadPreconditionError, match="no domain found"):
        build_payload(repository.load_site_snapshot(site.site_id), JobType.DOMAIN_VERIFY)


def test_domain_verify_picks_first_unverified_domain(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    now = utc_now()
    repository.add_domain(
        DomainCreate(
            site_id=site.site_id,
            domain="verified.example",
            registered_at=now - timedelta(days=3),
            verified_at=now - timedelta(days=2),
        ),
    )
    older = repository.add_domain(
        DomainCreate(
            site_id=site.site_id,
            domain="older.example",
            registered_at=now - timedelta(days=2),
        ),
    )
    repository.add_domain(
        DomainCreate(
            site_id=site.site_id,
            domain="newer.example",
            registered_at=now - timedelta(days=1),
        ),
    )

    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.DOMAIN_VERIFY)

    assert payload == {
        "site_id": site.site_id,
        "domain_id": older.domain_id,
        "verification_method": "dns",
    }


def test_domain_verify_falls_back_to_latest_when_all_verified(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    repository.add_domain(
        DomainCreate(site_id=site.site_id, domain="first.example", verified_at=utc_now()),
    )
    latest = repository.add_domain(
        DomainCreate(site_id=site.site_id, domain="second.example", verified_at=utc_now()),
    )

    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.DOMAIN_VERIFY)

    assert payload["domain_id"] == latest.domain_id


def test_ssl_provision_requires_verified_domain(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    repository.add_domain(DomainCreate(site_id=site.site_id, domain="lisbon.example"))

    with pytest.raises(PayloadPreconditionError, match="no verified domain found"):
        build_payload(repository.load_site_snapshot(site.site_id), JobType.SSL_PROVISION)


@pytest.mark.parametrize(
    ("registrar", "provider"),
    [("cloudflare", "cloudflare"), ("Cloudflare", "cloudflare"), ("namecheap", "letsencrypt")],
)
def test_ssl_provider_follows_registrar(
    repository: LifecycleRepository,
    site: SiteView,
    registrar: str,
    provider: str,
) -> None:
    domain = repository.add_domain(
        DomainCreate(
            site_id=site.site_id,
            domain="lisbon.example",
            registrar=registrar,
            verified_at=utc_now(),
        ),
    )

    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.SSL_PROVISION)

    assert payload == {"site_id": site.site_id, "domain_id": domain.domain_id, "provider": provider}


def test_search_console_setup_requires_active_domain_with_zone(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    repository.add_domain(
        DomainCreate(site_id=site.site_id, domain="pending.example", cdn_zone_id="zone-0"),
    )
    snapshot = repository.load_site_snapshot(site.site_id)
    with pytest.raises(PayloadPreconditionError, match="no active domain with a CDN zone"):
        build_payload(snapshot, JobType.GSC_SETUP)

    repository.add_domain(
        DomainCreate(
            site_id=site.site_id,
            domain="live.example",
            status=DomainStatus.ACTIVE,
            cdn_zone_id="zone-1",
        ),
    )
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.GSC_VERIFY)
    assert payload["domain"] == "live.example"
    assert payload["cdn_zone_id"] == "zone-1"


def test_gsc_sync_uses_property_url(repository: LifecycleRepository, site: SiteView) -> None:
    with pytest.raises(PayloadPreconditionError):
        build_payload(repository.load_site_snapshot(site.site_id), JobType.GSC_SYNC)

    repository.update_site(site.site_id, gsc_property_url="sc-domain:lisbon.example")
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.GSC_SYNC)

    assert payload["property_url"] == "sc-domain:lisbon.example"
    assert payload["dimensions"] == ["query", "page", "country", "device"]


def test_ga4_setup_carries_site_name_and_primary_domain(
    repository: LifecycleRepository,
    site: SiteView,
) -> None:
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.GA4_SETUP)
    assert payload == {"site_id": site.site_id, "site_name": site.name, "domain": None}


def test_site_deploy_domain_resolution(repository: LifecycleRepository, site: SiteView) -> None:
    with pytest.raises(PayloadPreconditionError, match="no SSL-enabled domain"):
        build_payload(repository.load_site_snapshot(site.site_id), JobType.SITE_DEPLOY)

    repository.add_domain(
        DomainCreate(site_id=site.site_id, domain="secure.example", ssl_enabled=True),
    )
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.SITE_DEPLOY)
    assert payload == {
        "site_id": site.site_id,
        "environment": "production",
        "domain": "secure.example",
    }

    repository.update_site(site.site_id, primary_domain="primary.example")
    payload = build_payload(repository.load_site_snapshot(site.site_id), JobType.SITE_DEPLOY)
    assert payload["domain"] == "primary.example"
