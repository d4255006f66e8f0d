"""Job queue seam used by the roadmap executor."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError

from site_lifecycle.roadmap.catalog import lane_for
from site_lifecycle.roadmap.models import JobCreate, JobType
from site_lifecycle.roadmap.repository import LifecycleRepository

logger = logging.getLogger(__name__)

# Payload value used by platform-wide jobs that are not bound to one site.
ALL_SITES = "all"


class JobQueue(Protocol):
    def enqueue(self, job_type: JobType, payload: dict[str, Any]) -> str:
        """Write one task record and return its id."""


class RepositoryJobQueue:
    """Queue that writes task records into the local ``site_jobs`` table.

    The site link is taken from ``payload["site_id"]`` so the executor sees the
    record on its next pass. A second enqueue for a (site, type) that already
    has a live record returns the existing record id instead of a duplicate.
    """

    def __init__(
        self,
        repository: LifecycleRepository,
        *,
        priority: int = 5,
        max_attempts: int = 3,
    ) -> None:
        self.repository = repository
        self.priority = priority
        self.max_attempts = max_attempts

    def enqueue(self, job_type: JobType, payload: dict[str, Any]) -> str:
        site_id = payload.get("site_id")
        if site_id == ALL_SITES:
            site_id = None

        try:
            job = self.repository.insert_job(
                JobCreate(
                    job_type=job_type,
                    lane=lane_for(job_type),
                    site_id=site_id,
                    priority=self.priority,
                    max_attempts=self.max_attempts,
                    payload=payload,
                ),
            )
        except IntegrityError:
            if site_id is None:
                raise
            existing = self.repository.find_live_job(site_id=site_id, job_type=job_type)
            if existing is None:
                raise
            logger.info(
                "Job %s for site %s already live as %s",
                job_type.value,
                site_id,
                existing.job_id,
            )
            return existing.job_id

        logger.info("Queued %s for site %s as %s", job_type.value, site_id, job.job_id)
        return job.job_id
