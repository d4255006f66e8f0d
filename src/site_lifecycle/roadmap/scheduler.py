"""Periodic autonomous driver running the roadmap executor over every site in scope."""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from site_lifecycle.roadmap.executor import RoadmapExecutor
from site_lifecycle.roadmap.leases import LeaseLock
from site_lifecycle.roadmap.models import (
    TERMINAL_SITE_STATUSES,
    ExecutionMode,
    SchedulerLoopSummary,
    SchedulerPassSummary,
)
from site_lifecycle.roadmap.repository import LifecycleRepository

logger = logging.getLogger(__name__)

DEFAULT_LOCK_RESOURCE = "autonomous-roadmap"


class AutonomousScheduler:
    """Run autonomous executor passes under a shared lease.

    Only the process holding the lease on ``lock_resource`` acts; others
    skip the pass. The lease TTL must be shorter than the interval so a
    crashed holder never blocks more than one pass.
    """

    def __init__(
        self,
        *,
        repository: LifecycleRepository,
        executor: RoadmapExecutor,
        lock: LeaseLock,
        lock_resource: str = DEFAULT_LOCK_RESOURCE,
        lease_ttl: timedelta = timedelta(seconds=240),
        interval_seconds: float = 300.0,
    ) -> None:
        self.repository = repository
        self.executor = executor
        self.lock = lock
        self.lock_resource = lock_resource
        self.lease_ttl = lease_ttl
        self.interval_seconds = interval_seconds
        self._stop_requested = False

    def run_pass(self) -> SchedulerPassSummary:
        summary = SchedulerPassSummary()
        handle = self.lock.try_acquire(self.lock_resource, self.lease_ttl)
        if handle is None:
            logger.info("Autonomous pass skipped: lease %s is held elsewhere", self.lock_resource)
            return summary

        summary.lock_acquired = True
        try:
            try:
                summary.placeholders_removed = self.repository.delete_orphaned_placeholders(
                    out_of_scope=TERMINAL_SITE_STATUSES,
                )
                sites = self.repository.list_schedulable_sites(
                    excluded_statuses=TERMINAL_SITE_STATUSES,
                )
            except SQLAlchemyError as error:
                logger.exception("Autonomous pass could not load sites")
                summary.errors.append(f"pass setup failed: {error}")
                sites = []
            for site in sites:
                if self._stop_requested:
                    break
                try:
                    result = self.executor.execute(site.site_id, mode=ExecutionMode.AUTONOMOUS)
                except Exception as error:  # noqa: BLE001
                    logger.exception("Autonomous pass failed for site %s", site.site_id)
                    summary.errors.append(f"{site.site_id} ({site.name}): {error}")
                    continue
                summary.sites_processed += 1
                summary.tasks_queued += len(result.queued)
                summary.invalid_cleaned += len(result.requeued)
        finally:
            handle.release()

        logger.info(
            "Autonomous pass: %d site(s), %d task(s) queued, %d invalid cleaned, "
            "%d orphaned placeholder(s) removed, %d error(s)",
            summary.sites_processed,
            summary.tasks_queued,
            summary.invalid_cleaned,
            summary.placeholders_removed,
            len(summary.errors),
        )
        return summary

    def run_loop(self, *, max_passes: int | None = None) -> SchedulerLoopSummary:
        """Repeat passes on the configured cadence until stopped or ``max_passes`` reached."""

        aggregate = SchedulerLoopSummary()
        with self._signal_handlers():
            while True:
                if self._stop_requested:
                    return aggregate
                if max_passes is not None and aggregate.passes >= max_passes:
                    return aggregate

                try:
                    summary = self.run_pass()
                except SQLAlchemyError:
                    # Lease storage errors end this pass only.
                    logger.exception("Autonomous pass aborted by a storage error")
                    summary = SchedulerPassSummary(errors=["lease storage unavailable"])
                aggregate.passes += 1
                if not summary.lock_acquired:
                    aggregate.skipped_passes += 1
                aggregate.sites_processed += summary.sites_processed
                aggregate.tasks_queued += summary.tasks_queued
                aggregate.errors += len(summary.errors)

                if max_passes is not None and aggregate.passes >= max_passes:
                    return aggregate
                self._sleep_with_stop(self.interval_seconds)

    def request_stop(self) -> None:
        self._stop_requested = True

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stop_requested and time.monotonic() < deadline:
            time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logger.info("Received %s, stopping after the current pass", name)
            self._stop_requested = True

        try:
            original_sigint = signal.signal(signal.SIGINT, _handler)
            original_sigterm = signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return

        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
