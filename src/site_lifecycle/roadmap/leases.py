"""Time-bounded exclusive leases backed by the ``orchestrator_leases`` table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from types import TracebackType
from typing import Protocol
from uuid import uuid4

from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, delete

from site_lifecycle.storage.common import to_db_datetime, utc_now
from site_lifecycle.storage.sqlmodel_models import OrchestratorLease

logger = logging.getLogger(__name__)


class LeaseLock(Protocol):
    def try_acquire(self, resource: str, ttl: timedelta) -> LeaseHandle | None:
        """Return a handle when the lease was taken, None when it is held elsewhere."""

    def release(self, handle: LeaseHandle) -> None:
        """Release the lease if this handle still owns it."""


@dataclass(slots=True)
class LeaseHandle:
    """Ownership token for one acquired lease."""

    resource: str
    token: str
    lock: LeaseLock
    released: bool = False

    def release(self) -> None:
        if self.released:
            return
        self.lock.release(self)
        self.released = True

    def __enter__(self) -> LeaseHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class SqliteLeaseLock:
    """Lease lock shared by every process pointed at the same database file.

    A lease row older than its ``expires_at`` may be taken over, so a holder
    that crashed without releasing blocks others for at most one TTL.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def try_acquire(self, resource: str, ttl: timedelta) -> LeaseHandle | None:
        if ttl <= timedelta(0):
            raise ValueError("Lease TTL must be positive")

        token = str(uuid4())
        now = utc_now()
        expires_at = now + ttl

        with Session(self.engine) as session:
            session.add(
                OrchestratorLease(
                    resource=resource,
                    holder_id=token,
                    acquired_at=to_db_datetime(now),
                    expires_at=to_db_datetime(expires_at),
                ),
            )
            try:
                session.commit()
                return LeaseHandle(resource=resource, token=token, lock=self)
            except IntegrityError:
                session.rollback()

        # Row exists: take it over only when the previous holder's lease lapsed.
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(OrchestratorLease)
                .where(
                    col(OrchestratorLease.resource) == resource,
                    col(OrchestratorLease.expires_at) <= to_db_datetime(now),
                )
                .values(
                    holder_id=token,
                    acquired_at=to_db_datetime(now),
                    expires_at=to_db_datetime(expires_at),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()

        logger.warning("Took over expired lease on %s", resource)
        return LeaseHandle(resource=resource, token=token, lock=self)

    def release(self, handle: LeaseHandle) -> None:
        with Session(self.engine) as session:
            session.exec(
                delete(OrchestratorLease).where(
                    col(OrchestratorLease.resource) == handle.resource,
                    col(OrchestratorLease.holder_id) == handle.token,
                ),
            )
            session.commit()

    def holder(self, resource: str) -> str | None:
        """Current holder token, ignoring expired rows."""

        with Session(self.engine) as session:
            row = session.get(OrchestratorLease, resource)
            if row is None:
                return None
            if row.expires_at <= to_db_datetime(utc_now()):
                return None
            return row.holder_id
