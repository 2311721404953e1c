from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from app.core.config import SETTINGS
from app.core.errors import ConflictFailure
from app.models.plan import OrganizationPlan, Plan, windows_overlap


class PlanRepo(Protocol):
    def get_by_id(self, plan_id: UUID) -> Plan | None: ...
    def add(self, plan: Plan) -> None: ...


class InMemoryPlanRepo:
    """Plan catalog. Read-only to the engine apart from seeding."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Plan] = {}

    def get_by_id(self, plan_id: UUID) -> Plan | None:
        return self._by_id.get(plan_id)

    def add(self, plan: Plan) -> None:
        if plan.id in self._by_id:
            raise ValueError("plan already exists")
        self._by_id[plan.id] = plan


class OrganizationPlanRepo(Protocol):
    def transaction(self, org_id: UUID) -> Any: ...
    def get(self, association_id: UUID) -> OrganizationPlan | None: ...
    def save(self, association: OrganizationPlan) -> None: ...
    def list_by_org(
        self, org_id: UUID, *, include_deleted: bool = False
    ) -> list[OrganizationPlan]: ...
    def find_active(self, org_id: UUID) -> list[OrganizationPlan]: ...
    def find_conflicting(
        self,
        org_id: UUID,
        valid_from: datetime,
        valid_to: datetime | None,
        exclude_id: UUID | None = None,
    ) -> list[OrganizationPlan]: ...
    def find_expired_active(self, now: datetime) -> list[OrganizationPlan]: ...


class InMemoryOrganizationPlanRepo:
    """Plan associations, serialized per organization.

    Same transaction contract as the organization store: one lock per
    organization id, and every association of that organization is
    restored if the block raises.
    """

    def __init__(
        self, *, lock_timeout: float = SETTINGS.org_lock_timeout_seconds
    ) -> None:
        self._by_id: dict[UUID, OrganizationPlan] = {}
        self._locks: dict[UUID, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._lock_timeout = lock_timeout

    def _lock_for(self, org_id: UUID) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(org_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[org_id] = lock
            return lock

    @contextmanager
    def transaction(self, org_id: UUID) -> Iterator[None]:
        lock = self._lock_for(org_id)
        if not lock.acquire(timeout=self._lock_timeout):
            raise ConflictFailure(
                f"Plans of organization {org_id} are being modified by another request"
            )
        snapshot = {
            k: v for k, v in self._by_id.items() if v.organization_id == org_id
        }
        try:
            yield
        except BaseException:
            for k in [
                k for k, v in self._by_id.items() if v.organization_id == org_id
            ]:
                del self._by_id[k]
            self._by_id.update(snapshot)
            raise
        finally:
            lock.release()

    def get(self, association_id: UUID) -> OrganizationPlan | None:
        return self._by_id.get(association_id)

    def save(self, association: OrganizationPlan) -> None:
        self._by_id[association.id] = association

    def list_by_org(
        self, org_id: UUID, *, include_deleted: bool = False
    ) -> list[OrganizationPlan]:
        items = [
            p
            for p in self._by_id.values()
            if p.organization_id == org_id and (include_deleted or not p.is_deleted)
        ]
        return sorted(items, key=lambda p: p.valid_from)

    def find_active(self, org_id: UUID) -> list[OrganizationPlan]:
        return [p for p in self.list_by_org(org_id) if p.is_active]

    def find_conflicting(
        self,
        org_id: UUID,
        valid_from: datetime,
        valid_to: datetime | None,
        exclude_id: UUID | None = None,
    ) -> list[OrganizationPlan]:
        """Active associations whose window overlaps [valid_from, valid_to)."""
        return [
            p
            for p in self.find_active(org_id)
            if p.id != exclude_id
            and windows_overlap(p.valid_from, p.valid_to, valid_from, valid_to)
        ]

    def find_expired_active(self, now: datetime) -> list[OrganizationPlan]:
        return [
            p
            for p in self._by_id.values()
            if p.is_active and not p.is_deleted and p.is_expired(now)
        ]
