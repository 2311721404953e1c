"""Read-only view of resources that live outside the organization aggregate.

Users, tenants and billing are owned by other services.  The engine only
needs yes/no answers (and a user count for error messages) to decide
whether a status change or domain removal may proceed.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID


class DependentsRepo(Protocol):
    def has_users_in_domain(self, org_id: UUID, domain_name: str) -> tuple[bool, int]: ...
    def has_active_tenants(self, org_id: UUID) -> bool: ...
    def has_valid_payment_method(self, org_id: UUID) -> bool: ...


class InMemoryDependentsRepo:
    def __init__(self) -> None:
        self._domain_users: dict[tuple[UUID, str], int] = {}
        self._active_tenants: dict[UUID, int] = {}
        self._payment_methods: set[UUID] = set()

    # --- seeding ---

    def set_domain_users(self, org_id: UUID, domain_name: str, count: int) -> None:
        self._domain_users[(org_id, domain_name.lower())] = count

    def set_active_tenants(self, org_id: UUID, count: int) -> None:
        self._active_tenants[org_id] = count

    def set_payment_method(self, org_id: UUID, valid: bool = True) -> None:
        if valid:
            self._payment_methods.add(org_id)
        else:
            self._payment_methods.discard(org_id)

    # --- queries ---

    def has_users_in_domain(self, org_id: UUID, domain_name: str) -> tuple[bool, int]:
        count = self._domain_users.get((org_id, domain_name.lower()), 0)
        return count > 0, count

    def has_active_tenants(self, org_id: UUID) -> bool:
        return self._active_tenants.get(org_id, 0) > 0

    def has_valid_payment_method(self, org_id: UUID) -> bool:
        return org_id in self._payment_methods
