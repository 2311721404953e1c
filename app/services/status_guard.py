"""Organization lifecycle state machine.

    PENDING -> ACTIVE <-> SUSPENDED
    any     -> DELETED   (terminal)

``check_transition`` only decides; it never writes.  A request for the
status the organization already has is a SKIP, not an error, so
activate/delete are idempotent.  Every unmet precondition is collected
before raising so the caller sees all of them at once.
"""

from __future__ import annotations

from enum import Enum

from app.core.errors import ErrorCollector, PreconditionFailure
from app.models.organization import Organization, OrganizationStatus
from app.repos.dependents_repo import DependentsRepo
from app.repos.org_repo import OrganizationRepo

_ALLOWED: dict[OrganizationStatus, frozenset[OrganizationStatus]] = {
    OrganizationStatus.PENDING: frozenset(
        {OrganizationStatus.ACTIVE, OrganizationStatus.DELETED}
    ),
    OrganizationStatus.ACTIVE: frozenset(
        {OrganizationStatus.SUSPENDED, OrganizationStatus.DELETED}
    ),
    OrganizationStatus.SUSPENDED: frozenset(
        {OrganizationStatus.ACTIVE, OrganizationStatus.DELETED}
    ),
    OrganizationStatus.DELETED: frozenset(),
}


class GuardDecision(str, Enum):
    PROCEED = "PROCEED"
    SKIP = "SKIP"


def is_allowed(current: OrganizationStatus, target: OrganizationStatus) -> bool:
    return target in _ALLOWED[current]


def check_transition(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    org: Organization,
    target: OrganizationStatus,
) -> GuardDecision:
    current = org.status
    if current is target:
        return GuardDecision.SKIP

    errors = ErrorCollector()
    if current is OrganizationStatus.DELETED:
        errors.add(
            "status",
            f"Organization is deleted and cannot transition to {target.value}",
            current.value,
        )
        errors.raise_if_any("Invalid status transition", PreconditionFailure)

    if not is_allowed(current, target):
        errors.add(
            "status",
            f"Cannot transition from {current.value} to {target.value}",
            current.value,
        )
        errors.raise_if_any("Invalid status transition", PreconditionFailure)

    if target is OrganizationStatus.ACTIVE:
        _check_activation(orgs, org, errors)
    else:
        _check_dependents(orgs, dependents, org, target, errors)

    errors.raise_if_any(
        f"Cannot change organization status to {target.value}", PreconditionFailure
    )
    return GuardDecision.PROCEED


def _check_activation(
    orgs: OrganizationRepo, org: Organization, errors: ErrorCollector
) -> None:
    if org.database is None or not org.database.is_configured:
        errors.add(
            "database",
            "Database configuration with a connection string is required to activate",
        )
    if org.parent_organization_id is not None:
        parent = orgs.get_by_id(org.parent_organization_id)
        if parent is None or parent.status is not OrganizationStatus.ACTIVE:
            errors.add(
                "parentOrganizationId",
                "Parent organization must be ACTIVE",
                org.parent_organization_id,
            )


def _check_dependents(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    org: Organization,
    target: OrganizationStatus,
    errors: ErrorCollector,
) -> None:
    verb = "delete" if target is OrganizationStatus.DELETED else "deactivate"
    if orgs.has_active_children(org.id):
        errors.add(
            "childOrganizations",
            f"Cannot {verb} organization with active child organizations",
        )
    if dependents.has_active_tenants(org.id):
        errors.add("tenants", f"Cannot {verb} organization with active tenants")
