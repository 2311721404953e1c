"""Parent/child graph checks over organizations.

All functions here are read-only and must not assume the graph is
currently acyclic: they are what keeps it acyclic.  Every walk carries a
visited set so a corrupted chain terminates, and a missing lookup ends
the chain instead of raising.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core.errors import ErrorCollector
from app.repos.org_repo import OrganizationRepo

logger = logging.getLogger(__name__)

PARENT_FIELD = "parentOrganizationId"


def would_create_cycle(
    orgs: OrganizationRepo, parent_id: UUID, child_id: UUID
) -> bool:
    """True if ``child_id`` appears on the parent chain starting at ``parent_id``."""
    seen: set[UUID] = set()
    current: UUID | None = parent_id
    while current is not None:
        if current == child_id:
            return True
        if current in seen:
            # Pre-existing loop that does not involve child_id.
            logger.warning("Parent chain loop detected at org=%s", current)
            return False
        seen.add(current)
        org = orgs.get_by_id(current)
        current = org.parent_organization_id if org is not None else None
    return False


def compute_depth(orgs: OrganizationRepo, org_id: UUID) -> int:
    """Number of parent hops from ``org_id`` to its root (a root is 0)."""
    depth = 0
    seen = {org_id}
    org = orgs.get_by_id(org_id)
    while org is not None and org.parent_organization_id is not None:
        parent_id = org.parent_organization_id
        if parent_id in seen:
            break
        seen.add(parent_id)
        parent = orgs.get_by_id(parent_id)
        if parent is None:
            break
        depth += 1
        org = parent
    return depth


def subtree_height(orgs: OrganizationRepo, org_id: UUID) -> int:
    """Hops from ``org_id`` down to its deepest descendant (a leaf is 0)."""
    height = 0
    seen = {org_id}
    frontier = [org_id]
    while frontier:
        next_level: list[UUID] = []
        for node in frontier:
            for child in orgs.list_children(node):
                if child.id not in seen:
                    seen.add(child.id)
                    next_level.append(child.id)
        if not next_level:
            break
        height += 1
        frontier = next_level
    return height


def check_parent(
    orgs: OrganizationRepo,
    errors: ErrorCollector,
    parent_id: UUID,
    *,
    max_depth: int,
    org_id: UUID | None = None,
) -> None:
    """Validate attaching ``org_id`` (None on create) under ``parent_id``.

    ``max_depth`` counts levels, so a root alone is depth 1.  On
    re-parenting, the height of the subtree being moved counts too.
    """
    if org_id is not None and parent_id == org_id:
        errors.add(PARENT_FIELD, "Organization cannot be its own parent", parent_id)
        return

    parent = orgs.get_by_id(parent_id)
    if parent is None:
        errors.add(PARENT_FIELD, "Parent organization not found", parent_id)
        return

    if org_id is not None and would_create_cycle(orgs, parent_id, org_id):
        errors.add(
            PARENT_FIELD,
            "Setting this parent would create a circular hierarchy",
            parent_id,
        )
        return

    below = subtree_height(orgs, org_id) if org_id is not None else 0
    levels = compute_depth(orgs, parent_id) + 2 + below
    if levels > max_depth:
        errors.add(
            PARENT_FIELD,
            f"Organization hierarchy cannot exceed {max_depth} levels",
            parent_id,
        )
