"""Existence checks that short-circuit an operation before any rule runs."""

from __future__ import annotations

from uuid import UUID

from app.core.errors import NotFoundFailure
from app.models.organization import DatabaseSchema, Domain, Organization
from app.repos.org_repo import OrganizationRepo


def require_organization(
    orgs: OrganizationRepo, org_id: UUID, *, include_deleted: bool = False
) -> Organization:
    org = orgs.get_by_id(org_id, include_deleted=include_deleted)
    if org is None:
        raise NotFoundFailure("Organization", org_id)
    return org


def require_domain(org: Organization, domain_id: UUID) -> Domain:
    domain = org.find_domain(domain_id)
    if domain is None:
        raise NotFoundFailure("Domain", domain_id, field="domainId")
    return domain


def require_schema(org: Organization, schema_id: UUID) -> DatabaseSchema:
    schema = org.find_schema(schema_id)
    if schema is None:
        raise NotFoundFailure("Database schema", schema_id, field="schemaId")
    return schema
