"""Domain operations on an organization's embedded domain collection.

Each public function is one logical operation: it takes the
organization's transaction, re-reads the aggregate, runs every rule,
and only then issues field-scoped writes.  The canonical aggregate is
re-read after the transaction and returned.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from app.core.config import SETTINGS, Settings
from app.core.errors import ErrorCollector
from app.models.context import OperationContext
from app.models.organization import Domain, Organization, new_verification_token
from app.repos.dependents_repo import DependentsRepo
from app.repos.org_repo import OrganizationRepo
from app.schemas.organization import DomainCreate, DomainUpdate, DomainVerification
from app.services import domain_rules
from app.services.instrumentation import op_extra, track
from app.services.lookups import require_domain, require_organization

logger = logging.getLogger(__name__)


def add_domain(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: DomainCreate,
    *,
    settings: Settings = SETTINGS,
) -> Organization:
    name = domain_rules.normalize_domain_name(payload.name)
    with track("add_domain", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            domain_rules.check_add(
                orgs,
                org,
                name,
                payload.is_primary,
                platform_domain=settings.platform_domain,
                max_domains=settings.max_domains_per_organization,
            ).raise_if_any("Domain validation failed")

            domain = Domain.new(
                name=name,
                created_at=ctx.now,
                verification_method=payload.verification_method,
                is_primary=payload.is_primary,
            )
            orgs.add_domain(org_id, domain, ctx.now, ctx.actor)

        logger.info(
            "Added domain %s (id=%s)",
            domain.name,
            domain.id,
            extra=op_extra(ctx, "add_domain", org_id),
        )
        return require_organization(orgs, org_id)


def add_default_domain(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    *,
    settings: Settings = SETTINGS,
) -> Domain:
    """Attach ``{abbr}.{platform}`` as a verified primary domain.

    Platform-owned names skip verification and are exempt from the
    platform-suffix reservation; every other add rule still applies.
    """
    with track("add_default_domain", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            name = domain_rules.default_domain_name(org.abbr, settings.platform_domain)
            is_primary = org.primary_domain() is None
            domain_rules.check_add(
                orgs,
                org,
                name,
                is_primary,
                platform_domain=settings.platform_domain,
                max_domains=settings.max_domains_per_organization,
                allow_platform=True,
            ).raise_if_any("Default domain validation failed")

            domain = replace(
                Domain.new(name=name, created_at=ctx.now, is_primary=is_primary),
                is_verified=True,
                verified_at=ctx.now,
            )
            orgs.add_domain(org_id, domain, ctx.now, ctx.actor)

        logger.info(
            "Added default domain %s",
            domain.name,
            extra=op_extra(ctx, "add_default_domain", org_id),
        )
        return domain


def remove_domain(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
    domain_id: UUID,
) -> Organization:
    with track("remove_domain", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            domain = require_domain(org, domain_id)
            _, user_count = dependents.has_users_in_domain(org_id, domain.name)
            domain_rules.check_remove(org, domain, user_count).raise_if_any(
                "Domain removal validation failed"
            )
            orgs.remove_domain(org_id, domain_id, ctx.now, ctx.actor)

        logger.info(
            "Removed domain %s",
            domain.name,
            extra=op_extra(ctx, "remove_domain", org_id),
        )
        return require_organization(orgs, org_id)


def update_domain(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    domain_id: UUID,
    payload: DomainUpdate,
    *,
    settings: Settings = SETTINGS,
) -> Organization:
    """Rename a domain or switch its verification method.

    Either change invalidates ownership proof: the domain goes back to
    unverified with a fresh token and a new verification window.
    """
    with track("update_domain", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            domain = require_domain(org, domain_id)
            new_name = (
                domain_rules.normalize_domain_name(payload.name)
                if payload.name is not None
                else domain.name
            )
            new_method = payload.verification_method or domain.verification_method
            if new_name == domain.name and new_method is domain.verification_method:
                outcome.skip()
                return org

            domain_rules.check_rename(
                orgs, domain, new_name, platform_domain=settings.platform_domain
            ).raise_if_any("Domain update validation failed")

            orgs.update_domain(
                org_id,
                replace(
                    domain,
                    name=new_name,
                    verification_method=new_method,
                    verification_token=new_verification_token(),
                    is_verified=False,
                    verified_at=None,
                    created_at=ctx.now,
                ),
                ctx.now,
                ctx.actor,
            )

        logger.info(
            "Updated domain %s -> %s method=%s",
            domain.name,
            new_name,
            new_method.value,
            extra=op_extra(ctx, "update_domain", org_id),
        )
        return require_organization(orgs, org_id)


def verify_domain(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    domain_id: UUID,
    payload: DomainVerification,
    *,
    settings: Settings = SETTINGS,
) -> Organization:
    with track("verify_domain", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            domain = require_domain(org, domain_id)
            domain_rules.check_verify(
                domain,
                payload.verification_method,
                payload.verification_token,
                now=ctx.now,
                expiry_hours=settings.domain_verification_expiry_hours,
            ).raise_if_any("Domain verification failed")

            orgs.update_domain(
                org_id,
                replace(domain, is_verified=True, verified_at=ctx.now),
                ctx.now,
                ctx.actor,
            )

        logger.info(
            "Verified domain %s",
            domain.name,
            extra=op_extra(ctx, "verify_domain", org_id),
        )
        return require_organization(orgs, org_id)


def set_primary_domain(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    domain_id: UUID,
) -> Organization:
    with track("set_primary_domain", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            domain = require_domain(org, domain_id)
            if domain.is_primary:
                outcome.skip()
                return org
            if not domain.is_verified:
                errors = ErrorCollector()
                errors.add(
                    "domainId",
                    "Domain must be verified before it can be set as primary",
                    domain_id,
                )
                errors.raise_if_any("Set primary domain validation failed")
            orgs.set_primary_domain(org_id, domain_id, ctx.now, ctx.actor)

        logger.info(
            "Set primary domain %s",
            domain.name,
            extra=op_extra(ctx, "set_primary_domain", org_id),
        )
        return require_organization(orgs, org_id)


def regenerate_verification_token(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    domain_id: UUID,
) -> Organization:
    """Issue a new token and restart the verification window."""
    with track("regenerate_verification_token", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            domain = require_domain(org, domain_id)
            if domain.is_verified:
                errors = ErrorCollector()
                errors.add("domainId", "Domain is already verified", domain_id)
                errors.raise_if_any("Token regeneration failed")
            orgs.update_domain(
                org_id,
                replace(
                    domain,
                    verification_token=new_verification_token(),
                    created_at=ctx.now,
                ),
                ctx.now,
                ctx.actor,
            )

        logger.info(
            "Regenerated verification token for domain %s",
            domain.name,
            extra=op_extra(ctx, "regenerate_verification_token", org_id),
        )
        return require_organization(orgs, org_id)


def rename_default_domain(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org: Organization,
    new_abbr: str,
    *,
    settings: Settings = SETTINGS,
) -> Domain | None:
    """Move ``{old}.{platform}`` to ``{new}.{platform}`` in place.

    Must run inside the caller's transaction on ``org.id``.  Keeps the
    domain id along with its verified, primary and token state.  Returns
    None when the organization has no default domain.
    """
    old_name = domain_rules.default_domain_name(org.abbr, settings.platform_domain)
    domain = org.find_domain_by_name(old_name)
    if domain is None:
        return None
    renamed = replace(
        domain,
        name=domain_rules.default_domain_name(new_abbr, settings.platform_domain),
    )
    orgs.update_domain(org.id, renamed, ctx.now, ctx.actor)
    logger.info(
        "Renamed default domain %s -> %s",
        old_name,
        renamed.name,
        extra=op_extra(ctx, "update_organization", org.id),
    )
    return renamed
