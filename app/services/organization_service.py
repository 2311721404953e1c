"""Organization lifecycle: create, partial update, status changes,
settings and metadata.

Every mutation validates against a freshly loaded aggregate inside the
organization's transaction and only writes once all checks have passed.
A write that fails partway (for example the default-domain rename that
follows an abbreviation change) rolls the whole operation back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from app.core.config import SETTINGS, Settings
from app.core.errors import ErrorCollector
from app.core.metrics import SIDE_EFFECT_FAILURES
from app.models.context import OperationContext
from app.models.organization import (
    DatabaseConfig,
    Organization,
    OrganizationStatus,
)
from app.repos.dependents_repo import DependentsRepo
from app.repos.org_repo import OrganizationRepo
from app.schemas.organization import (
    MetadataUpdate,
    OrganizationCreate,
    OrganizationUpdate,
    SettingUpdate,
)
from app.services import (
    domain_service,
    field_diff,
    hierarchy,
    organization_rules,
    schema_rules,
    schema_service,
    status_guard,
)
from app.services.instrumentation import op_extra, track
from app.services.lookups import require_organization
from app.services.status_guard import GuardDecision

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SideEffectFailure:
    effect: str  # default_domain|default_schema
    message: str


@dataclass(frozen=True, slots=True)
class CreateOrganizationResult:
    organization: Organization
    side_effect_failures: tuple[SideEffectFailure, ...] = ()

    @property
    def partial(self) -> bool:
        return bool(self.side_effect_failures)


def get_organization(orgs: OrganizationRepo, org_id: UUID) -> Organization:
    return require_organization(orgs, org_id)


def list_child_organizations(
    orgs: OrganizationRepo, org_id: UUID
) -> list[Organization]:
    require_organization(orgs, org_id)
    return orgs.list_children(org_id)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def create_organization(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    payload: OrganizationCreate,
    *,
    settings: Settings = SETTINGS,
) -> CreateOrganizationResult:
    """Create an organization in PENDING status.

    The default domain and default AUTH schema follow as best-effort
    steps.  Their failures do not undo the organization; they are
    returned on the result and the result is marked partial.
    """
    with track("create_organization", ctx):
        errors = ErrorCollector()
        organization_rules.check_name(orgs, errors, payload.name)
        organization_rules.check_abbr(orgs, errors, payload.abbr)
        organization_rules.check_expires(errors, payload.expires_date, ctx.now)
        if payload.parent_organization_id is not None:
            hierarchy.check_parent(
                orgs,
                errors,
                payload.parent_organization_id,
                max_depth=settings.max_hierarchy_depth,
            )
        database = None
        if payload.connection_string:
            errors.extend(
                schema_rules.check_database_config(
                    payload.connection_string, payload.certificate
                ).errors
            )
            database = DatabaseConfig(
                connection_string=payload.connection_string,
                certificate=payload.certificate,
            )
        errors.raise_if_any("Organization validation failed")

        org = Organization.new(
            name=payload.name,
            abbr=payload.abbr,
            display_name=payload.display_name,
            organization_type=payload.organization_type,
            description=payload.description,
            billing_email=payload.billing_email,
            parent_organization_id=payload.parent_organization_id,
            expires_date=payload.expires_date,
            database=database,
            created_at=ctx.now,
            created_by=ctx.actor,
        )
        with orgs.transaction(org.id):
            orgs.add(org)
        logger.info(
            "Created organization %s abbr=%s",
            org.name,
            org.abbr,
            extra=op_extra(ctx, "create_organization", org.id),
        )

    failures: list[SideEffectFailure] = []
    for effect, step in (
        ("default_domain", domain_service.add_default_domain),
        ("default_schema", schema_service.add_default_schema),
    ):
        try:
            step(orgs, ctx, org.id, settings=settings)
        except Exception as exc:
            SIDE_EFFECT_FAILURES.labels(effect=effect).inc()
            logger.exception(
                "Best-effort %s failed for new organization",
                effect,
                extra=op_extra(ctx, "create_organization", org.id),
            )
            failures.append(
                SideEffectFailure(effect, getattr(exc, "message", str(exc)))
            )

    return CreateOrganizationResult(
        organization=require_organization(orgs, org.id),
        side_effect_failures=tuple(failures),
    )


# ---------------------------------------------------------------------------
# Partial update
# ---------------------------------------------------------------------------


def update_organization(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: OrganizationUpdate,
    *,
    settings: Settings = SETTINGS,
) -> Organization:
    with track("update_organization", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            changes = field_diff.compute_changes(org, payload)
            if not changes:
                outcome.skip()
                return org

            by_field = {c.field: c for c in changes}
            errors = ErrorCollector()
            organization_rules.check_suspended_restrictions(
                errors, org, set(by_field)
            )
            if "name" in by_field:
                organization_rules.check_name(
                    orgs, errors, by_field["name"].new, exclude_id=org_id
                )
            if "abbr" in by_field:
                organization_rules.check_abbr(
                    orgs, errors, by_field["abbr"].new, exclude_id=org_id
                )
            if "expires_date" in by_field:
                organization_rules.check_expires(
                    errors, by_field["expires_date"].new, ctx.now
                )
            parent = by_field.get("parent_organization_id")
            if parent is not None and parent.new is not None:
                hierarchy.check_parent(
                    orgs,
                    errors,
                    parent.new,
                    max_depth=settings.max_hierarchy_depth,
                    org_id=org_id,
                )
            errors.raise_if_any("Organization update validation failed")

            status_change = by_field.pop("status", None)
            decision = GuardDecision.SKIP
            if status_change is not None:
                # Preconditions apply to the organization as it will be
                # after the other fields land, e.g. under its new parent.
                prospective = replace(
                    org, **{c.field: c.new for c in by_field.values()}
                )
                decision = status_guard.check_transition(
                    orgs, dependents, prospective, status_change.new
                )

            for change in by_field.values():
                orgs.write_field(org_id, change.field, change.new, ctx.now, ctx.actor)
                if change.field == "abbr":
                    domain_service.rename_default_domain(
                        orgs, ctx, org, change.new, settings=settings
                    )
            if status_change is not None and decision is GuardDecision.PROCEED:
                _apply_status(orgs, ctx, org_id, status_change.new)

        logger.info(
            "Updated organization fields=%s",
            ",".join(c.alias for c in changes),
            extra=op_extra(ctx, "update_organization", org_id),
        )
        return require_organization(orgs, org_id, include_deleted=True)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def _apply_status(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    target: OrganizationStatus,
) -> None:
    if target is OrganizationStatus.DELETED:
        orgs.soft_delete(org_id, ctx.now, ctx.actor)
    else:
        orgs.set_status(org_id, target, ctx.now, ctx.actor)


def _change_status(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
    target: OrganizationStatus,
    operation: str,
) -> Organization:
    with track(operation, ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id, include_deleted=True)
            decision = status_guard.check_transition(orgs, dependents, org, target)
            if decision is GuardDecision.SKIP:
                outcome.skip()
                return org
            _apply_status(orgs, ctx, org_id, target)

        logger.info(
            "Organization status %s -> %s",
            org.status.value,
            target.value,
            extra=op_extra(ctx, operation, org_id),
        )
        return require_organization(orgs, org_id, include_deleted=True)


def activate_organization(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
) -> Organization:
    return _change_status(
        orgs,
        dependents,
        ctx,
        org_id,
        OrganizationStatus.ACTIVE,
        "activate_organization",
    )


def deactivate_organization(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
) -> Organization:
    return _change_status(
        orgs,
        dependents,
        ctx,
        org_id,
        OrganizationStatus.SUSPENDED,
        "deactivate_organization",
    )


def delete_organization(
    orgs: OrganizationRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
) -> Organization:
    """Soft delete. Deleting an already deleted organization is a no-op."""
    return _change_status(
        orgs,
        dependents,
        ctx,
        org_id,
        OrganizationStatus.DELETED,
        "delete_organization",
    )


# ---------------------------------------------------------------------------
# Setting / metadata
# ---------------------------------------------------------------------------


def update_setting(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: SettingUpdate,
) -> Organization:
    with track("update_setting", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            setting = replace(
                org.setting,
                **{k: v for k, v in payload.model_dump().items() if v is not None},
            )
            if setting == org.setting:
                outcome.skip()
                return org
            errors = ErrorCollector()
            organization_rules.check_setting(errors, setting)
            errors.raise_if_any("Organization setting validation failed")
            orgs.update_setting(org_id, setting, ctx.now, ctx.actor)

        logger.info(
            "Updated organization setting",
            extra=op_extra(ctx, "update_setting", org_id),
        )
        return require_organization(orgs, org_id)


def update_metadata(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: MetadataUpdate,
) -> Organization:
    with track("update_metadata", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            metadata = replace(
                org.metadata,
                **{k: v for k, v in payload.model_dump().items() if v is not None},
            )
            if metadata == org.metadata:
                outcome.skip()
                return org
            errors = ErrorCollector()
            organization_rules.check_metadata(
                errors, metadata, org.organization_type
            )
            errors.raise_if_any("Organization metadata validation failed")
            orgs.update_metadata(org_id, metadata, ctx.now, ctx.actor)

        logger.info(
            "Updated organization metadata",
            extra=op_extra(ctx, "update_metadata", org_id),
        )
        return require_organization(orgs, org_id)
