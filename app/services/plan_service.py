"""Plan associations: which plan an organization is on, and when.

At most one association per organization is active at any committed
point.  Every path that turns an association off goes through
``_deactivate``, whether the trigger is a caller, a newer association
superseding it, or the expiry sweep run by an external scheduler.
Activation always switches the others off before the target is saved.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from uuid import UUID

from app.core.errors import ErrorCollector, NotFoundFailure
from app.core.metrics import PLAN_DEACTIVATIONS
from app.models.context import OperationContext
from app.models.plan import OrganizationPlan
from app.repos.dependents_repo import DependentsRepo
from app.repos.org_repo import OrganizationRepo
from app.repos.plan_repo import OrganizationPlanRepo, PlanRepo
from app.schemas.plan import PlanAssociationCreate, PlanAssociationUpdate
from app.services import plan_rules
from app.services.instrumentation import op_extra, track
from app.services.lookups import require_organization

logger = logging.getLogger(__name__)


def require_association(
    associations: OrganizationPlanRepo, org_id: UUID, association_id: UUID
) -> OrganizationPlan:
    assoc = associations.get(association_id)
    if assoc is None or assoc.is_deleted or assoc.organization_id != org_id:
        raise NotFoundFailure(
            "Plan association", association_id, field="planAssociationId"
        )
    return assoc


def _deactivate(
    associations: OrganizationPlanRepo,
    ctx: OperationContext,
    assoc: OrganizationPlan,
    reason: str,
) -> OrganizationPlan:
    updated = replace(
        assoc, is_active=False, updated_at=ctx.now, updated_by=ctx.actor
    )
    associations.save(updated)
    PLAN_DEACTIVATIONS.labels(reason=reason).inc()
    logger.info(
        "Deactivated plan association %s reason=%s",
        assoc.id,
        reason,
        extra=op_extra(ctx, "deactivate_plan", assoc.organization_id),
    )
    return updated


def _deactivate_others(
    associations: OrganizationPlanRepo,
    ctx: OperationContext,
    org_id: UUID,
    keep_id: UUID | None,
) -> None:
    for other in associations.find_active(org_id):
        if other.id != keep_id:
            _deactivate(associations, ctx, other, "superseded")


def _create(
    orgs: OrganizationRepo,
    plans: PlanRepo,
    associations: OrganizationPlanRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: PlanAssociationCreate,
    errors: ErrorCollector,
) -> OrganizationPlan:
    require_organization(orgs, org_id)
    plan = plans.get_by_id(payload.plan_id)
    valid_from = payload.valid_from or ctx.now

    errors.extend(
        plan_rules.check_plan_eligible(
            plan,
            payload.plan_id,
            has_payment_method=dependents.has_valid_payment_method(org_id),
        ).errors
    )
    errors.extend(plan_rules.check_window(plan, valid_from, payload.valid_to).errors)
    errors.raise_if_any("Plan association validation failed")

    if payload.is_active:
        _deactivate_others(associations, ctx, org_id, keep_id=None)

    assoc = OrganizationPlan.new(
        organization_id=org_id,
        plan_id=payload.plan_id,
        valid_from=valid_from,
        valid_to=payload.valid_to,
        is_active=payload.is_active,
        comment=payload.comment,
        created_at=ctx.now,
        created_by=ctx.actor,
    )
    associations.save(assoc)
    return assoc


def associate_plan(
    orgs: OrganizationRepo,
    plans: PlanRepo,
    associations: OrganizationPlanRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: PlanAssociationCreate,
) -> OrganizationPlan:
    """Associate a plan. An active association supersedes the current one."""
    with track("associate_plan", ctx, org_id):
        with associations.transaction(org_id):
            assoc = _create(
                orgs,
                plans,
                associations,
                dependents,
                ctx,
                org_id,
                payload,
                ErrorCollector(),
            )
        logger.info(
            "Associated plan %s (association=%s active=%s)",
            assoc.plan_id,
            assoc.id,
            assoc.is_active,
            extra=op_extra(ctx, "associate_plan", org_id),
        )
        return assoc


def change_plan(
    orgs: OrganizationRepo,
    plans: PlanRepo,
    associations: OrganizationPlanRepo,
    dependents: DependentsRepo,
    ctx: OperationContext,
    org_id: UUID,
    new_plan_id: UUID,
    *,
    comment: str | None = None,
) -> OrganizationPlan:
    with track("change_plan", ctx, org_id):
        with associations.transaction(org_id):
            errors = ErrorCollector()
            if any(a.plan_id == new_plan_id for a in associations.find_active(org_id)):
                errors.add(
                    "planId", "Organization is already on this plan", new_plan_id
                )
            assoc = _create(
                orgs,
                plans,
                associations,
                dependents,
                ctx,
                org_id,
                PlanAssociationCreate(
                    plan_id=new_plan_id, is_active=True, comment=comment
                ),
                errors,
            )
        logger.info(
            "Changed plan to %s (association=%s)",
            new_plan_id,
            assoc.id,
            extra=op_extra(ctx, "change_plan", org_id),
        )
        return assoc


def update_plan_association(
    plans: PlanRepo,
    associations: OrganizationPlanRepo,
    ctx: OperationContext,
    org_id: UUID,
    association_id: UUID,
    payload: PlanAssociationUpdate,
) -> OrganizationPlan:
    """Change comment and validity window; nothing else is mutable."""
    with track("update_plan_association", ctx, org_id) as outcome:
        with associations.transaction(org_id):
            assoc = require_association(associations, org_id, association_id)
            changes = payload.model_dump(exclude_unset=True)
            if changes.get("valid_from") is None:
                changes.pop("valid_from", None)
            updated = replace(assoc, **changes)
            if updated == assoc:
                outcome.skip()
                return assoc

            errors = ErrorCollector()
            window_changed = (updated.valid_from, updated.valid_to) != (
                assoc.valid_from,
                assoc.valid_to,
            )
            if window_changed:
                plan = plans.get_by_id(assoc.plan_id)
                errors.extend(
                    plan_rules.check_window(
                        plan, updated.valid_from, updated.valid_to
                    ).errors
                )
                if plan_rules.has_conflicting_plans(
                    associations,
                    org_id,
                    updated.valid_from,
                    updated.valid_to,
                    exclude_id=assoc.id,
                ):
                    errors.add(
                        "validFrom",
                        "Validity period conflicts with existing plan associations",
                    )
            errors.raise_if_any("Plan association validation failed")

            updated = replace(updated, updated_at=ctx.now, updated_by=ctx.actor)
            associations.save(updated)

        logger.info(
            "Updated plan association %s",
            association_id,
            extra=op_extra(ctx, "update_plan_association", org_id),
        )
        return updated


def activate_plan(
    associations: OrganizationPlanRepo,
    ctx: OperationContext,
    org_id: UUID,
    association_id: UUID,
) -> OrganizationPlan:
    with track("activate_plan", ctx, org_id):
        with associations.transaction(org_id):
            assoc = require_association(associations, org_id, association_id)
            errors = ErrorCollector()
            if assoc.is_active:
                errors.add("isActive", "Plan association is already active", assoc.id)
            if assoc.is_expired(ctx.now):
                errors.add(
                    "validTo", "Cannot activate expired plan association", assoc.valid_to
                )
            errors.raise_if_any("Plan activation failed")

            _deactivate_others(associations, ctx, org_id, keep_id=assoc.id)
            activated = replace(
                assoc, is_active=True, updated_at=ctx.now, updated_by=ctx.actor
            )
            associations.save(activated)

        logger.info(
            "Activated plan association %s",
            association_id,
            extra=op_extra(ctx, "activate_plan", org_id),
        )
        return activated


def deactivate_plan(
    associations: OrganizationPlanRepo,
    ctx: OperationContext,
    org_id: UUID,
    association_id: UUID,
) -> OrganizationPlan:
    """Turn an active association off. Already-inactive is an error."""
    with track("deactivate_plan", ctx, org_id):
        with associations.transaction(org_id):
            assoc = require_association(associations, org_id, association_id)
            if not assoc.is_active:
                errors = ErrorCollector()
                errors.add("isActive", "Plan association is already inactive", assoc.id)
                errors.raise_if_any("Plan deactivation failed")
            return _deactivate(associations, ctx, assoc, "manual")


def remove_plan_association(
    associations: OrganizationPlanRepo,
    ctx: OperationContext,
    org_id: UUID,
    association_id: UUID,
) -> OrganizationPlan:
    with track("remove_plan_association", ctx, org_id):
        with associations.transaction(org_id):
            assoc = require_association(associations, org_id, association_id)
            if assoc.is_active:
                assoc = _deactivate(associations, ctx, assoc, "manual")
            removed = replace(assoc, deleted_at=ctx.now, deleted_by=ctx.actor)
            associations.save(removed)

        logger.info(
            "Removed plan association %s",
            association_id,
            extra=op_extra(ctx, "remove_plan_association", org_id),
        )
        return removed


def process_expired_plans(
    associations: OrganizationPlanRepo, ctx: OperationContext
) -> list[OrganizationPlan]:
    """Deactivate every active association whose window has closed.

    Meant to be driven by an external scheduler with a system context.
    Each organization is handled in its own transaction.
    """
    deactivated: list[OrganizationPlan] = []
    with track("process_expired_plans", ctx):
        for candidate in associations.find_expired_active(ctx.now):
            with associations.transaction(candidate.organization_id):
                assoc = associations.get(candidate.id)
                if assoc is None or not assoc.is_active or not assoc.is_expired(ctx.now):
                    continue
                deactivated.append(_deactivate(associations, ctx, assoc, "expired"))
        logger.info(
            "Expired plan sweep deactivated %d associations",
            len(deactivated),
            extra=op_extra(ctx, "process_expired_plans"),
        )
    return deactivated


def get_current_active_plan(
    associations: OrganizationPlanRepo, org_id: UUID, now: datetime
) -> OrganizationPlan | None:
    return next(
        (a for a in associations.find_active(org_id) if a.is_currently_valid(now)),
        None,
    )


def list_plan_history(
    associations: OrganizationPlanRepo, org_id: UUID
) -> list[OrganizationPlan]:
    """All associations including removed ones, newest window first."""
    return sorted(
        associations.list_by_org(org_id, include_deleted=True),
        key=lambda a: a.valid_from,
        reverse=True,
    )
