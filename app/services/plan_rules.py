from __future__ import annotations

from datetime import datetime
from uuid import UUID

from app.core.errors import ErrorCollector
from app.models.plan import Plan, ValidityPeriodUnit
from app.repos.plan_repo import OrganizationPlanRepo

# Approximate month/year lengths used for the billing-cycle check.
_DAYS_PER_UNIT = {
    ValidityPeriodUnit.DAYS: 1,
    ValidityPeriodUnit.MONTHS: 30,
    ValidityPeriodUnit.YEARS: 365,
}


def has_conflicting_plans(
    associations: OrganizationPlanRepo,
    org_id: UUID,
    valid_from: datetime,
    valid_to: datetime | None,
    exclude_id: UUID | None = None,
) -> bool:
    return bool(
        associations.find_conflicting(org_id, valid_from, valid_to, exclude_id)
    )


def matches_billing_cycle(plan: Plan, valid_from: datetime, valid_to: datetime) -> bool:
    span_days = (valid_to - valid_from).days
    expected = plan.validity_period * _DAYS_PER_UNIT[plan.validity_period_unit]
    if plan.validity_period_unit is ValidityPeriodUnit.DAYS:
        return span_days == expected
    return abs(span_days - expected) <= 1


def check_plan_eligible(
    plan: Plan | None, plan_id: UUID, *, has_payment_method: bool
) -> ErrorCollector:
    errors = ErrorCollector()
    if plan is None:
        errors.add("planId", "Plan not found", plan_id)
        return errors
    if not plan.is_active:
        errors.add("planId", "Plan is not active", plan_id)
    if plan.is_deprecated:
        errors.add("planId", "Plan is deprecated and cannot be assigned", plan_id)
    if plan.is_paid and not has_payment_method:
        errors.add("planId", "Valid payment method required for paid plans", plan_id)
    return errors


def check_window(
    plan: Plan | None, valid_from: datetime, valid_to: datetime | None
) -> ErrorCollector:
    errors = ErrorCollector()
    if valid_to is None:
        return errors
    if valid_to <= valid_from:
        errors.add("validTo", "validTo must be after validFrom", valid_to)
        return errors
    if plan is not None and not matches_billing_cycle(plan, valid_from, valid_to):
        errors.add(
            "validTo",
            f"Validity window must match the plan billing period of "
            f"{plan.validity_period} {plan.validity_period_unit.value}",
            valid_to,
        )
    return errors
