from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4


def windows_overlap(
    a_from: datetime,
    a_to: datetime | None,
    b_from: datetime,
    b_to: datetime | None,
) -> bool:
    """Half-open [from, to) overlap; a missing end is open-ended."""
    a_ends_after_b_starts = a_to is None or b_from < a_to
    b_ends_after_a_starts = b_to is None or a_from < b_to
    return a_ends_after_b_starts and b_ends_after_a_starts


class ValidityPeriodUnit(str, Enum):
    DAYS = "DAYS"
    MONTHS = "MONTHS"
    YEARS = "YEARS"


@dataclass(frozen=True, slots=True)
class Plan:
    id: UUID
    name: str
    type: str  # BASIC|STANDARD|PREMIUM|ENTERPRISE|CUSTOM
    validity_period: int
    validity_period_unit: ValidityPeriodUnit
    price: float = 0.0
    is_active: bool = True
    is_deprecated: bool = False

    @staticmethod
    def new(
        *,
        name: str,
        type: str,
        validity_period: int,
        validity_period_unit: ValidityPeriodUnit,
        price: float = 0.0,
    ) -> Plan:
        return Plan(
            id=uuid4(),
            name=name,
            type=type,
            validity_period=validity_period,
            validity_period_unit=validity_period_unit,
            price=price,
        )

    @property
    def is_paid(self) -> bool:
        return self.price > 0


@dataclass(frozen=True, slots=True)
class OrganizationPlan:
    id: UUID
    organization_id: UUID
    plan_id: UUID
    valid_from: datetime
    valid_to: datetime | None = None  # None = open-ended
    is_active: bool = False
    comment: str | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None
    deleted_at: datetime | None = None
    deleted_by: str | None = None

    @staticmethod
    def new(
        *,
        organization_id: UUID,
        plan_id: UUID,
        valid_from: datetime,
        valid_to: datetime | None = None,
        is_active: bool = False,
        comment: str | None = None,
        created_at: datetime | None = None,
        created_by: str | None = None,
    ) -> OrganizationPlan:
        return OrganizationPlan(
            id=uuid4(),
            organization_id=organization_id,
            plan_id=plan_id,
            valid_from=valid_from,
            valid_to=valid_to,
            is_active=is_active,
            comment=comment,
            created_at=created_at,
            created_by=created_by,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_expired(self, now: datetime) -> bool:
        return self.valid_to is not None and now >= self.valid_to

    def is_currently_valid(self, now: datetime) -> bool:
        return (
            self.is_active
            and not self.is_deleted
            and self.valid_from <= now
            and not self.is_expired(now)
        )
