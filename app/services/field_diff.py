"""Minimal change set between a stored organization and a partial update.

Only fields the caller explicitly set on the payload are compared, so an
omitted field is never mistaken for "clear this value".  Each resulting
FieldChange becomes one field-scoped write; embedded collections are
never part of the diff.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic.alias_generators import to_camel

from app.models.organization import Organization
from app.schemas.organization import OrganizationUpdate

TRACKED_FIELDS = (
    "name",
    "abbr",
    "display_name",
    "description",
    "status",
    "organization_type",
    "billing_email",
    "expires_date",
    "parent_organization_id",
)

# An explicit None on these means "not provided", never "clear".
_REQUIRED_FIELDS = frozenset(
    {"name", "abbr", "display_name", "status", "organization_type"}
)


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    old: Any
    new: Any

    @property
    def alias(self) -> str:
        return to_camel(self.field)


def values_equal(a: Any, b: Any) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    return a == b


def compute_changes(
    existing: Organization, update: OrganizationUpdate
) -> list[FieldChange]:
    changes: list[FieldChange] = []
    for name in TRACKED_FIELDS:
        if name not in update.model_fields_set:
            continue
        new = getattr(update, name)
        if new is None and name in _REQUIRED_FIELDS:
            continue
        old = getattr(existing, name)
        if not values_equal(old, new):
            changes.append(FieldChange(name, old, new))
    return changes
