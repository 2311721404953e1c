from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from app.models.organization import Organization, OrganizationStatus
from app.schemas.organization import OrganizationUpdate
from app.services.field_diff import FieldChange, compute_changes, values_equal


def _org(**fields: object) -> Organization:
    return Organization.new(name="Acme Corp", abbr="acme", **fields)


def test_unset_fields_are_ignored() -> None:
    assert compute_changes(_org(description="keep"), OrganizationUpdate()) == []


def test_equal_values_produce_no_change() -> None:
    org = _org(description="same")
    update = OrganizationUpdate(name="Acme Corp", description="same")
    assert compute_changes(org, update) == []


def test_changed_fields_in_stable_order() -> None:
    org = _org()
    update = OrganizationUpdate(
        billing_email="ap@acme.io", name="Acme Two", status=OrganizationStatus.ACTIVE
    )
    changes = compute_changes(org, update)
    assert [c.field for c in changes] == ["name", "status", "billing_email"]
    assert changes[0] == FieldChange("name", "Acme Corp", "Acme Two")


def test_explicit_none_clears_nullable_field() -> None:
    parent = uuid4()
    org = _org(parent_organization_id=parent, description="old")
    update = OrganizationUpdate.model_validate(
        {"parentOrganizationId": None, "description": None}
    )
    changes = compute_changes(org, update)
    assert [(c.field, c.old, c.new) for c in changes] == [
        ("description", "old", None),
        ("parent_organization_id", parent, None),
    ]


def test_explicit_none_on_required_field_is_ignored() -> None:
    update = OrganizationUpdate.model_validate({"name": None, "status": None})
    assert compute_changes(_org(), update) == []


def test_camel_case_payload_is_accepted() -> None:
    expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
    update = OrganizationUpdate.model_validate(
        {"displayName": "ACME", "expiresDate": expires.isoformat()}
    )
    changes = compute_changes(_org(), update)
    assert [c.alias for c in changes] == ["displayName", "expiresDate"]
    assert changes[1].new == expires


def test_values_equal_treats_none_pairs() -> None:
    assert values_equal(None, None) is True
    assert values_equal(None, "") is False
    assert values_equal("", None) is False
    assert values_equal("a", "a") is True
