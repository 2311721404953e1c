from __future__ import annotations

from uuid import uuid4

import pytest

from app.core.errors import (
    ConflictFailure,
    ErrorCollector,
    NotFoundFailure,
    PreconditionFailure,
    ValidationFailure,
)


def test_collector_raises_nothing_when_empty() -> None:
    errors = ErrorCollector()
    errors.raise_if_any("should not raise")
    assert not errors
    assert len(errors) == 0


def test_collector_raises_with_every_error() -> None:
    errors = ErrorCollector()
    errors.add("name", "Organization name already exists", "Acme")
    errors.add("abbr", "Organization abbreviation already exists", "acme")

    with pytest.raises(ValidationFailure) as exc_info:
        errors.raise_if_any("Organization validation failed")

    exc = exc_info.value
    assert exc.message == "Organization validation failed"
    assert exc.fields() == ["name", "abbr"]


def test_collector_raises_requested_type() -> None:
    errors = ErrorCollector()
    errors.add("tenants", "Cannot delete organization with active tenants")
    with pytest.raises(PreconditionFailure):
        errors.raise_if_any("blocked", PreconditionFailure)


def test_precondition_failure_is_a_validation_failure() -> None:
    assert issubclass(PreconditionFailure, ValidationFailure)


def test_only_conflict_is_retryable() -> None:
    assert ConflictFailure.retryable is True
    assert ValidationFailure.retryable is False
    assert NotFoundFailure.retryable is False


def test_not_found_message_names_entity_and_id() -> None:
    org_id = uuid4()
    exc = NotFoundFailure("Organization", org_id)
    assert exc.message == f"Organization not found with ID: {org_id}"
    assert exc.fields() == ["id"]


def test_to_dict_shape() -> None:
    errors = ErrorCollector()
    errors.add("isPrimary", "Organization already has a primary domain", True)
    with pytest.raises(ValidationFailure) as exc_info:
        errors.raise_if_any("Domain validation failed")

    assert exc_info.value.to_dict() == {
        "error": "ValidationFailure",
        "message": "Domain validation failed",
        "errors": [
            {
                "field": "isPrimary",
                "message": "Organization already has a primary domain",
                "rejectedValue": "True",
            }
        ],
    }
