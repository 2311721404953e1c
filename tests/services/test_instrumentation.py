"""Outcome counters are asserted as deltas: the default registry is
process-global and counters cannot be reset between tests."""

from __future__ import annotations

import logging
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from app.core.errors import (
    ConflictFailure,
    ErrorCollector,
    NotFoundFailure,
    PreconditionFailure,
)
from app.models.context import OperationContext
from app.services.instrumentation import op_extra, track


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def _outcomes(operation: str, outcome: str) -> float:
    return _get_sample(
        "org_engine_operations_total", {"operation": operation, "outcome": outcome}
    )


def test_success_is_counted(ctx: OperationContext) -> None:
    before = _outcomes("probe_success", "success")
    with track("probe_success", ctx):
        pass
    assert _outcomes("probe_success", "success") - before == 1


def test_skip_is_counted_separately(ctx: OperationContext) -> None:
    before_skip = _outcomes("probe_skip", "skipped")
    before_ok = _outcomes("probe_skip", "success")
    with track("probe_skip", ctx) as outcome:
        outcome.skip()
    assert _outcomes("probe_skip", "skipped") - before_skip == 1
    assert _outcomes("probe_skip", "success") == before_ok


def test_validation_failure_counts_rejection_and_field_errors(
    ctx: OperationContext,
) -> None:
    errors = ErrorCollector()
    errors.add("tenants", "Cannot delete organization with active tenants")
    errors.add("childOrganizations", "Cannot delete organization with active children")
    before = _outcomes("probe_reject", "rejected")
    before_fields = _get_sample(
        "org_engine_validation_errors_total", {"operation": "probe_reject"}
    )

    with pytest.raises(PreconditionFailure):
        with track("probe_reject", ctx):
            errors.raise_if_any("Cannot change status", PreconditionFailure)

    assert _outcomes("probe_reject", "rejected") - before == 1
    after_fields = _get_sample(
        "org_engine_validation_errors_total", {"operation": "probe_reject"}
    )
    assert after_fields - before_fields == 2


def test_not_found_is_a_rejection(ctx: OperationContext) -> None:
    before = _outcomes("probe_missing", "rejected")
    with pytest.raises(NotFoundFailure):
        with track("probe_missing", ctx):
            raise NotFoundFailure("Organization", uuid4())
    assert _outcomes("probe_missing", "rejected") - before == 1


def test_conflict_is_counted_as_conflict(ctx: OperationContext) -> None:
    before = _outcomes("probe_conflict", "conflict")
    with pytest.raises(ConflictFailure):
        with track("probe_conflict", ctx):
            raise ConflictFailure()
    assert _outcomes("probe_conflict", "conflict") - before == 1


def test_unexpected_errors_pass_through_uncounted(ctx: OperationContext) -> None:
    before = _outcomes("probe_crash", "success")
    with pytest.raises(KeyError):
        with track("probe_crash", ctx):
            raise KeyError("boom")
    assert _outcomes("probe_crash", "success") == before


def test_rejection_is_logged_with_context(
    ctx: OperationContext, caplog: pytest.LogCaptureFixture
) -> None:
    org_id = uuid4()
    with caplog.at_level(logging.WARNING, logger="app.services.instrumentation"):
        with pytest.raises(NotFoundFailure):
            with track("probe_logged", ctx, org_id):
                raise NotFoundFailure("Organization", org_id)

    record = next(r for r in caplog.records if "probe_logged" in r.getMessage())
    assert record.levelno == logging.WARNING
    assert record.correlation_id == "corr-test"
    assert record.org_id == str(org_id)
    assert record.operation == "probe_logged"


def test_op_extra_adds_operation() -> None:
    ctx = OperationContext.new("alice", correlation_id="c-1")
    assert op_extra(ctx, "add_domain") == {
        "correlation_id": "c-1",
        "actor": "alice",
        "operation": "add_domain",
    }
