"""Engine metrics using the Prometheus client library.

Single inventory of everything the engine measures.  Services import
the metric they own and increment it at the point of action.  Exposing
the registry over HTTP belongs to the hosting process, not to this
package.
"""

from __future__ import annotations

from prometheus_client import Counter

ORG_OPERATIONS = Counter(
    "org_engine_operations_total",
    "Engine operations by name and outcome",
    ["operation", "outcome"],  # outcome: success|skipped|rejected|conflict
)

VALIDATION_ERRORS = Counter(
    "org_engine_validation_errors_total",
    "Field errors reported by rejected operations",
    ["operation"],
)

PLAN_DEACTIVATIONS = Counter(
    "org_engine_plan_deactivations_total",
    "Plan associations deactivated, by trigger",
    ["reason"],  # manual|superseded|expired
)

SIDE_EFFECT_FAILURES = Counter(
    "org_engine_side_effect_failures_total",
    "Best-effort follow-up steps of organization creation that failed",
    ["effect"],  # default_domain|default_schema
)
