from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.config import Settings  # noqa: E402
from app.models.context import OperationContext  # noqa: E402
from app.models.organization import Organization  # noqa: E402
from app.models.plan import Plan, ValidityPeriodUnit  # noqa: E402
from app.repos.dependents_repo import InMemoryDependentsRepo  # noqa: E402
from app.repos.org_repo import InMemoryOrgRepo  # noqa: E402
from app.repos.plan_repo import (  # noqa: E402
    InMemoryOrganizationPlanRepo,
    InMemoryPlanRepo,
)
from app.schemas.organization import OrganizationCreate  # noqa: E402
from app.services import organization_service  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
CONNECTION_STRING = "postgresql://db.internal:5432/orgs"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        log_level="debug",
        log_json=False,
        platform_domain="codzs.com",
        max_hierarchy_depth=5,
        max_domains_per_organization=5,
        domain_verification_expiry_hours=24,
        schema_name_prefix="codzs",
        schema_environment="dev",
        org_lock_timeout_seconds=0.2,
    )


@pytest.fixture
def ctx() -> OperationContext:
    return OperationContext.new("tester", correlation_id="corr-test", now=NOW)


@pytest.fixture
def orgs(settings: Settings) -> InMemoryOrgRepo:
    return InMemoryOrgRepo(lock_timeout=settings.org_lock_timeout_seconds)


@pytest.fixture
def dependents() -> InMemoryDependentsRepo:
    return InMemoryDependentsRepo()


@pytest.fixture
def plans() -> InMemoryPlanRepo:
    return InMemoryPlanRepo()


@pytest.fixture
def associations(settings: Settings) -> InMemoryOrganizationPlanRepo:
    return InMemoryOrganizationPlanRepo(
        lock_timeout=settings.org_lock_timeout_seconds
    )


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


def create_test_org(
    orgs: InMemoryOrgRepo,
    ctx: OperationContext,
    settings: Settings,
    abbr: str = "acme",
    **fields: object,
) -> Organization:
    """Create an organization through the service, with a database config
    so the default AUTH schema is created as well."""
    payload = {
        "name": f"{abbr.title()} Corp",
        "abbr": abbr,
        "connection_string": CONNECTION_STRING,
    }
    payload.update(fields)
    result = organization_service.create_organization(
        orgs, ctx, OrganizationCreate(**payload), settings=settings
    )
    return result.organization


def add_test_plan(
    plans: InMemoryPlanRepo,
    name: str = "Standard",
    *,
    validity_period: int = 1,
    unit: ValidityPeriodUnit = ValidityPeriodUnit.MONTHS,
    price: float = 0.0,
) -> Plan:
    plan = Plan.new(
        name=name,
        type="STANDARD",
        validity_period=validity_period,
        validity_period_unit=unit,
        price=price,
    )
    plans.add(plan)
    return plan
