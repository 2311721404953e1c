from __future__ import annotations

from uuid import uuid4

import pytest

from app.core.config import Settings
from app.core.errors import NotFoundFailure, ValidationFailure
from app.models.context import OperationContext
from app.models.organization import ServiceType
from app.repos.org_repo import InMemoryOrgRepo
from app.schemas.organization import (
    DatabaseConfigUpdate,
    OrganizationCreate,
    SchemaCreate,
    SchemaUpdate,
)
from app.services import organization_service, schema_service
from app.services.schema_rules import default_schema_name
from tests.conftest import create_test_org

PEM = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----"


def test_default_schema_name_is_lowercased() -> None:
    assert default_schema_name("Codzs", "ACME", ServiceType.BILLING, "") == (
        "codzs_acme_billing_dev"
    )


def test_add_schema_synthesizes_name(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    updated = schema_service.add_schema(
        orgs,
        ctx,
        org.id,
        SchemaCreate(for_service=ServiceType.TENANT, description="tenants"),
        settings=settings,
    )
    assert [s.schema_name for s in updated.schemas] == [
        "codzs_acme_auth_dev",
        "codzs_acme_tenant_dev",
    ]
    assert updated.schemas[1].description == "tenants"
    assert updated.schemas[1].status == "ACTIVE"


def test_add_schema_rejects_duplicate_service_and_name(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    with pytest.raises(ValidationFailure) as exc_info:
        schema_service.add_schema(
            orgs,
            ctx,
            org.id,
            SchemaCreate(for_service=ServiceType.AUTH, schema_name="CODZS_ACME_AUTH_DEV"),
            settings=settings,
        )
    assert exc_info.value.fields() == ["schemaName", "forService"]


def test_add_schema_requires_database_config(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = organization_service.create_organization(
        orgs, ctx, OrganizationCreate(name="Bare", abbr="bare"), settings=settings
    ).organization
    with pytest.raises(ValidationFailure) as exc_info:
        schema_service.add_schema(
            orgs, ctx, org.id, SchemaCreate(for_service=ServiceType.AUTH), settings=settings
        )
    assert exc_info.value.fields() == ["database"]


def test_schema_can_be_added_after_database_is_configured(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = organization_service.create_organization(
        orgs, ctx, OrganizationCreate(name="Late", abbr="late"), settings=settings
    ).organization
    schema_service.update_database_config(
        orgs,
        ctx,
        org.id,
        DatabaseConfigUpdate(connection_string="mongodb+srv://cluster0.example.net/db"),
    )
    schema = schema_service.add_default_schema(orgs, ctx, org.id, settings=settings)

    assert schema is not None
    assert schema.schema_name == "codzs_late_auth_dev"


def test_update_schema_changes_description(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    schema_id = org.schemas[0].id
    updated = schema_service.update_schema(
        orgs, ctx, org.id, schema_id, SchemaUpdate(description="identity tables")
    )
    schema = updated.find_schema(schema_id)
    assert schema is not None
    assert schema.description == "identity tables"


def test_update_schema_unchanged_is_skipped(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    schema = org.schemas[0]
    updated = schema_service.update_schema(
        orgs, ctx, org.id, schema.id, SchemaUpdate(schema_name=schema.schema_name)
    )
    assert updated.version == org.version


def test_update_schema_rejects_service_taken_by_sibling(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    updated = schema_service.add_schema(
        orgs, ctx, org.id, SchemaCreate(for_service=ServiceType.AUDIT), settings=settings
    )
    audit = updated.schemas[1]
    with pytest.raises(ValidationFailure) as exc_info:
        schema_service.update_schema(
            orgs, ctx, org.id, audit.id, SchemaUpdate(for_service=ServiceType.AUTH)
        )
    assert exc_info.value.fields() == ["forService"]


def test_last_schema_cannot_be_removed(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    with pytest.raises(ValidationFailure) as exc_info:
        schema_service.remove_schema(orgs, ctx, org.id, org.schemas[0].id)
    assert exc_info.value.messages() == [
        "Cannot remove last database schema - at least one schema is required"
    ]


def test_remove_one_of_two_schemas(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    schema_service.add_schema(
        orgs, ctx, org.id, SchemaCreate(for_service=ServiceType.BILLING), settings=settings
    )
    updated = schema_service.remove_schema(orgs, ctx, org.id, org.schemas[0].id)
    assert [s.for_service for s in updated.schemas] == [ServiceType.BILLING]


def test_remove_unknown_schema(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    with pytest.raises(NotFoundFailure) as exc_info:
        schema_service.remove_schema(orgs, ctx, org.id, uuid4())
    assert exc_info.value.fields() == ["schemaId"]


# ---- database config ----


def test_update_database_config_keeps_schemas(
    orgs: InMemoryOrgRepo, ctx: OperationContext, settings: Settings
) -> None:
    org = create_test_org(orgs, ctx, settings)
    updated = schema_service.update_database_config(
        orgs,
        ctx,
        org.id,
        DatabaseConfigUpdate(
            connection_string="postgresql://replica.internal/orgs", certificate=PEM
        ),
    )
    assert updated.database is not None
    assert updated.database.connection_string == "postgresql://replica.internal/orgs"
    assert updated.database.certificate == PEM
    assert updated.schemas == org.schemas


@pytest.mark.parametrize(
    ("connection_string", "certificate", "fields"),
    [
        ("mysql://db.internal/orgs", None, ["connectionString"]),
        ("postgresql://127.0.0.1/orgs", None, ["connectionString"]),
        ("postgresql://db.internal/orgs", "not a pem", ["certificate"]),
        ("redis://localhost", "junk", ["connectionString", "certificate"]),
    ],
)
def test_update_database_config_validation(
    orgs: InMemoryOrgRepo,
    ctx: OperationContext,
    settings: Settings,
    connection_string: str,
    certificate: str | None,
    fields: list[str],
) -> None:
    org = create_test_org(orgs, ctx, settings)
    with pytest.raises(ValidationFailure) as exc_info:
        schema_service.update_database_config(
            orgs,
            ctx,
            org.id,
            DatabaseConfigUpdate(
                connection_string=connection_string, certificate=certificate
            ),
        )
    assert exc_info.value.fields() == fields
