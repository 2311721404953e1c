"""Database configuration and its embedded schema collection."""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from app.core.config import SETTINGS, Settings
from app.models.context import OperationContext
from app.models.organization import DatabaseSchema, Organization, ServiceType
from app.repos.org_repo import OrganizationRepo
from app.schemas.organization import DatabaseConfigUpdate, SchemaCreate, SchemaUpdate
from app.services import schema_rules
from app.services.instrumentation import op_extra, track
from app.services.lookups import require_organization, require_schema

logger = logging.getLogger(__name__)


def add_schema(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: SchemaCreate,
    *,
    settings: Settings = SETTINGS,
) -> Organization:
    with track("add_schema", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            schema = _add(orgs, ctx, org, payload, settings)

        logger.info(
            "Added schema %s for %s",
            schema.schema_name,
            schema.for_service.value,
            extra=op_extra(ctx, "add_schema", org_id),
        )
        return require_organization(orgs, org_id)


def add_default_schema(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    *,
    settings: Settings = SETTINGS,
) -> DatabaseSchema | None:
    """Add the AUTH schema. Returns None when there is no database config yet."""
    with track("add_default_schema", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            if org.database is None:
                outcome.skip()
                logger.info(
                    "No database configuration; default schema not created",
                    extra=op_extra(ctx, "add_default_schema", org_id),
                )
                return None
            schema = _add(
                orgs, ctx, org, SchemaCreate(for_service=ServiceType.AUTH), settings
            )

        logger.info(
            "Added default schema %s",
            schema.schema_name,
            extra=op_extra(ctx, "add_default_schema", org_id),
        )
        return schema


def _add(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org: Organization,
    payload: SchemaCreate,
    settings: Settings,
) -> DatabaseSchema:
    name = payload.schema_name or schema_rules.default_schema_name(
        settings.schema_name_prefix,
        org.abbr,
        payload.for_service,
        settings.schema_environment,
    )
    schema_rules.check_add(org, name, payload.for_service).raise_if_any(
        "Database schema validation failed"
    )
    schema = DatabaseSchema.new(
        for_service=payload.for_service,
        schema_name=name,
        description=payload.description,
    )
    orgs.add_schema(org.id, schema, ctx.now, ctx.actor)
    return schema


def update_schema(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    schema_id: UUID,
    payload: SchemaUpdate,
) -> Organization:
    with track("update_schema", ctx, org_id) as outcome:
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            schema = require_schema(org, schema_id)
            changes = {
                k: v
                for k, v in payload.model_dump(exclude_unset=True).items()
                if v is not None or k == "description"
            }
            updated = replace(schema, **changes)
            if updated == schema:
                outcome.skip()
                return org
            schema_rules.check_unique(
                org, updated.schema_name, updated.for_service, exclude_id=schema_id
            ).raise_if_any("Database schema validation failed")
            orgs.update_schema(org_id, updated, ctx.now, ctx.actor)

        logger.info(
            "Updated schema %s",
            updated.schema_name,
            extra=op_extra(ctx, "update_schema", org_id),
        )
        return require_organization(orgs, org_id)


def remove_schema(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    schema_id: UUID,
) -> Organization:
    with track("remove_schema", ctx, org_id):
        with orgs.transaction(org_id):
            org = require_organization(orgs, org_id)
            schema = require_schema(org, schema_id)
            schema_rules.check_remove(org, schema).raise_if_any(
                "Database schema removal failed"
            )
            orgs.remove_schema(org_id, schema_id, ctx.now, ctx.actor)

        logger.info(
            "Removed schema %s",
            schema.schema_name,
            extra=op_extra(ctx, "remove_schema", org_id),
        )
        return require_organization(orgs, org_id)


def update_database_config(
    orgs: OrganizationRepo,
    ctx: OperationContext,
    org_id: UUID,
    payload: DatabaseConfigUpdate,
) -> Organization:
    """Replace connection string and certificate; schemas are left alone."""
    with track("update_database_config", ctx, org_id):
        with orgs.transaction(org_id):
            require_organization(orgs, org_id)
            schema_rules.check_database_config(
                payload.connection_string, payload.certificate
            ).raise_if_any("Database configuration validation failed")
            orgs.update_database_config(
                org_id,
                payload.connection_string,
                payload.certificate,
                ctx.now,
                ctx.actor,
            )

        # Never log the connection string, it carries credentials.
        logger.info(
            "Updated database configuration",
            extra=op_extra(ctx, "update_database_config", org_id),
        )
        return require_organization(orgs, org_id)
