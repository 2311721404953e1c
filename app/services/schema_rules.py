from __future__ import annotations

from uuid import UUID

from app.core.errors import ErrorCollector
from app.models.organization import DatabaseSchema, Organization, ServiceType

SUPPORTED_SCHEMES = ("mongodb://", "mongodb+srv://", "postgresql://")
_LOCAL_HOSTS = ("localhost", "127.0.0.1")
_PEM_BEGIN = "-----BEGIN"
_PEM_END = "-----END"


def default_schema_name(
    prefix: str, abbr: str, for_service: ServiceType, environment: str = "dev"
) -> str:
    return f"{prefix}_{abbr}_{for_service.value}_{environment or 'dev'}".lower()


def check_unique(
    org: Organization,
    schema_name: str,
    for_service: ServiceType,
    *,
    exclude_id: UUID | None = None,
) -> ErrorCollector:
    errors = ErrorCollector()
    others = [s for s in org.schemas if s.id != exclude_id]
    if any(s.schema_name.lower() == schema_name.lower() for s in others):
        errors.add(
            "schemaName",
            "Schema name already exists in this organization",
            schema_name,
        )
    if any(s.for_service is for_service for s in others):
        errors.add(
            "forService",
            f"A schema for service {for_service.value} already exists",
            for_service.value,
        )
    return errors


def check_add(
    org: Organization, schema_name: str, for_service: ServiceType
) -> ErrorCollector:
    errors = ErrorCollector()
    if org.database is None:
        errors.add(
            "database",
            "Database configuration must exist before schemas can be added",
        )
        return errors
    errors.extend(check_unique(org, schema_name, for_service).errors)
    return errors


def check_remove(org: Organization, schema: DatabaseSchema) -> ErrorCollector:
    errors = ErrorCollector()
    if len(org.schemas) <= 1:
        errors.add(
            "schemaId",
            "Cannot remove last database schema - at least one schema is required",
            schema.id,
        )
    return errors


def check_database_config(
    connection_string: str, certificate: str | None
) -> ErrorCollector:
    errors = ErrorCollector()
    conn = connection_string.strip()
    if not conn.lower().startswith(SUPPORTED_SCHEMES):
        errors.add(
            "connectionString",
            "Connection string must start with one of: " + ", ".join(SUPPORTED_SCHEMES),
        )
    elif any(host in conn.lower() for host in _LOCAL_HOSTS):
        errors.add(
            "connectionString",
            "Connection string cannot point to a local database host",
        )
    if certificate is not None and certificate.strip():
        if _PEM_BEGIN not in certificate or _PEM_END not in certificate:
            errors.add("certificate", "Certificate must be PEM encoded")
    return errors
