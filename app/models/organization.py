from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4


class OrganizationStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class OrganizationType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    SMALL_BUSINESS = "SMALL_BUSINESS"
    MEDIUM_BUSINESS = "MEDIUM_BUSINESS"
    LARGE_BUSINESS = "LARGE_BUSINESS"
    ENTERPRISE = "ENTERPRISE"


class VerificationMethod(str, Enum):
    DNS = "DNS"
    EMAIL = "EMAIL"
    FILE = "FILE"


class ServiceType(str, Enum):
    AUTH = "AUTH"
    TENANT = "TENANT"
    BILLING = "BILLING"
    NOTIFICATION = "NOTIFICATION"
    AUDIT = "AUDIT"


class Industry(str, Enum):
    TECHNOLOGY = "TECHNOLOGY"
    FINANCE = "FINANCE"
    HEALTHCARE = "HEALTHCARE"
    EDUCATION = "EDUCATION"
    RETAIL = "RETAIL"
    MANUFACTURING = "MANUFACTURING"
    GOVERNMENT = "GOVERNMENT"
    OTHER = "OTHER"


class OrganizationSize(str, Enum):
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    ENTERPRISE = "ENTERPRISE"


def new_verification_token() -> str:
    return secrets.token_hex(16)  # 32 chars


@dataclass(frozen=True, slots=True)
class Domain:
    id: UUID
    name: str
    verification_method: VerificationMethod
    verification_token: str | None
    is_verified: bool
    is_primary: bool
    created_at: datetime
    verified_at: datetime | None = None

    @staticmethod
    def new(
        *,
        name: str,
        created_at: datetime,
        verification_method: VerificationMethod = VerificationMethod.DNS,
        is_primary: bool = False,
    ) -> Domain:
        return Domain(
            id=uuid4(),
            name=name.strip().lower(),
            verification_method=verification_method,
            verification_token=new_verification_token(),
            is_verified=False,
            is_primary=is_primary,
            created_at=created_at,
        )


@dataclass(frozen=True, slots=True)
class DatabaseSchema:
    id: UUID
    for_service: ServiceType
    schema_name: str
    description: str | None = None
    status: str = "ACTIVE"  # ACTIVE|INACTIVE

    @staticmethod
    def new(
        *,
        for_service: ServiceType,
        schema_name: str,
        description: str | None = None,
    ) -> DatabaseSchema:
        return DatabaseSchema(
            id=uuid4(),
            for_service=for_service,
            schema_name=schema_name,
            description=description,
        )


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    connection_string: str | None = None
    certificate: str | None = None
    schemas: tuple[DatabaseSchema, ...] = ()

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string and self.connection_string.strip())


@dataclass(frozen=True, slots=True)
class OrganizationSetting:
    language: str = "en"
    timezone: str = "UTC"
    currency: str = "USD"
    country: str = "US"


@dataclass(frozen=True, slots=True)
class OrganizationMetadata:
    industry: Industry = Industry.OTHER
    size: OrganizationSize = OrganizationSize.SMALL


@dataclass(frozen=True, slots=True)
class Organization:
    """Root aggregate.

    Embedded collections (domains, database schemas) are immutable tuples;
    changes go through the repo's field-scoped operations, never by
    handing the collection to a caller to mutate.
    """

    id: UUID
    name: str
    abbr: str
    display_name: str
    status: OrganizationStatus = OrganizationStatus.PENDING
    organization_type: OrganizationType = OrganizationType.SMALL_BUSINESS
    description: str | None = None
    billing_email: str | None = None
    parent_organization_id: UUID | None = None
    expires_date: datetime | None = None
    setting: OrganizationSetting = field(default_factory=OrganizationSetting)
    metadata: OrganizationMetadata = field(default_factory=OrganizationMetadata)
    database: DatabaseConfig | None = None
    domains: tuple[Domain, ...] = ()
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    version: int = 1

    @staticmethod
    def new(
        *,
        name: str,
        abbr: str,
        display_name: str | None = None,
        organization_type: OrganizationType = OrganizationType.SMALL_BUSINESS,
        description: str | None = None,
        billing_email: str | None = None,
        parent_organization_id: UUID | None = None,
        expires_date: datetime | None = None,
        database: DatabaseConfig | None = None,
        created_at: datetime | None = None,
        created_by: str | None = None,
    ) -> Organization:
        return Organization(
            id=uuid4(),
            name=name,
            abbr=abbr,
            display_name=display_name or name,
            organization_type=organization_type,
            description=description,
            billing_email=billing_email,
            parent_organization_id=parent_organization_id,
            expires_date=expires_date,
            database=database,
            created_at=created_at,
            created_by=created_by,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None or self.status is OrganizationStatus.DELETED

    @property
    def schemas(self) -> tuple[DatabaseSchema, ...]:
        return self.database.schemas if self.database is not None else ()

    def find_domain(self, domain_id: UUID) -> Domain | None:
        return next((d for d in self.domains if d.id == domain_id), None)

    def find_domain_by_name(self, name: str) -> Domain | None:
        wanted = name.strip().lower()
        return next((d for d in self.domains if d.name.lower() == wanted), None)

    def primary_domain(self) -> Domain | None:
        return next((d for d in self.domains if d.is_primary), None)

    def find_schema(self, schema_id: UUID) -> DatabaseSchema | None:
        return next((s for s in self.schemas if s.id == schema_id), None)
