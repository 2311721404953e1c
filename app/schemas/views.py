"""Response-shaped views of the organization aggregate.

Sections that were not requested stay ``None`` so the request layer can
drop them from its payload.  Secrets (connection string, certificate,
verification tokens) are never part of a view.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class OrganizationSection(str, Enum):
    SETTING = "setting"
    DOMAIN = "domain"
    METADATA = "metadata"
    DATABASE = "database"


class _View(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class DomainView(_View):
    id: UUID
    name: str
    verification_method: str
    is_verified: bool
    is_primary: bool
    created_at: datetime
    verified_at: datetime | None = None


class SchemaView(_View):
    id: UUID
    for_service: str
    schema_name: str
    description: str | None = None
    status: str


class DatabaseView(_View):
    is_configured: bool
    has_certificate: bool
    schemas: list[SchemaView]


class SettingView(_View):
    language: str
    timezone: str
    currency: str
    country: str


class MetadataView(_View):
    industry: str
    size: str


class OrganizationView(_View):
    id: UUID
    name: str
    abbr: str
    display_name: str
    description: str | None = None
    status: str
    organization_type: str
    billing_email: str | None = None
    parent_organization_id: UUID | None = None
    expires_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int
    setting: SettingView | None = None
    metadata: MetadataView | None = None
    database: DatabaseView | None = None
    domains: list[DomainView] | None = None
