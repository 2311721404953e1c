"""Input payloads for organization operations.

Field shapes only.  Business rules (uniqueness, hierarchy, status
preconditions) are enforced by the services, which collect every
violation into one ValidationFailure.  Aliases are camelCase so payloads
from the request layer can be passed straight through.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.organization import (
    Industry,
    OrganizationSize,
    OrganizationStatus,
    OrganizationType,
    ServiceType,
    VerificationMethod,
)


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


class OrganizationCreate(_Payload):
    name: str = Field(min_length=1, max_length=100)
    abbr: str = Field(min_length=1)
    display_name: str | None = None
    description: str | None = None
    organization_type: OrganizationType = OrganizationType.SMALL_BUSINESS
    billing_email: str | None = None
    parent_organization_id: UUID | None = None
    expires_date: AwareDatetime | None = None
    connection_string: str | None = None
    certificate: str | None = None


class OrganizationUpdate(_Payload):
    """Partial update. Only fields the caller explicitly set are diffed;
    an explicit ``None`` clears a nullable field."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    abbr: str | None = None
    display_name: str | None = None
    description: str | None = None
    status: OrganizationStatus | None = None
    organization_type: OrganizationType | None = None
    billing_email: str | None = None
    expires_date: AwareDatetime | None = None
    parent_organization_id: UUID | None = None


class DomainCreate(_Payload):
    name: str = Field(min_length=1, max_length=253)
    verification_method: VerificationMethod = VerificationMethod.DNS
    is_primary: bool = False


class DomainUpdate(_Payload):
    name: str | None = Field(default=None, min_length=1, max_length=253)
    verification_method: VerificationMethod | None = None


class DomainVerification(_Payload):
    verification_method: VerificationMethod
    verification_token: str


class SchemaCreate(_Payload):
    for_service: ServiceType
    schema_name: str | None = None
    description: str | None = None


class SchemaUpdate(_Payload):
    for_service: ServiceType | None = None
    schema_name: str | None = Field(default=None, min_length=1)
    description: str | None = None


class DatabaseConfigUpdate(_Payload):
    connection_string: str = Field(min_length=1)
    certificate: str | None = None


class SettingUpdate(_Payload):
    language: str | None = None
    timezone: str | None = None
    currency: str | None = None
    country: str | None = None


class MetadataUpdate(_Payload):
    industry: Industry | None = None
    size: OrganizationSize | None = None
