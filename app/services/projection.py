from __future__ import annotations

from collections.abc import Iterable

from app.models.organization import Organization
from app.schemas.views import (
    DatabaseView,
    DomainView,
    MetadataView,
    OrganizationSection,
    OrganizationView,
    SchemaView,
    SettingView,
)


def parse_sections(raw: Iterable[str]) -> set[OrganizationSection]:
    """Map tokens such as ``"domain"`` to sections. Unknown tokens raise ValueError."""
    return {
        OrganizationSection(token.strip().lower()) for token in raw if token.strip()
    }


def build_organization_view(
    org: Organization, include: Iterable[OrganizationSection] = ()
) -> OrganizationView:
    """Copy the core fields plus only the requested sections.

    The aggregate is read, never modified.
    """
    sections = set(include)

    setting = None
    if OrganizationSection.SETTING in sections:
        s = org.setting
        setting = SettingView(
            language=s.language,
            timezone=s.timezone,
            currency=s.currency,
            country=s.country,
        )

    metadata = None
    if OrganizationSection.METADATA in sections:
        metadata = MetadataView(
            industry=org.metadata.industry.value, size=org.metadata.size.value
        )

    database = None
    if OrganizationSection.DATABASE in sections and org.database is not None:
        database = DatabaseView(
            is_configured=org.database.is_configured,
            has_certificate=bool(org.database.certificate),
            schemas=[
                SchemaView(
                    id=sc.id,
                    for_service=sc.for_service.value,
                    schema_name=sc.schema_name,
                    description=sc.description,
                    status=sc.status,
                )
                for sc in org.database.schemas
            ],
        )

    domains = None
    if OrganizationSection.DOMAIN in sections:
        domains = [
            DomainView(
                id=d.id,
                name=d.name,
                verification_method=d.verification_method.value,
                is_verified=d.is_verified,
                is_primary=d.is_primary,
                created_at=d.created_at,
                verified_at=d.verified_at,
            )
            for d in org.domains
        ]

    return OrganizationView(
        id=org.id,
        name=org.name,
        abbr=org.abbr,
        display_name=org.display_name,
        description=org.description,
        status=org.status.value,
        organization_type=org.organization_type.value,
        billing_email=org.billing_email,
        parent_organization_id=org.parent_organization_id,
        expires_date=org.expires_date,
        created_at=org.created_at,
        updated_at=org.updated_at,
        version=org.version,
        setting=setting,
        metadata=metadata,
        database=database,
        domains=domains,
    )
