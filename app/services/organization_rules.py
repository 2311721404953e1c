from __future__ import annotations

import re
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.errors import ErrorCollector
from app.models.organization import (
    Industry,
    Organization,
    OrganizationMetadata,
    OrganizationSetting,
    OrganizationSize,
    OrganizationStatus,
    OrganizationType,
)
from app.repos.org_repo import OrganizationRepo

MAX_ABBR_LENGTH = 10

_COUNTRY = re.compile(r"^[A-Z]{2}$")
_LANGUAGE = re.compile(r"^[a-z]{2}$")
_CURRENCY = re.compile(r"^[A-Z]{3}$")


def check_name(
    orgs: OrganizationRepo,
    errors: ErrorCollector,
    name: str,
    *,
    exclude_id: UUID | None = None,
) -> None:
    if orgs.exists_by_name(name, exclude_id=exclude_id):
        errors.add("name", "Organization name already exists", name)


def check_abbr(
    orgs: OrganizationRepo,
    errors: ErrorCollector,
    abbr: str,
    *,
    exclude_id: UUID | None = None,
) -> None:
    if not (abbr.isascii() and abbr.isalnum()) or len(abbr) > MAX_ABBR_LENGTH:
        errors.add(
            "abbr",
            f"Abbreviation must be alphanumeric and at most {MAX_ABBR_LENGTH} characters",
            abbr,
        )
        return
    if orgs.exists_by_abbr(abbr, exclude_id=exclude_id):
        errors.add("abbr", "Organization abbreviation already exists", abbr)


def check_expires(
    errors: ErrorCollector, expires_date: datetime | None, now: datetime
) -> None:
    if expires_date is not None and expires_date < now:
        errors.add("expiresDate", "Expiry date cannot be in the past", expires_date)


def check_suspended_restrictions(
    errors: ErrorCollector, org: Organization, changed_fields: set[str]
) -> None:
    if org.status is not OrganizationStatus.SUSPENDED:
        return
    for name, alias in (
        ("organization_type", "organizationType"),
        ("parent_organization_id", "parentOrganizationId"),
    ):
        if name in changed_fields:
            errors.add("status", f"Cannot change {alias} while organization is suspended")


def check_setting(errors: ErrorCollector, setting: OrganizationSetting) -> None:
    try:
        ZoneInfo(setting.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.add("timezone", "Unknown timezone", setting.timezone)
    if not _COUNTRY.match(setting.country):
        errors.add("country", "Country must be an ISO 3166 alpha-2 code", setting.country)
    if not _LANGUAGE.match(setting.language):
        errors.add(
            "language", "Language must be an ISO 639-1 code", setting.language
        )
    if not _CURRENCY.match(setting.currency):
        errors.add(
            "currency", "Currency must be an ISO 4217 code", setting.currency
        )


def check_metadata(
    errors: ErrorCollector,
    metadata: OrganizationMetadata,
    organization_type: OrganizationType,
) -> None:
    if (
        metadata.industry is Industry.GOVERNMENT
        and organization_type is not OrganizationType.ENTERPRISE
    ):
        errors.add(
            "industry",
            "Government industry is only allowed for enterprise organizations",
            metadata.industry.value,
        )
    if organization_type is OrganizationType.INDIVIDUAL and metadata.size in (
        OrganizationSize.LARGE,
        OrganizationSize.ENTERPRISE,
    ):
        errors.add(
            "size",
            "Individual organizations cannot be large or enterprise size",
            metadata.size.value,
        )
