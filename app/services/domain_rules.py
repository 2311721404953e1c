from __future__ import annotations

from datetime import datetime, timedelta

from app.core.errors import ErrorCollector
from app.models.organization import Domain, Organization, VerificationMethod
from app.repos.org_repo import OrganizationRepo

_RESERVED_FRAGMENTS = ("localhost", "127.0.0.1", "0.0.0.0")
_RESERVED_PREFIXES = ("api.", "admin.")


def normalize_domain_name(name: str) -> str:
    return name.strip().lower().rstrip(".")


def default_domain_name(abbr: str, platform_domain: str) -> str:
    return f"{abbr.strip().lower()}.{platform_domain}"


def is_platform_domain(name: str, platform_domain: str) -> bool:
    name = normalize_domain_name(name)
    return name == platform_domain or name.endswith("." + platform_domain)


def is_reserved_domain(
    name: str, platform_domain: str, *, allow_platform: bool = False
) -> bool:
    name = normalize_domain_name(name)
    if any(fragment in name for fragment in _RESERVED_FRAGMENTS):
        return True
    if name.endswith(".local"):
        return True
    if name.startswith(_RESERVED_PREFIXES):
        return True
    return not allow_platform and is_platform_domain(name, platform_domain)


def is_verification_expired(domain: Domain, now: datetime, expiry_hours: int) -> bool:
    return domain.created_at + timedelta(hours=expiry_hours) < now


def check_add(
    orgs: OrganizationRepo,
    org: Organization,
    name: str,
    is_primary: bool,
    *,
    platform_domain: str,
    max_domains: int,
    allow_platform: bool = False,
) -> ErrorCollector:
    errors = ErrorCollector()
    if len(org.domains) + 1 > max_domains:
        errors.add(
            "domains",
            f"Organization cannot have more than {max_domains} domains",
            len(org.domains),
        )
    if is_reserved_domain(name, platform_domain, allow_platform=allow_platform):
        errors.add("name", "Domain name is reserved and cannot be registered", name)
    elif orgs.is_domain_registered(name):
        errors.add("name", "Domain is already registered", name)
    if is_primary and org.primary_domain() is not None:
        errors.add(
            "isPrimary",
            "Organization already has a primary domain; set primary after adding",
            is_primary,
        )
    return errors


def check_remove(org: Organization, domain: Domain, active_users: int) -> ErrorCollector:
    errors = ErrorCollector()
    if domain.is_primary:
        if len(org.domains) == 1:
            errors.add(
                "domainId",
                "Cannot remove the only domain of the organization",
                domain.id,
            )
        elif not any(d.is_primary for d in org.domains if d.id != domain.id):
            errors.add(
                "domainId",
                "Cannot remove primary domain. Set another domain as primary first",
                domain.id,
            )
    if active_users > 0:
        errors.add(
            "domainId",
            f"Cannot remove domain. {active_users} active users are using this domain.",
            domain.id,
        )
    return errors


def check_verify(
    domain: Domain,
    method: VerificationMethod,
    token: str,
    *,
    now: datetime,
    expiry_hours: int,
) -> ErrorCollector:
    errors = ErrorCollector()
    if domain.is_verified:
        errors.add("domainId", "Domain is already verified", domain.id)
    if method is not domain.verification_method:
        errors.add(
            "verificationMethod",
            f"Domain must be verified using {domain.verification_method.value}",
            method.value,
        )
    if is_verification_expired(domain, now, expiry_hours):
        errors.add(
            "domainId",
            "Verification token has expired. Regenerate the token and try again",
            domain.id,
        )
    if not token or domain.verification_token != token:
        errors.add("verificationToken", "Verification token does not match")
    return errors


def check_rename(
    orgs: OrganizationRepo,
    domain: Domain,
    new_name: str,
    *,
    platform_domain: str,
) -> ErrorCollector:
    errors = ErrorCollector()
    if new_name == domain.name:
        return errors
    if is_platform_domain(domain.name, platform_domain) or is_platform_domain(
        new_name, platform_domain
    ):
        errors.add(
            "name",
            "Cannot directly update the default domain. "
            "Update the organization abbreviation instead",
            new_name,
        )
        return errors
    if is_reserved_domain(new_name, platform_domain):
        errors.add("name", "Domain name is reserved and cannot be registered", new_name)
    elif orgs.is_domain_registered(new_name, exclude_domain_id=domain.id):
        errors.add("name", "Domain is already registered", new_name)
    return errors
