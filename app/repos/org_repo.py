"""Organization aggregate store.

Writes are field-scoped (one top-level field, one embedded element)
rather than whole-document saves, so two callers changing different
fields cannot clobber each other's domains or schemas.

``transaction(org_id)`` is the serialization point for one logical
operation: it holds the organization's lock for the whole
load -> validate -> write sequence and restores the pre-operation
aggregate if anything inside the block raises.  A writer that cannot
get the lock within the timeout gets a ConflictFailure and may retry.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from app.core.config import SETTINGS
from app.core.errors import ConflictFailure
from app.models.organization import (
    DatabaseConfig,
    DatabaseSchema,
    Domain,
    Organization,
    OrganizationMetadata,
    OrganizationSetting,
    OrganizationStatus,
)

# Top-level scalar fields that write_field may touch. Embedded collections
# and status have their own operations.
WRITABLE_FIELDS = frozenset(
    {
        "name",
        "abbr",
        "display_name",
        "description",
        "organization_type",
        "billing_email",
        "expires_date",
        "parent_organization_id",
    }
)


class OrganizationRepo(Protocol):
    def transaction(self, org_id: UUID) -> Any: ...
    def get_by_id(
        self, org_id: UUID, *, include_deleted: bool = False
    ) -> Organization | None: ...
    def add(self, org: Organization) -> None: ...
    def write_field(
        self, org_id: UUID, field_name: str, value: Any, ts: datetime, actor: str
    ) -> None: ...
    def set_status(
        self, org_id: UUID, status: OrganizationStatus, ts: datetime, actor: str
    ) -> None: ...
    def soft_delete(self, org_id: UUID, ts: datetime, actor: str) -> None: ...
    def add_domain(
        self, org_id: UUID, domain: Domain, ts: datetime, actor: str
    ) -> None: ...
    def update_domain(
        self, org_id: UUID, domain: Domain, ts: datetime, actor: str
    ) -> None: ...
    def remove_domain(
        self, org_id: UUID, domain_id: UUID, ts: datetime, actor: str
    ) -> None: ...
    def set_primary_domain(
        self, org_id: UUID, domain_id: UUID, ts: datetime, actor: str
    ) -> None: ...
    def add_schema(
        self, org_id: UUID, schema: DatabaseSchema, ts: datetime, actor: str
    ) -> None: ...
    def update_schema(
        self, org_id: UUID, schema: DatabaseSchema, ts: datetime, actor: str
    ) -> None: ...
    def remove_schema(
        self, org_id: UUID, schema_id: UUID, ts: datetime, actor: str
    ) -> None: ...
    def update_database_config(
        self,
        org_id: UUID,
        connection_string: str | None,
        certificate: str | None,
        ts: datetime,
        actor: str,
    ) -> None: ...
    def update_setting(
        self, org_id: UUID, setting: OrganizationSetting, ts: datetime, actor: str
    ) -> None: ...
    def update_metadata(
        self, org_id: UUID, metadata: OrganizationMetadata, ts: datetime, actor: str
    ) -> None: ...
    def exists_by_name(self, name: str, exclude_id: UUID | None = None) -> bool: ...
    def exists_by_abbr(self, abbr: str, exclude_id: UUID | None = None) -> bool: ...
    def is_domain_registered(
        self, name: str, exclude_domain_id: UUID | None = None
    ) -> bool: ...
    def list_children(self, org_id: UUID) -> list[Organization]: ...
    def has_active_children(self, org_id: UUID) -> bool: ...


class InMemoryOrgRepo:
    def __init__(
        self, *, lock_timeout: float = SETTINGS.org_lock_timeout_seconds
    ) -> None:
        self._by_id: dict[UUID, Organization] = {}
        self._locks: dict[UUID, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        # Guards cross-organization unique keys (name, abbr, domain name).
        self._unique_guard = threading.RLock()
        self._lock_timeout = lock_timeout

    # --- transaction boundary ---

    def _lock_for(self, org_id: UUID) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(org_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[org_id] = lock
            return lock

    @contextmanager
    def transaction(self, org_id: UUID) -> Iterator[None]:
        lock = self._lock_for(org_id)
        if not lock.acquire(timeout=self._lock_timeout):
            raise ConflictFailure(
                f"Organization {org_id} is being modified by another request"
            )
        snapshot = self._by_id.get(org_id)
        try:
            yield
        except BaseException:
            if snapshot is None:
                self._by_id.pop(org_id, None)
            else:
                self._by_id[org_id] = snapshot
            raise
        finally:
            lock.release()

    # --- reads ---

    def get_by_id(
        self, org_id: UUID, *, include_deleted: bool = False
    ) -> Organization | None:
        org = self._by_id.get(org_id)
        if org is None or (org.is_deleted and not include_deleted):
            return None
        return org

    def _live(self) -> list[Organization]:
        return [o for o in self._by_id.values() if not o.is_deleted]

    def exists_by_name(self, name: str, exclude_id: UUID | None = None) -> bool:
        wanted = name.strip().lower()
        return any(
            o.name.lower() == wanted and o.id != exclude_id for o in self._live()
        )

    def exists_by_abbr(self, abbr: str, exclude_id: UUID | None = None) -> bool:
        wanted = abbr.strip().lower()
        return any(
            o.abbr.lower() == wanted and o.id != exclude_id for o in self._live()
        )

    def is_domain_registered(
        self, name: str, exclude_domain_id: UUID | None = None
    ) -> bool:
        wanted = name.strip().lower()
        return any(
            d.name.lower() == wanted and d.id != exclude_domain_id
            for o in self._live()
            for d in o.domains
        )

    def list_children(self, org_id: UUID) -> list[Organization]:
        return [o for o in self._live() if o.parent_organization_id == org_id]

    def has_active_children(self, org_id: UUID) -> bool:
        return any(
            c.status is OrganizationStatus.ACTIVE for c in self.list_children(org_id)
        )

    # --- writes ---

    def _require(self, org_id: UUID) -> Organization:
        org = self._by_id.get(org_id)
        if org is None:
            raise KeyError("organization not found")
        return org

    def _write(self, org_id: UUID, ts: datetime, actor: str, **changes: Any) -> None:
        org = self._require(org_id)
        self._by_id[org_id] = replace(
            org,
            updated_at=ts,
            updated_by=actor,
            version=org.version + 1,
            **changes,
        )

    def add(self, org: Organization) -> None:
        with self._unique_guard:
            if org.id in self._by_id:
                raise ConflictFailure("organization id already exists")
            if self.exists_by_name(org.name):
                raise ConflictFailure("organization name already exists")
            if self.exists_by_abbr(org.abbr):
                raise ConflictFailure("organization abbreviation already exists")
            self._by_id[org.id] = org

    def write_field(
        self, org_id: UUID, field_name: str, value: Any, ts: datetime, actor: str
    ) -> None:
        if field_name not in WRITABLE_FIELDS:
            raise ValueError(f"field {field_name!r} is not writable")
        with self._unique_guard:
            if field_name == "name" and self.exists_by_name(value, exclude_id=org_id):
                raise ConflictFailure("organization name already exists")
            if field_name == "abbr" and self.exists_by_abbr(value, exclude_id=org_id):
                raise ConflictFailure("organization abbreviation already exists")
            self._write(org_id, ts, actor, **{field_name: value})

    def set_status(
        self, org_id: UUID, status: OrganizationStatus, ts: datetime, actor: str
    ) -> None:
        self._write(org_id, ts, actor, status=status)

    def soft_delete(self, org_id: UUID, ts: datetime, actor: str) -> None:
        self._write(
            org_id,
            ts,
            actor,
            status=OrganizationStatus.DELETED,
            deleted_at=ts,
            deleted_by=actor,
        )

    # --- embedded domains ---

    def add_domain(self, org_id: UUID, domain: Domain, ts: datetime, actor: str) -> None:
        with self._unique_guard:
            if self.is_domain_registered(domain.name):
                raise ConflictFailure(f"domain {domain.name} is already registered")
            org = self._require(org_id)
            self._write(org_id, ts, actor, domains=org.domains + (domain,))

    def update_domain(
        self, org_id: UUID, domain: Domain, ts: datetime, actor: str
    ) -> None:
        with self._unique_guard:
            if self.is_domain_registered(domain.name, exclude_domain_id=domain.id):
                raise ConflictFailure(f"domain {domain.name} is already registered")
            org = self._require(org_id)
            if org.find_domain(domain.id) is None:
                raise KeyError("domain not found")
            domains = tuple(domain if d.id == domain.id else d for d in org.domains)
            self._write(org_id, ts, actor, domains=domains)

    def remove_domain(
        self, org_id: UUID, domain_id: UUID, ts: datetime, actor: str
    ) -> None:
        org = self._require(org_id)
        domains = tuple(d for d in org.domains if d.id != domain_id)
        self._write(org_id, ts, actor, domains=domains)

    def set_primary_domain(
        self, org_id: UUID, domain_id: UUID, ts: datetime, actor: str
    ) -> None:
        org = self._require(org_id)
        domains = tuple(replace(d, is_primary=d.id == domain_id) for d in org.domains)
        self._write(org_id, ts, actor, domains=domains)

    # --- embedded database config ---

    def _database(self, org: Organization) -> DatabaseConfig:
        if org.database is None:
            raise KeyError("database configuration not found")
        return org.database

    def add_schema(
        self, org_id: UUID, schema: DatabaseSchema, ts: datetime, actor: str
    ) -> None:
        org = self._require(org_id)
        db = self._database(org)
        self._write(
            org_id, ts, actor, database=replace(db, schemas=db.schemas + (schema,))
        )

    def update_schema(
        self, org_id: UUID, schema: DatabaseSchema, ts: datetime, actor: str
    ) -> None:
        org = self._require(org_id)
        db = self._database(org)
        if org.find_schema(schema.id) is None:
            raise KeyError("schema not found")
        schemas = tuple(schema if s.id == schema.id else s for s in db.schemas)
        self._write(org_id, ts, actor, database=replace(db, schemas=schemas))

    def remove_schema(
        self, org_id: UUID, schema_id: UUID, ts: datetime, actor: str
    ) -> None:
        org = self._require(org_id)
        db = self._database(org)
        schemas = tuple(s for s in db.schemas if s.id != schema_id)
        self._write(org_id, ts, actor, database=replace(db, schemas=schemas))

    def update_database_config(
        self,
        org_id: UUID,
        connection_string: str | None,
        certificate: str | None,
        ts: datetime,
        actor: str,
    ) -> None:
        org = self._require(org_id)
        db = org.database or DatabaseConfig()
        self._write(
            org_id,
            ts,
            actor,
            database=replace(
                db, connection_string=connection_string, certificate=certificate
            ),
        )

    # --- embedded setting / metadata ---

    def update_setting(
        self, org_id: UUID, setting: OrganizationSetting, ts: datetime, actor: str
    ) -> None:
        self._write(org_id, ts, actor, setting=setting)

    def update_metadata(
        self, org_id: UUID, metadata: OrganizationMetadata, ts: datetime, actor: str
    ) -> None:
        self._write(org_id, ts, actor, metadata=metadata)
