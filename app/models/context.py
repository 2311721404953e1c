from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID, uuid4

SYSTEM_ACTOR = "system"


@dataclass(frozen=True, slots=True)
class OperationContext:
    """Who is calling, under which correlation id, at what instant.

    Passed explicitly into every engine operation. ``now`` is the single
    clock reading for the whole operation, so every timestamp written by
    one call is identical and tests can pin time.
    """

    actor: str
    correlation_id: str
    now: datetime

    @staticmethod
    def new(
        actor: str,
        *,
        correlation_id: str | None = None,
        now: datetime | None = None,
    ) -> OperationContext:
        return OperationContext(
            actor=actor,
            correlation_id=correlation_id or str(uuid4()),
            now=now or datetime.now(timezone.utc),
        )

    @staticmethod
    def system(*, now: datetime | None = None) -> OperationContext:
        return OperationContext.new(SYSTEM_ACTOR, now=now)

    def log_extra(self, org_id: UUID | None = None) -> dict[str, object]:
        extra: dict[str, object] = {
            "correlation_id": self.correlation_id,
            "actor": self.actor,
        }
        if org_id is not None:
            extra["org_id"] = str(org_id)
        return extra
