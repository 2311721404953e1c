from __future__ import annotations

from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


class PlanAssociationCreate(_Payload):
    plan_id: UUID
    valid_from: AwareDatetime | None = None  # defaults to now
    valid_to: AwareDatetime | None = None
    is_active: bool = True
    comment: str | None = None


class PlanAssociationUpdate(_Payload):
    valid_from: AwareDatetime | None = None
    valid_to: AwareDatetime | None = None
    comment: str | None = None
