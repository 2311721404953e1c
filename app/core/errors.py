"""Failure taxonomy for engine operations.

Every rejected operation raises exactly one EngineError subclass that
carries the full list of field-tagged problems found, so the caller can
show all of them at once instead of fixing one per round-trip.

  ValidationFailure    client-correctable input (duplicate name, cycle)
  PreconditionFailure  state-dependent (active children, terminal status)
  NotFoundFailure      referenced entity missing or soft-deleted
  ConflictFailure      concurrent writer detected; reload and retry

Only ConflictFailure is retryable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str
    rejected_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "message": self.message}
        if self.rejected_value is not None:
            data["rejectedValue"] = str(self.rejected_value)
        return data


class EngineError(Exception):
    default_message = "Operation failed"
    retryable = False

    def __init__(
        self, message: str | None = None, errors: list[FieldError] | None = None
    ) -> None:
        self.message = message or self.default_message
        self.errors: list[FieldError] = list(errors or [])
        super().__init__(self.message)

    def fields(self) -> list[str]:
        return [e.field for e in self.errors]

    def messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "errors": [e.to_dict() for e in self.errors],
        }


class ValidationFailure(EngineError):
    default_message = "Validation failed"


class PreconditionFailure(ValidationFailure):
    default_message = "Operation preconditions not met"


class NotFoundFailure(EngineError):
    default_message = "Entity not found"

    def __init__(self, entity: str, entity_id: object, field: str = "id") -> None:
        super().__init__(
            f"{entity} not found with ID: {entity_id}",
            [FieldError(field, f"{entity} not found", entity_id)],
        )
        self.entity = entity
        self.entity_id = entity_id


class ConflictFailure(EngineError):
    default_message = "Concurrent modification detected"
    retryable = True


class ErrorCollector:
    """Accumulates field errors for one operation."""

    def __init__(self) -> None:
        self._errors: list[FieldError] = []

    def add(self, field: str, message: str, rejected_value: Any = None) -> None:
        self._errors.append(FieldError(field, message, rejected_value))

    def extend(self, errors: list[FieldError]) -> None:
        self._errors.extend(errors)

    @property
    def errors(self) -> list[FieldError]:
        return list(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def raise_if_any(
        self, message: str, exc_type: type[ValidationFailure] = ValidationFailure
    ) -> None:
        if self._errors:
            raise exc_type(message, self.errors)
