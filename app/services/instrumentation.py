"""Outcome recording shared by every engine operation.

Wrapping each operation body in ``track()`` gives one place that turns
its result into a metric sample and a log line, the way a request
middleware does for HTTP handlers:

    with track("add_domain", ctx, org_id) as outcome:
        ...
        if nothing_to_do:
            outcome.skip()
            return org

Exceptions are recorded and re-raised unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from app.core.errors import ConflictFailure, EngineError, NotFoundFailure
from app.core.metrics import ORG_OPERATIONS, VALIDATION_ERRORS
from app.models.context import OperationContext

logger = logging.getLogger(__name__)


class Outcome:
    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value = "success"

    def skip(self) -> None:
        self.value = "skipped"


def op_extra(
    ctx: OperationContext, operation: str, org_id: UUID | None = None
) -> dict[str, object]:
    extra = ctx.log_extra(org_id)
    extra["operation"] = operation
    return extra


@contextmanager
def track(
    operation: str, ctx: OperationContext, org_id: UUID | None = None
) -> Iterator[Outcome]:
    outcome = Outcome()
    extra = op_extra(ctx, operation, org_id)
    logger.debug("%s started", operation, extra=extra)
    try:
        yield outcome
    except ConflictFailure as exc:
        ORG_OPERATIONS.labels(operation=operation, outcome="conflict").inc()
        logger.warning("%s conflict: %s", operation, exc.message, extra=extra)
        raise
    except NotFoundFailure as exc:
        ORG_OPERATIONS.labels(operation=operation, outcome="rejected").inc()
        logger.warning("%s rejected: %s", operation, exc.message, extra=extra)
        raise
    except EngineError as exc:
        ORG_OPERATIONS.labels(operation=operation, outcome="rejected").inc()
        VALIDATION_ERRORS.labels(operation=operation).inc(len(exc.errors))
        logger.warning(
            "%s rejected: %s fields=%s",
            operation,
            exc.message,
            ",".join(exc.fields()),
            extra=extra,
        )
        raise
    ORG_OPERATIONS.labels(operation=operation, outcome=outcome.value).inc()
    logger.debug("%s finished outcome=%s", operation, outcome.value, extra=extra)
