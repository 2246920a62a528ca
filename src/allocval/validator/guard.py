# src/allocval/validator/guard.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from allocval.schemas.models import EntityKind, Finding, FindingKind

logger = logging.getLogger(__name__)


def run_guarded(
    name: str,
    check: Callable[..., Iterable[Finding]],
    *args: Any,
    entity: EntityKind,
    row_index: int | None = None,
) -> list[Finding]:
    """
    @brief
    Run one check so that an unexpected exception cannot abort the pass.

    @details
    Checks are non-throwing by contract. If one raises anyway (an input shape
    nobody anticipated), the traceback is logged and the failure becomes a
    schema-error finding naming the check, scoped to the row when the check
    is row-scoped. The caller continues with the next check.

    @params
        name : str
            Check name used in the log and the finding message.
        check : Callable
            The check function; called with *args.
        entity : EntityKind
            Entity the fallback finding is attributed to.
        row_index : int | None
            Row position for row-scoped checks.

    @returns
        The check's findings, or a single fallback finding.
    """
    try:
        return list(check(*args))
    except Exception as e:
        where = f" row {row_index}" if row_index is not None else ""
        logger.exception("Check %s failed on %s%s", name, entity.value, where)
        return [
            Finding(
                kind=FindingKind.SCHEMA_ERROR,
                entity=entity,
                message=f"Internal error in {name}: {e}",
                affected_rows=[row_index] if row_index is not None else [],
                details={"check": name, "exception": type(e).__name__},
            )
        ]


__all__ = ["run_guarded"]
