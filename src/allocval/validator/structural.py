# src/allocval/validator/structural.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from allocval.schemas.entities import EntitySpec, as_text, get_entity_spec
from allocval.schemas.models import EntityKind, Finding, FindingKind

logger = logging.getLogger(__name__)


def missing_columns(headers: Iterable[str], kind: EntityKind | str) -> list[str]:
    """Required columns of `kind` absent from `headers`, in required order."""
    present = {str(h).strip() for h in headers if h is not None}
    return [c for c in get_entity_spec(kind).required_columns if c not in present]


def check_missing_columns(
    headers: Iterable[str], kind: EntityKind | str, source_name: str | None = None
) -> list[Finding]:
    """
    @brief
    Compare the table header against the entity's required columns.

    @details
    Emits at most one table-scoped finding listing every absent column and
    naming the source file. A table missing structural columns is not
    record-validated further by the orchestrator.

    @params
        headers : Iterable[str]
            Column names found in the uploaded file.
        kind : EntityKind | str
            Entity kind of the table.
        source_name : str | None
            File name shown in the message.

    @returns
        [] or a single missing-columns finding (details = missing names).
    """
    spec = get_entity_spec(kind)
    missing = missing_columns(headers, spec.kind)
    if not missing:
        return []

    message = f"Missing required column(s): {', '.join(missing)}"
    if source_name:
        message += f" in {source_name}"
    logger.warning("%s table: %s", spec.label, message)
    return [
        Finding(
            kind=FindingKind.MISSING_COLUMNS,
            entity=spec.kind,
            message=message,
            details=list(missing),
        )
    ]


def identifier_of(row: Mapping[str, Any], id_field: str) -> str | None:
    """Trimmed identifier value, or None when empty/missing."""
    if not isinstance(row, Mapping):
        return None
    value = as_text(row.get(id_field))
    if not isinstance(value, str):
        return None
    return value.strip() or None


def first_occurrences(rows: Sequence[Mapping[str, Any]], id_field: str) -> dict[str, int]:
    """Map each non-empty identifier to the position of its first row."""
    first: dict[str, int] = {}
    for index, row in enumerate(rows):
        value = identifier_of(row, id_field)
        if value is not None and value not in first:
            first[value] = index
    return first


def duplicate_id_finding(
    spec: EntitySpec,
    rows: Sequence[Mapping[str, Any]],
    index: int,
    first_rows: Mapping[str, int] | None = None,
) -> Finding | None:
    """
    @brief
    Duplicate-identifier verdict for one row against the whole table.

    @details
    A row is a duplicate iff an earlier row holds the same non-empty
    identifier; the first occurrence is never flagged. Rows with an empty
    identifier are neither flagged nor tracked. `first_rows` lets a full pass
    reuse one index of first occurrences instead of rescanning per row.
    """
    value = identifier_of(rows[index], spec.id_field)
    if value is None:
        return None

    if first_rows is None:
        first_rows = first_occurrences(rows, spec.id_field)
    first = first_rows.get(value, index)
    if first >= index:
        return None

    return Finding(
        kind=FindingKind.DUPLICATE_ID,
        entity=spec.kind,
        message=f"Duplicate {spec.id_field} '{value}' found at row {index + 1}",
        affected_rows=[index],
        affected_fields=[spec.id_field],
        details={"value": value, "first_row": first},
    )


def check_duplicate_ids(
    rows: Sequence[Mapping[str, Any]], kind: EntityKind | str
) -> list[Finding]:
    """
    @brief
    Walk a table in order and flag every repeated identifier.

    @details
    One finding per later occurrence, scoped to that row and the identifier
    column. The message carries the 1-based row number for display.
    """
    spec = get_entity_spec(kind)
    first_rows = first_occurrences(rows, spec.id_field)
    findings: list[Finding] = []
    for index in range(len(rows)):
        finding = duplicate_id_finding(spec, rows, index, first_rows)
        if finding is not None:
            findings.append(finding)
    return findings


__all__ = [
    "check_duplicate_ids",
    "check_missing_columns",
    "duplicate_id_finding",
    "first_occurrences",
    "identifier_of",
    "missing_columns",
]
