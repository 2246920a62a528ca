# src/allocval/validator/records.py
"""
@brief
Per-row record validators.

@details
Each check looks at one row of one entity kind and returns findings scoped
to that row and the violating column(s). validate_record() runs them in a
fixed order so message order is deterministic:

    1. schema            (every entity, generic row model)
    2. duplicate id      (every entity, against the whole table)
    3. broken JSON       (client AttributesJSON)
    4. out of range      (client PriorityLevel, task Duration)
    5. malformed list    (worker AvailableSlots)
    6. preferred phases  (task PreferredPhases)
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from allocval.schemas.entities import EntitySpec, get_entity_spec, parse_int, parse_phases
from allocval.schemas.models import EntityKind, Finding, FindingKind
from allocval.validator.guard import run_guarded
from allocval.validator.structural import duplicate_id_finding

PRIORITY_RANGE = (1, 5)
MIN_DURATION = 1


def _row_finding(
    spec: EntitySpec,
    kind: FindingKind,
    index: int,
    fields: list[str],
    message: str,
    details: Any = None,
) -> Finding:
    return Finding(
        kind=kind,
        entity=spec.kind,
        message=message,
        affected_rows=[index],
        affected_fields=fields,
        details=details,
    )


def check_schema(spec: EntitySpec, row: Mapping[str, Any], index: int) -> list[Finding]:
    """
    @brief
    Validate one row against the entity's generic row model.

    @details
    All violations are folded into a single schema-error finding: messages
    are comma-joined as "<field>: <reason>" in field order, and the violated
    columns (deduplicated, ordered) become affected_fields.
    """
    try:
        spec.row_model.model_validate(dict(row) if isinstance(row, Mapping) else row)
    except SchemaValidationError as e:
        fields: list[str] = []
        messages: list[str] = []
        for err in e.errors():
            loc = err.get("loc") or ()
            if loc:
                field = str(loc[0])
                if field not in fields:
                    fields.append(field)
                messages.append(f"{field}: {err['msg']}")
            else:
                messages.append(err["msg"])
        return [_row_finding(spec, FindingKind.SCHEMA_ERROR, index, fields, ", ".join(messages))]
    return []


def check_duplicate_id(
    spec: EntitySpec,
    rows: Sequence[Mapping[str, Any]],
    index: int,
    first_rows: Mapping[str, int] | None = None,
) -> list[Finding]:
    finding = duplicate_id_finding(spec, rows, index, first_rows)
    return [finding] if finding is not None else []


def check_broken_json(spec: EntitySpec, row: Mapping[str, Any], index: int) -> list[Finding]:
    """Client AttributesJSON given as text must parse as JSON."""
    if spec.kind is not EntityKind.CLIENT:
        return []
    value = row.get("AttributesJSON")
    if not isinstance(value, str):
        return []
    try:
        json.loads(value)
    except json.JSONDecodeError as e:
        return [
            _row_finding(
                spec,
                FindingKind.INVALID_JSON,
                index,
                ["AttributesJSON"],
                "AttributesJSON must be valid JSON",
                details={"error": e.msg, "position": e.pos},
            )
        ]
    return []


def _parsed_int(value: Any) -> int | None:
    try:
        return parse_int(value)
    except ValueError:
        return None


def check_out_of_range(spec: EntitySpec, row: Mapping[str, Any], index: int) -> list[Finding]:
    """PriorityLevel in [1, 5] for clients; Duration >= 1 for tasks."""
    if spec.kind is EntityKind.CLIENT:
        low, high = PRIORITY_RANGE
        priority = _parsed_int(row.get("PriorityLevel"))
        if priority is None or not low <= priority <= high:
            return [
                _row_finding(
                    spec,
                    FindingKind.OUT_OF_RANGE,
                    index,
                    ["PriorityLevel"],
                    f"PriorityLevel must be between {low} and {high}",
                    details={"value": row.get("PriorityLevel"), "min": low, "max": high},
                )
            ]

    if spec.kind is EntityKind.TASK:
        duration = _parsed_int(row.get("Duration"))
        if duration is None or duration < MIN_DURATION:
            return [
                _row_finding(
                    spec,
                    FindingKind.OUT_OF_RANGE,
                    index,
                    ["Duration"],
                    f"Duration must be at least {MIN_DURATION}",
                    details={"value": row.get("Duration"), "min": MIN_DURATION},
                )
            ]

    return []


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def check_malformed_list(spec: EntitySpec, row: Mapping[str, Any], index: int) -> list[Finding]:
    """Worker AvailableSlots must be a JSON array of numbers."""
    if spec.kind is not EntityKind.WORKER:
        return []
    value = row.get("AvailableSlots")
    try:
        slots = value if isinstance(value, list) else json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return [
            _row_finding(
                spec,
                FindingKind.MALFORMED_LIST,
                index,
                ["AvailableSlots"],
                "AvailableSlots must be valid JSON array",
            )
        ]
    if not isinstance(slots, list) or not all(_is_number(s) for s in slots):
        return [
            _row_finding(
                spec,
                FindingKind.MALFORMED_LIST,
                index,
                ["AvailableSlots"],
                "AvailableSlots must be a valid array of numbers",
            )
        ]
    return []


def check_preferred_phases(
    spec: EntitySpec, row: Mapping[str, Any], index: int
) -> list[Finding]:
    """Task PreferredPhases must be a JSON array or a start-end range of positive integers."""
    if spec.kind is not EntityKind.TASK:
        return []
    value = row.get("PreferredPhases")
    try:
        phases = parse_phases(value)
    except ValueError:
        phases = None
    if phases is not None and all(
        isinstance(p, int) and not isinstance(p, bool) and p > 0 for p in phases
    ):
        return []
    return [
        _row_finding(
            spec,
            FindingKind.INVALID_PREFERRED_PHASES,
            index,
            ["PreferredPhases"],
            "PreferredPhases must be a JSON array of positive integers or a range like 1-3",
            details={"value": value},
        )
    ]


def validate_record(
    kind: EntityKind | str,
    rows: Sequence[Mapping[str, Any]],
    index: int,
    *,
    first_rows: Mapping[str, int] | None = None,
) -> list[Finding]:
    """
    @brief
    Run every record check for one row, in order.

    @details
    Duplicate detection sees the full current row set, so the result is the
    same whether it is called from a full-table pass or after a single edit.
    Each check is guarded: one failing check never hides the others.

    @params
        kind : EntityKind | str
            Entity kind of the table.
        rows : Sequence[Mapping]
            The whole current table.
        index : int
            Position of the row to validate.
        first_rows : Mapping[str, int] | None
            Optional precomputed first occurrence index of identifiers.

    @returns
        Findings for this row, in check order.
    """
    spec = get_entity_spec(kind)
    row = rows[index]
    findings: list[Finding] = []

    findings += run_guarded(
        "schema", check_schema, spec, row, index, entity=spec.kind, row_index=index
    )
    findings += run_guarded(
        "duplicate-id",
        check_duplicate_id,
        spec,
        rows,
        index,
        first_rows,
        entity=spec.kind,
        row_index=index,
    )
    findings += run_guarded(
        "broken-json", check_broken_json, spec, row, index, entity=spec.kind, row_index=index
    )
    findings += run_guarded(
        "out-of-range", check_out_of_range, spec, row, index, entity=spec.kind, row_index=index
    )
    findings += run_guarded(
        "malformed-list",
        check_malformed_list,
        spec,
        row,
        index,
        entity=spec.kind,
        row_index=index,
    )
    findings += run_guarded(
        "preferred-phases",
        check_preferred_phases,
        spec,
        row,
        index,
        entity=spec.kind,
        row_index=index,
    )
    return findings


__all__ = [
    "MIN_DURATION",
    "PRIORITY_RANGE",
    "check_broken_json",
    "check_duplicate_id",
    "check_malformed_list",
    "check_out_of_range",
    "check_preferred_phases",
    "check_schema",
    "validate_record",
]
