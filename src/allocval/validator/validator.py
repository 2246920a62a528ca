# src/allocval/validator/validator.py
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from allocval.errors import DataError
from allocval.schemas.entities import get_entity_spec
from allocval.schemas.models import Config, EntityKind, Finding
from allocval.validator.cells import build_cell_error_map
from allocval.validator.cross_entity import run_cross_entity_checks
from allocval.validator.records import validate_record
from allocval.validator.structural import check_missing_columns, first_occurrences
from allocval.validator.types import ValidationContext, ValidationResult

logger = logging.getLogger(__name__)


def _count_by_kind(findings: Iterable[Finding]) -> str:
    counts = Counter(str(f.kind) for f in findings)
    return ", ".join(f"{k}={v}" for k, v in counts.items())


# ----------------------------
# VALIDATOR CLASS (instance core)
# ----------------------------
class Validator:
    """
    @brief
    Full-table validation pass for one entity kind.

    @details
    Holds only plain inputs (rows, headers, context, config): no grid or UI
    handle is retained. Checks run in a fixed order:
        (1) structural: missing required columns (table-scoped)
        (2) record validators per row (schema, duplicate id, broken JSON,
            out of range, malformed list, preferred phases)
        (3) cross-entity validators once over the full context

    A table missing required columns is not record-validated: every row
    would otherwise drown in "Field required" findings. Cross-entity checks
    still run. Nothing here raises for bad data; problems become findings.
    """

    # ---------- Constructor ----------
    def __init__(
        self,
        kind: EntityKind | str,
        rows: Sequence[Mapping[str, Any]],
        headers: Iterable[str],
        context: ValidationContext | None = None,
        config: Config | None = None,
        source_name: str | None = None,
    ) -> None:
        """
        @brief
        Initialize validation inputs.

        @details
        The context's table for `kind` is replaced with `rows` so cross-entity
        checks see the table being validated rather than a stale snapshot.
        """
        self.spec = get_entity_spec(kind)
        self.kind = self.spec.kind
        self.rows = list(rows)
        self.headers = list(headers)
        self.context = (context or ValidationContext()).with_rows(self.kind, self.rows)
        self.config = config or Config()
        self.source_name = source_name

        # (1) Accumulators per check stage
        self.table_findings: list[Finding] = []
        self.record_findings: dict[int, list[Finding]] = {}
        self.cross_findings: list[Finding] = []

    # ---------- Public lifecycle API ----------
    def run_all_checks(self) -> None:
        # (1) Structural checks run once per table
        self.table_findings = check_missing_columns(self.headers, self.kind, self.source_name)

        # (2) Record validators, skipped for structurally broken tables
        self.record_findings = {}
        if not self.table_findings:
            first_rows = first_occurrences(self.rows, self.spec.id_field)
            for index in range(len(self.rows)):
                self.record_findings[index] = validate_record(
                    self.kind, self.rows, index, first_rows=first_rows
                )

        # (3) Cross-entity validators over the full context
        self.cross_findings = [
            f
            for f in run_cross_entity_checks(self.context, self.config)
            if f.entity == self.kind
        ]

    @property
    def findings(self) -> list[Finding]:
        """Flat finding list in check order."""
        out = list(self.table_findings)
        for index in sorted(self.record_findings):
            out.extend(self.record_findings[index])
        out.extend(self.cross_findings)
        return out

    def build_result(self) -> ValidationResult:
        """
        @brief
        Assemble findings and the derived cell error map.

        @details
        Logs one summary line per pass: INFO when the table is clean,
        WARNING with counts per kind otherwise.
        """
        findings = self.findings
        result = ValidationResult(
            entity=self.kind,
            findings=findings,
            cell_error_map=build_cell_error_map(findings),
        )
        if result.valid:
            logger.info("Validator[%s]: %d row(s) valid.", self.kind.value, len(self.rows))
        else:
            logger.warning(
                "Validator[%s]: %d finding(s) across %d row(s) [%s]",
                self.kind.value,
                len(findings),
                len(self.rows),
                _count_by_kind(findings),
            )
        return result


# ----------------------------
# THIN FACADE
# ----------------------------
def validate(
    kind: EntityKind | str,
    rows: Sequence[Mapping[str, Any]],
    headers: Iterable[str],
    context: ValidationContext | None = None,
    *,
    config: Config | None = None,
    source_name: str | None = None,
) -> ValidationResult:
    """
    @brief
    Full-table pass: findings plus cell error map for one entity kind.

    @params
        kind : EntityKind | str
            Entity kind of the table.
        rows : Sequence[Mapping]
            Current rows of the table.
        headers : Iterable[str]
            Column names found in the source file.
        context : ValidationContext | None
            The other tables (the table for `kind` is taken from `rows`).
        config : Config | None
            Check toggles; defaults when None.
        source_name : str | None
            File name for the missing-columns message.

    @returns
        ValidationResult for `kind`.
    """
    validator = Validator(kind, rows, headers, context, config, source_name)
    validator.run_all_checks()
    return validator.build_result()


def validate_row(
    kind: EntityKind | str,
    row_index: int,
    context: ValidationContext,
    *,
    config: Config | None = None,
) -> list[Finding]:
    """
    @brief
    Incremental pass after an in-place edit.

    @details
    Runs the record validators for the edited row against the current row
    set held in `context` (so duplicate detection sees the edit), then the
    cross-entity checks, whose findings for `kind` are appended. The caller
    replaces that row's findings and all cross-entity findings.

    @raises
        DataError
            Raised if row_index is outside the table.
    """
    spec = get_entity_spec(kind)
    rows = list(context.rows_for(spec.kind))
    if not 0 <= row_index < len(rows):
        raise DataError(
            message=f"Row index {row_index} out of range for {spec.kind.value} table ({len(rows)} rows)",
            source="validator.validate_row",
            suggested_action="Pass the 0-based position of an existing row.",
        )

    findings = validate_record(spec.kind, rows, row_index)
    findings += [
        f for f in run_cross_entity_checks(context, config) if f.entity == spec.kind
    ]
    logger.debug(
        "validate_row[%s:%d]: %d finding(s)", spec.kind.value, row_index, len(findings)
    )
    return findings


def validate_cross_entity(
    context: ValidationContext, config: Config | None = None
) -> dict[EntityKind, list[Finding]]:
    """Run the cross-entity checks once and group their findings by entity kind."""
    grouped: dict[EntityKind, list[Finding]] = {kind: [] for kind in EntityKind}
    for finding in run_cross_entity_checks(context, config):
        grouped[EntityKind(finding.entity)].append(finding)
    return grouped


__all__ = ["Validator", "validate", "validate_cross_entity", "validate_row"]
