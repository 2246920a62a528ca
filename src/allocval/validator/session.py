# src/allocval/validator/session.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any

from allocval.errors import DataError
from allocval.export.report_export import findings_to_records
from allocval.schemas.entities import get_entity_spec
from allocval.schemas.models import Config, EntityKind, Finding, FindingKind
from allocval.validator.cells import build_cell_error_map
from allocval.validator.records import check_duplicate_id, validate_record
from allocval.validator.structural import first_occurrences, identifier_of
from allocval.validator.types import (
    CellErrorMap,
    Table,
    TableState,
    ValidationContext,
    ValidationResult,
)
from allocval.validator.validator import Validator, validate_cross_entity

logger = logging.getLogger(__name__)


class ValidationSession:
    """
    @brief
    Current tables and their findings, kept consistent across edits.

    @details
    The UI layer pushes changes in and reads findings back; nothing is
    re-validated in the background. Findings of each table are kept in three
    parts so an edit can replace exactly what it affects:
        - table findings   (missing columns)
        - record findings  (per row position)
        - cross findings   (recomputed as a whole after any change)

    Tables are replaced, never mutated in place: an edit builds a new row
    dict and a new Table before the next pass reads it.
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or Config()
        self._tables: dict[EntityKind, Table] = {kind: Table() for kind in EntityKind}
        self._states: dict[EntityKind, TableState] = {
            kind: TableState.UNVALIDATED for kind in EntityKind
        }
        self._table_findings: dict[EntityKind, list[Finding]] = {k: [] for k in EntityKind}
        self._record_findings: dict[EntityKind, dict[int, list[Finding]]] = {
            k: {} for k in EntityKind
        }
        self._cross_findings: dict[EntityKind, list[Finding]] = {k: [] for k in EntityKind}

    # ---------- Read access ----------
    @property
    def context(self) -> ValidationContext:
        return ValidationContext(
            clients=self._tables[EntityKind.CLIENT].rows,
            workers=self._tables[EntityKind.WORKER].rows,
            tasks=self._tables[EntityKind.TASK].rows,
        )

    def table(self, kind: EntityKind | str) -> Table:
        return self._tables[EntityKind.parse(kind)]

    def state(self, kind: EntityKind | str) -> TableState:
        return self._states[EntityKind.parse(kind)]

    def findings(self, kind: EntityKind | str) -> list[Finding]:
        """Flat finding list: table findings, then rows in order, then cross-entity."""
        kind = EntityKind.parse(kind)
        out = list(self._table_findings[kind])
        records = self._record_findings[kind]
        for index in sorted(records):
            out.extend(records[index])
        out.extend(self._cross_findings[kind])
        return out

    def row_findings(self, kind: EntityKind | str, row_index: int) -> list[Finding]:
        return [f for f in self.findings(kind) if row_index in f.affected_rows]

    def cell_error_map(self, kind: EntityKind | str) -> CellErrorMap:
        return build_cell_error_map(self.findings(kind))

    def result(self, kind: EntityKind | str) -> ValidationResult:
        findings = self.findings(kind)
        return ValidationResult(
            entity=EntityKind.parse(kind),
            findings=findings,
            cell_error_map=build_cell_error_map(findings),
        )

    def loaded_kinds(self) -> list[EntityKind]:
        return [k for k in EntityKind if self._states[k] is not TableState.UNVALIDATED]

    def export_manifest(self) -> dict[str, list[dict[str, Any]]]:
        """Current findings per entity kind as plain records, for the export collaborator."""
        return {kind.value: findings_to_records(self.findings(kind)) for kind in EntityKind}

    # ---------- Table lifecycle ----------
    def load_table(
        self,
        kind: EntityKind | str,
        rows: Sequence[Mapping[str, Any]],
        headers: Iterable[str],
        source_name: str | None = None,
    ) -> ValidationResult:
        """
        @brief
        Replace a table wholesale (new upload) and validate it.

        @details
        The table passes through unvalidated, gets a full pass, then every
        table's cross-entity findings are recomputed since the new rows can
        change references, skill coverage and capacity of the others.
        """
        kind = EntityKind.parse(kind)
        self._tables[kind] = Table(
            rows=[dict(r) for r in rows], headers=list(headers), source_name=source_name
        )
        self._states[kind] = TableState.UNVALIDATED
        logger.info(
            "Session: loaded %s table (%d rows) from %s",
            kind.value,
            len(self._tables[kind]),
            source_name or "memory",
        )
        return self.revalidate(kind)

    def clear_table(self, kind: EntityKind | str) -> None:
        kind = EntityKind.parse(kind)
        self._tables[kind] = Table()
        self._table_findings[kind] = []
        self._record_findings[kind] = {}
        self._cross_findings[kind] = []
        self._states[kind] = TableState.UNVALIDATED
        logger.info("Session: cleared %s table", kind.value)
        self._refresh_cross_entity()

    def revalidate(self, kind: EntityKind | str) -> ValidationResult:
        """Full pass for one table; cross-entity findings are refreshed for all tables."""
        kind = EntityKind.parse(kind)
        table = self._tables[kind]
        validator = Validator(
            kind, table.rows, table.headers, self.context, self.config, table.source_name
        )
        validator.run_all_checks()
        self._table_findings[kind] = validator.table_findings
        self._record_findings[kind] = validator.record_findings
        # Mark as validated; the cross refresh settles valid vs has-findings
        self._states[kind] = TableState.HAS_FINDINGS
        self._refresh_cross_entity()
        return self.result(kind)

    # ---------- Edits ----------
    def update_row(
        self, kind: EntityKind | str, row_index: int, values: Mapping[str, Any]
    ) -> list[Finding]:
        """
        @brief
        Apply new values to one row and revalidate incrementally.

        @details
        Steps:
            (1) replace the row (new dict, new Table)
            (2) recompute the record findings of that row only
            (3) refresh duplicate-id findings of other rows sharing the
                row's old or new identifier, since their verdict depends on
                this row
            (4) recompute all cross-entity findings
        Findings of unrelated rows stay untouched.

        @returns
            Findings now attached to the edited row.

        @raises
            DataError
                Raised if row_index is outside the table.
        """
        spec = get_entity_spec(kind)
        kind = spec.kind
        table = self._tables[kind]
        if not 0 <= row_index < len(table.rows):
            raise DataError(
                message=f"Row index {row_index} out of range for {kind.value} table ({len(table.rows)} rows)",
                source="ValidationSession.update_row",
                suggested_action="Load the table first and pass an existing 0-based row position.",
            )

        # (1) Replace the row
        old_id = identifier_of(table.rows[row_index], spec.id_field)
        rows = list(table.rows)
        rows[row_index] = {**rows[row_index], **values}
        self._tables[kind] = replace(table, rows=rows)

        # (2) Row findings; structurally broken tables stay at the missing-columns finding
        if not self._table_findings[kind]:
            self._record_findings[kind][row_index] = validate_record(kind, rows, row_index)

            # (3) Duplicate verdicts of rows sharing the old or new identifier
            new_id = identifier_of(rows[row_index], spec.id_field)
            touched = {old_id, new_id} - {None}
            if touched:
                self._refresh_duplicates(kind, rows, touched, skip=row_index)

        # (4) Cross-entity findings for every table
        self._refresh_cross_entity()
        return self.row_findings(kind, row_index)

    def edit_cell(
        self, kind: EntityKind | str, row_index: int, column: str, value: Any
    ) -> list[Finding]:
        return self.update_row(kind, row_index, {column: value})

    # ---------- Internal helpers ----------
    def _refresh_duplicates(
        self, kind: EntityKind, rows: list[dict[str, Any]], ids: set[str], skip: int
    ) -> None:
        spec = get_entity_spec(kind)
        first_rows = first_occurrences(rows, spec.id_field)
        records = self._record_findings[kind]
        for index, row in enumerate(rows):
            if index == skip or identifier_of(row, spec.id_field) not in ids:
                continue
            current = records.get(index, [])
            schema = [f for f in current if f.kind == FindingKind.SCHEMA_ERROR]
            rest = [
                f
                for f in current
                if f.kind not in (FindingKind.SCHEMA_ERROR, FindingKind.DUPLICATE_ID)
            ]
            records[index] = schema + check_duplicate_id(spec, rows, index, first_rows) + rest

    def _refresh_cross_entity(self) -> None:
        grouped = validate_cross_entity(self.context, self.config)
        for kind in EntityKind:
            if self._states[kind] is TableState.UNVALIDATED:
                self._cross_findings[kind] = []
                continue
            self._cross_findings[kind] = grouped[kind]
            self._states[kind] = (
                TableState.HAS_FINDINGS if self.findings(kind) else TableState.VALID
            )


__all__ = ["ValidationSession"]
