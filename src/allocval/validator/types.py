# src/allocval/validator/types.py
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from allocval.schemas.models import EntityKind, Finding

Row = Mapping[str, Any]

# column name -> row position -> messages (insertion order)
CellErrorMap = dict[str, dict[int, list[str]]]


class TableState(str, Enum):
    """
    Validation lifecycle of one table:
    unvalidated → (full pass) → valid | has-findings → (edit) → re-evaluated.
    Replacing or clearing the table returns it to unvalidated.
    """

    UNVALIDATED = "unvalidated"
    VALID = "valid"
    HAS_FINDINGS = "has-findings"


@dataclass(frozen=True)
class Table:
    """
    Rows of one entity kind plus the headers found in the source file.

    Fields:
        rows: Decoded records, positionally addressed (0-based).
        headers: Column names present in the file; may miss required
                 columns (structural finding) or carry extras (tolerated).
        source_name: File name, used in the missing-columns message.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    source_name: str | None = None

    def __len__(self) -> int:
        return len(self.rows)


_CONTEXT_FIELDS = {
    EntityKind.CLIENT: "clients",
    EntityKind.WORKER: "workers",
    EntityKind.TASK: "tasks",
}


@dataclass(frozen=True)
class ValidationContext:
    """
    The three current tables as plain row lists, for cross-entity checks.

    Any of them may be empty (not uploaded yet); checks treat an empty table
    as "cannot prove a violation" and report nothing.
    """

    clients: Sequence[Row] = field(default_factory=list)
    workers: Sequence[Row] = field(default_factory=list)
    tasks: Sequence[Row] = field(default_factory=list)

    def rows_for(self, kind: EntityKind | str) -> Sequence[Row]:
        return getattr(self, _CONTEXT_FIELDS[EntityKind.parse(kind)])

    def with_rows(self, kind: EntityKind | str, rows: Sequence[Row]) -> ValidationContext:
        return replace(self, **{_CONTEXT_FIELDS[EntityKind.parse(kind)]: list(rows)})


@dataclass(slots=True)
class ValidationResult:
    """
    Output of a full-table pass.

    Fields:
        entity: Entity kind that was validated.
        findings: Authoritative flat finding list, in check order.
        cell_error_map: Projection of findings onto cells.
    """

    entity: EntityKind
    findings: list[Finding] = field(default_factory=list)
    cell_error_map: CellErrorMap = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.findings

    @property
    def state(self) -> TableState:
        return TableState.VALID if self.valid else TableState.HAS_FINDINGS

    @property
    def table_findings(self) -> list[Finding]:
        """Findings that cannot anchor to a cell (shown separately)."""
        return [f for f in self.findings if not f.is_cell_scoped]


__all__ = [
    "CellErrorMap",
    "Row",
    "Table",
    "TableState",
    "ValidationContext",
    "ValidationResult",
]
