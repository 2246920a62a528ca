# src/allocval/validator/cells.py
from __future__ import annotations

from collections.abc import Iterable

from allocval.schemas.models import Finding
from allocval.validator.types import CellErrorMap


def build_cell_error_map(findings: Iterable[Finding]) -> CellErrorMap:
    """
    @brief
    Project findings onto grid cells.

    @details
    For every finding with both affected_fields and affected_rows, each
    field × row pair receives the finding's message. Messages keep insertion
    order and a cell may hold several. Table-scoped findings are skipped here
    and stay visible through the flat finding list only.

    The map is always rebuilt from the full finding list; it is never edited
    on its own.

    @params
        findings : Iterable[Finding]
            Current findings for one table.

    @returns
        Mapping column name -> row position -> list of messages.
    """
    cell_map: CellErrorMap = {}
    for finding in findings:
        if not finding.is_cell_scoped:
            continue
        for column in finding.affected_fields:
            by_row = cell_map.setdefault(column, {})
            for row in finding.affected_rows:
                by_row.setdefault(row, []).append(finding.message)
    return cell_map


__all__ = ["build_cell_error_map"]
