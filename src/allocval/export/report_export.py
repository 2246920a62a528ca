# src/allocval/export/report_export.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from allocval.errors import ReportError
from allocval.schemas.models import Finding

if TYPE_CHECKING:
    from allocval.validator.session import ValidationSession

logger = logging.getLogger(__name__)


def findings_to_records(findings: Iterable[Finding]) -> list[dict[str, Any]]:
    """
    @brief
    Serialize findings as plain records for the export manifest.

    @details
    Keys use the external names: kind, entity, message, affectedRows,
    affectedFields, details. Values are JSON-compatible.
    """
    return [f.model_dump(by_alias=True, mode="json") for f in findings]


def summarize(findings: Iterable[Finding]) -> dict[str, Any]:
    """Counts for summary panels: total, per kind, per severity, table-scoped."""
    items = list(findings)
    return {
        "total": len(items),
        "by_kind": dict(Counter(str(f.kind) for f in items)),
        "by_severity": dict(Counter(f.severity.value for f in items)),
        "table_scoped": sum(1 for f in items if not f.is_cell_scoped),
    }


def build_report(session: ValidationSession, include_cell_errors: bool = True) -> dict[str, Any]:
    """
    @brief
    Assemble the validation report for every loaded table.

    @details
    The report is valid only if at least one table is loaded and every
    loaded table is free of findings. Cell error maps use string row keys so
    the structure survives a JSON round trip unchanged. No files are written
    here.

    @params
        session : ValidationSession
            Session holding the current tables and findings.
        include_cell_errors : bool
            Add the per-cell error map of each table.

    @returns
        Report dictionary.
    """
    entities: dict[str, Any] = {}
    for kind in session.loaded_kinds():
        findings = session.findings(kind)
        entry: dict[str, Any] = {
            "state": session.state(kind).value,
            "source": session.table(kind).source_name,
            "rows": len(session.table(kind)),
            "valid": not findings,
            "summary": summarize(findings),
            "findings": findings_to_records(findings),
        }
        if include_cell_errors:
            entry["cell_errors"] = {
                column: {str(row): messages for row, messages in by_row.items()}
                for column, by_row in session.cell_error_map(kind).items()
            }
        entities[kind.value] = entry

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "valid": bool(entities) and all(e["valid"] for e in entities.values()),
        "entities": entities,
    }


def write_report(
    report: dict[str, Any],
    out_dir: Path,
    filename: str = "validation_report.json",
) -> Path:
    """
    @brief
    Writes the validation report atomically in UTF-8 encoding.

    @details
    Serializes first so a non-serializable payload never leaves a partial
    file behind, then swaps a temporary file into place.

    @returns
        Path to the written report.

    @raises
        ReportError
            If the report is not JSON-serializable or cannot be written.
    """
    if not isinstance(report, dict):
        raise ReportError("report must be a dict", source="report_export.write_report")

    # (1) Validate JSON serializability
    try:
        payload = json.dumps(report, ensure_ascii=False, indent=2)
    except (TypeError, ValueError) as e:
        raise ReportError(
            f"report not JSON-serializable: {e}",
            source="report_export.write_report",
            suggested_action="Ensure finding details hold only primitives, lists and dicts.",
        ) from e

    # (2) Atomically write validated payload
    target = Path(out_dir) / filename
    _atomic_write_text(target, payload + "\n")
    logger.info("Validation report saved: %s", target)
    return target


def _atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """
    @brief
    Performs atomic text file writing using a temporary file swap.

    @raises
        ReportError
            On write or rename failure.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ReportError(
            f"cannot create report directory {path.parent}: {e}",
            source="report_export._atomic_write_text",
            suggested_action="Check output directory permissions.",
        ) from e

    # (1) Create temporary file near the target for atomicity
    fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with open(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError as e:
        # (2) Clean up temp file on error
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise ReportError(
            f"atomic write failed for {path}: {e}",
            source="report_export._atomic_write_text",
            suggested_action="Check output directory permissions and disk space.",
        ) from e


__all__ = [
    "build_report",
    "findings_to_records",
    "summarize",
    "write_report",
]
