# scripts/validate.py
from __future__ import annotations

import argparse
import logging
import sys
import time
import traceback
from pathlib import Path
from typing import Any

from allocval.dataloader.config_loader import ConfigLoader
from allocval.dataloader.table_loader import TableLoader
from allocval.errors import AllocvalError
from allocval.export.report_export import build_report, write_report
from allocval.schemas.models import EntityKind
from allocval.validator.session import ValidationSession


def _setup_logging() -> None:
    """
    @brief
    Initializes global logging configuration.

    @details
    INFO level with a compact console format shared by every module logger.
    """
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    @brief
    Parses command-line arguments for the batch validation run.

    @details
    Each of --clients / --workers / --tasks is optional; at least one table
    must be given. Without --config the built-in defaults apply.
    """
    parser = argparse.ArgumentParser(
        prog="allocval-validate",
        description="Validate client / worker / task spreadsheets: load → validate → report",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML (optional)")
    parser.add_argument("--clients", type=str, default=None, help="Clients CSV/XLSX file")
    parser.add_argument("--workers", type=str, default=None, help="Workers CSV/XLSX file")
    parser.add_argument("--tasks", type=str, default=None, help="Tasks CSV/XLSX file")
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output directory for the report (default: report.output_dir from config)",
    )
    args = parser.parse_args(argv)
    if not (args.clients or args.workers or args.tasks):
        parser.error("at least one of --clients, --workers, --tasks is required")
    return args


def run_validation(
    inputs: dict[EntityKind, Path],
    config_path: Path | None = None,
    output_dir: Path | None = None,
) -> dict[str, Any]:
    """
    @brief
    Loads the given tables into one session and validates them together.

    @details
    Tables are loaded in client → worker → task order; each load refreshes
    cross-entity findings of the tables already present, so the final state
    equals a joint validation of all inputs.

    @params
        inputs : dict[EntityKind, Path]
            Table file per entity kind.
        config_path : Path | None
            YAML configuration; defaults when None.
        output_dir : Path | None
            Report directory; overrides report.output_dir.

    @returns
        Dictionary with the validity flag, the report and the report path.

    @raises
        AllocvalError
            On configuration, data, or report-writing issues.
    """
    t0 = time.perf_counter()

    # (1) Configuration
    cfg = ConfigLoader().load(config_path)

    # (2) Load every table into the session
    session = ValidationSession(cfg)
    loader = TableLoader()
    for kind in EntityKind:
        path = inputs.get(kind)
        if path is None:
            continue
        logging.info("Loading %s: %s", kind.label.lower(), path)
        table = loader.load(path)
        session.load_table(kind, table.rows, table.headers, source_name=table.source_name)

    # (3) Report
    report = build_report(session, include_cell_errors=cfg.report.include_cell_errors)
    report_path: Path | None = None
    if cfg.report.write_report:
        out_dir = output_dir if output_dir is not None else Path(cfg.report.output_dir)
        report_path = write_report(report, out_dir, cfg.report.filename)

    logging.info("Validation finished in %.2f s", time.perf_counter() - t0)
    return {"valid": report["valid"], "report": report, "report_path": report_path}


def main(argv: list[str] | None = None) -> int:
    """
    @brief
    CLI entry point for batch validation.

    @details
    Exit codes:
      0 – every loaded table is valid
      1 – findings present, or a controlled failure (config/data/report)
      2 – unexpected crash
    """
    _setup_logging()
    args = _parse_args(argv)

    inputs = {
        kind: Path(value)
        for kind, value in (
            (EntityKind.CLIENT, args.clients),
            (EntityKind.WORKER, args.workers),
            (EntityKind.TASK, args.tasks),
        )
        if value
    }

    try:
        result = run_validation(
            inputs,
            Path(args.config) if args.config else None,
            Path(args.output) if args.output else None,
        )
        for name, entry in result["report"]["entities"].items():
            logging.info(
                "%s: %s (%d finding(s))", name, entry["state"], entry["summary"]["total"]
            )
        return 0 if result["valid"] else 1

    except AllocvalError as e:
        logging.error(str(e))
        return 1
    except Exception:
        logging.error("Unexpected error occurred:")
        traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
