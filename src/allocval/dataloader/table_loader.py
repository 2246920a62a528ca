# src/allocval/dataloader/table_loader.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from allocval.errors import DataError
from allocval.validator.types import Table

logger = logging.getLogger(__name__)


class TableLoader:
    """
    CSV / Excel file → Table.

    Rules:
      - .csv read with pandas.read_csv, .xlsx with pandas.read_excel
        (first sheet)
      - every cell is read as text (dtype=str, keep_default_na=False), so
        "" stays "" and "NA" stays "NA"; coercion belongs to the validators
      - header names and string cells are stripped
      - missing REQUIRED columns are not an error here: the validator
        reports them as a missing-columns finding

    Fatal errors (raise DataError):
      - file missing or unreadable (including a missing Excel engine)
      - unsupported extension
      - no header row
    """

    SUPPORTED_SUFFIXES = (".csv", ".xlsx")

    def load(self, path: Path | str) -> Table:
        path = Path(path)
        frame = self._read_frame(path)
        headers = [str(c).strip() for c in frame.columns]
        frame.columns = headers
        rows = [self._strip_row(r) for r in frame.to_dict(orient="records")]
        logger.info("TableLoader OK: %d row(s), %d column(s) from %s", len(rows), len(headers), path)
        return Table(rows=rows, headers=headers, source_name=path.name)

    # ------------------------------
    # Internal helpers
    # ------------------------------
    def _read_frame(self, path: Path) -> pd.DataFrame:
        if not path.exists():
            raise DataError(
                message=f"Input file not found: {path}",
                source="TableLoader._read_frame",
                suggested_action="Verify the file path.",
            )

        suffix = path.suffix.lower()
        if suffix not in self.SUPPORTED_SUFFIXES:
            raise DataError(
                message=f"Unsupported file type: {suffix or '(none)'}",
                source="TableLoader._read_frame",
                suggested_action="Provide a .csv or .xlsx file.",
            )

        try:
            if suffix == ".csv":
                frame = pd.read_csv(
                    path, dtype=str, keep_default_na=False, index_col=False, encoding="utf-8"
                )
            else:
                frame = pd.read_excel(path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError as e:
            raise DataError(
                message=f"File has no header row: {path.name}",
                source="TableLoader._read_frame",
                suggested_action="Ensure the first line contains column names.",
            ) from e
        except (OSError, ValueError) as e:
            raise DataError(
                message=f"Unable to read {path.name}: {e}",
                source="TableLoader._read_frame",
                suggested_action="Check the file is a valid, unlocked CSV/Excel file.",
            ) from e
        except ImportError as e:
            raise DataError(
                message=f"No reader engine available for {path.name}: {e}",
                source="TableLoader._read_frame",
                suggested_action="Install openpyxl or convert the file to CSV.",
            ) from e

        if len(frame.columns) == 0:
            raise DataError(
                message=f"File has no header row: {path.name}",
                source="TableLoader._read_frame",
                suggested_action="Ensure the first line contains column names.",
            )
        return frame

    def _strip_row(self, row: dict[Any, Any]) -> dict[str, Any]:
        return {str(k): (v.strip() if isinstance(v, str) else v) for k, v in row.items()}


__all__ = ["TableLoader"]
