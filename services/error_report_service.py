"""
CSV reports of validation problems, for download from the import wizard.
"""

from typing import Iterable

import pandas as pd
import structlog

from models.imports import MissingField, RowValidationError

logger = structlog.get_logger(__name__)

ERROR_REPORT_COLUMNS = ["row", "field", "value", "reason"]
MISSING_FIELDS_REPORT_COLUMNS = ["row", "field", "required"]


def build_error_report(errors: Iterable[RowValidationError]) -> str:
    """
    One CSV line per validation error, ordered by row.

    Errors on the same row keep the order they were found in. An empty
    list gives just the header line.
    """
    records = [e.model_dump() for e in errors]
    df = pd.DataFrame(records, columns=ERROR_REPORT_COLUMNS)
    if not df.empty:
        df = df.sort_values("row", kind="stable")

    logger.debug("error_report_built", rows=len(df))
    return df.to_csv(index=False, lineterminator="\n")


def build_missing_fields_report(missing: Iterable[MissingField]) -> str:
    """One CSV line per empty field, ordered by row."""
    df = pd.DataFrame(
        [
            {"row": m.row, "field": m.field, "required": "yes" if m.is_required else "no"}
            for m in missing
        ],
        columns=MISSING_FIELDS_REPORT_COLUMNS,
    )
    if not df.empty:
        df = df.sort_values("row", kind="stable")
    return df.to_csv(index=False, lineterminator="\n")
