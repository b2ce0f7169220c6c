"""
Spreadsheet parser for import uploads.

Turns an uploaded CSV or Excel file into a header plus raw string rows.
No interpretation happens here: every cell stays a string so the
validation step can report the value exactly as the user typed it.

Any failure here is fatal for the analysis step (ImportParseError).
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional
import structlog

import pandas as pd

from exceptions import ImportParseError, UnsupportedFileTypeError

logger = structlog.get_logger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
CSV_ENCODINGS = ["utf-8-sig", "latin-1"]


@dataclass
class ParsedSpreadsheet:
    """Header and data rows of the first sheet."""
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def detect_file_format(filename: Optional[str], content_type: Optional[str] = None) -> str:
    """
    Decide how to read an upload.

    Extension wins; content type is the fallback for nameless uploads.

    Returns:
        "csv" or "excel"

    Raises:
        UnsupportedFileTypeError: If neither tells us
    """
    suffix = Path(filename).suffix.lower() if filename else ""
    if suffix in CSV_EXTENSIONS:
        return "csv"
    if suffix in EXCEL_EXTENSIONS:
        return "excel"

    content_type = (content_type or "").lower()
    if "csv" in content_type or content_type == "text/plain":
        return "csv"
    if "spreadsheetml" in content_type or "excel" in content_type:
        return "excel"

    raise UnsupportedFileTypeError(filename, content_type)


def parse_spreadsheet(
    content: bytes,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> ParsedSpreadsheet:
    """
    Parse an uploaded file into raw rows.

    Args:
        content: File bytes
        filename: Original filename (used to detect the format)
        content_type: MIME type sent by the browser
        max_bytes: Reject larger uploads

    Returns:
        ParsedSpreadsheet with stripped string cells; blank rows dropped

    Raises:
        ImportParseError: Empty, oversized, malformed or header-only file
        UnsupportedFileTypeError: Not CSV or Excel
    """
    file_format = detect_file_format(filename, content_type)

    logger.info(
        "parsing_spreadsheet",
        filename=filename,
        file_format=file_format,
        size_bytes=len(content) if content else 0
    )

    if not content:
        raise ImportParseError(
            message="The uploaded file is empty",
            details={"filename": filename}
        )

    if max_bytes is not None and len(content) > max_bytes:
        raise ImportParseError(
            message="The uploaded file is too large",
            details={"filename": filename, "size_bytes": len(content), "max_bytes": max_bytes}
        )

    if file_format == "csv":
        df = _load_csv(content)
    else:
        df = _load_excel(content)

    result = _dataframe_to_rows(df)

    if not result.columns:
        raise ImportParseError(
            message="No header row found in the uploaded file",
            details={"filename": filename}
        )
    if result.row_count == 0:
        raise ImportParseError(
            message="No data found in the uploaded file",
            details={"filename": filename, "columns": result.columns}
        )

    logger.info(
        "spreadsheet_parsed",
        filename=filename,
        columns=len(result.columns),
        rows=result.row_count
    )

    return result


def _load_csv(content: bytes) -> pd.DataFrame:
    """Load CSV bytes, trying UTF-8 first and latin-1 for legacy exports."""
    last_error: Optional[Exception] = None

    for encoding in CSV_ENCODINGS:
        try:
            return pd.read_csv(
                BytesIO(content),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding=encoding,
            )
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except pd.errors.EmptyDataError as e:
            raise ImportParseError(
                message="No data found in the uploaded file",
                details={"original_error": str(e)}
            ) from e
        except (pd.errors.ParserError, ValueError) as e:
            logger.error("csv_read_failed", error=str(e))
            raise ImportParseError(
                message="Invalid CSV format. Please check your file and try again.",
                details={"original_error": str(e)}
            ) from e

    raise ImportParseError(
        message="Could not decode the CSV file",
        details={"original_error": str(last_error)}
    )


def _load_excel(content: bytes) -> pd.DataFrame:
    """Load the first sheet of an Excel workbook."""
    try:
        return pd.read_excel(
            BytesIO(content),
            sheet_name=0,
            engine="openpyxl",
            dtype=str,
            keep_default_na=False,
        )
    except Exception as e:
        logger.error("excel_read_failed", error=str(e))
        raise ImportParseError(
            message="Failed to read Excel file",
            details={"original_error": str(e)}
        ) from e


def _dataframe_to_rows(df: pd.DataFrame) -> ParsedSpreadsheet:
    """Convert a string DataFrame to ordered dict rows."""
    df = df.fillna("")

    # Trailing empty columns show up as "Unnamed: N"
    keep = []
    for col in df.columns:
        header = str(col).strip()
        if header.startswith("Unnamed:") and not (df[col].astype(str).str.strip() != "").any():
            continue
        keep.append(col)
    df = df[keep]

    columns = [str(col).strip() for col in df.columns]
    rows: list[dict[str, str]] = []

    for values in df.itertuples(index=False, name=None):
        cells = [_cell_to_str(v) for v in values]
        if not any(cells):
            continue
        rows.append(dict(zip(columns, cells)))

    return ParsedSpreadsheet(columns=columns, rows=rows)


def _cell_to_str(value) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()
