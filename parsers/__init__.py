"""
Upload file parsers.
"""

from parsers.spreadsheet_parser import (
    parse_spreadsheet,
    detect_file_format,
    ParsedSpreadsheet,
)

__all__ = [
    "parse_spreadsheet",
    "detect_file_format",
    "ParsedSpreadsheet",
]
