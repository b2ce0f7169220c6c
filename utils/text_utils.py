"""
Text utilities for spreadsheet headers and cells.

Headers arrive in every shape ("Product Name", "PRODUCT_NAME", "Prodúct name ")
and must compare equal once normalized.
"""

import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def strip_accents(value: str) -> str:
    """
    Remove accent marks, keeping base characters.

    "Categoría" → "Categoria"
    """
    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize("NFD", value)
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


def normalize_header(name: Optional[str]) -> str:
    """
    Normalize a column header or field name for comparison.

    - "Product Name" → "productname"
    - "expiry_date" → "expirydate"
    - "  Precio (€) " → "precio"

    Returns:
        Lowercase ASCII letters and digits only; "" for empty input
    """
    if not name:
        return ""
    return _NON_ALNUM.sub("", strip_accents(str(name)).lower())


def clean_cell(value: Optional[str], max_length: int = 500) -> Optional[str]:
    """
    Clean a raw cell for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings
    """
    if value is None:
        return None

    value = str(value).strip()

    if not value:
        return None

    if len(value) > max_length:
        value = value[:max_length]

    return value
