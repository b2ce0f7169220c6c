"""
Schema mapper.

Suggests which target field each spreadsheet column feeds, with a
confidence score per column. Scores come from header-name heuristics only:

    1.0  header equals the field name or label      ("SKU" -> sku)
    0.9  header equals a known synonym              ("Qty" -> stock)
    0.8  header contains the name/label or inverse  ("Retail Price EUR" -> price)
    0.7  header partially matches a synonym         ("Dept." -> category)
    0.6  header is a near spelling of a name/synonym ("Suplier" -> supplier)
    0.0  nothing useful, column left unmapped

Ties are deterministic: a column keeps the first catalog field reaching its
best score, and when several columns pre-select one field the highest
confidence wins, then the leftmost column.
"""

from typing import Optional

import structlog
from rapidfuzz import fuzz

from config import settings
from models.imports import (
    AnalysisResult,
    ColumnMapping,
    DataType,
    TargetFieldSpec,
    get_required_fields,
    get_target_fields,
)
from parsers.spreadsheet_parser import parse_spreadsheet
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)

EXACT_SCORE = 1.0
ALIAS_SCORE = 0.9
CONTAINS_SCORE = 0.8
PARTIAL_ALIAS_SCORE = 0.7
FUZZY_SCORE = 0.6
MIN_SCORE = 0.5
MIN_PARTIAL_LENGTH = 3
MIN_FUZZY_LENGTH = 5
FUZZY_RATIO = 88


def score_column(source_column: str, target: TargetFieldSpec) -> float:
    """Confidence that a source header corresponds to one target field."""
    source = normalize_header(source_column)
    if not source:
        return 0.0

    keys = {normalize_header(target.name), normalize_header(target.label)}
    if source in keys:
        return EXACT_SCORE

    aliases = {normalize_header(a) for a in target.aliases}
    if source in aliases:
        return ALIAS_SCORE

    if len(source) >= MIN_PARTIAL_LENGTH:
        for key in keys:
            if len(key) >= MIN_PARTIAL_LENGTH and (key in source or source in key):
                return CONTAINS_SCORE

        for alias in aliases:
            if len(alias) >= MIN_PARTIAL_LENGTH and (alias in source or source in alias):
                return PARTIAL_ALIAS_SCORE

    # Typos: similar spelling suggests a field but never pre-selects it
    if len(source) >= MIN_FUZZY_LENGTH:
        candidates = [c for c in keys | aliases if len(c) >= MIN_FUZZY_LENGTH]
        if any(fuzz.ratio(source, c) >= FUZZY_RATIO for c in candidates):
            return FUZZY_SCORE

    return 0.0


def suggest_mapping(source_column: str, targets: list[TargetFieldSpec]) -> ColumnMapping:
    """Best target field for one column, or an empty mapping."""
    best: Optional[TargetFieldSpec] = None
    best_score = 0.0

    for target in targets:
        score = score_column(source_column, target)
        if score > best_score:
            best, best_score = target, score
        if best_score == EXACT_SCORE:
            break

    if best is None or best_score < MIN_SCORE:
        return ColumnMapping(source_column=source_column)

    return ColumnMapping(
        source_column=source_column,
        target_field=best.name,
        confidence=best_score,
        required=best.required,
    )


def suggest_mappings(columns: list[str], data_type: DataType) -> list[ColumnMapping]:
    """
    One suggestion per distinct source column, in column order.

    Args:
        columns: Header of the uploaded file
        data_type: Which target catalog to match against

    Returns:
        List of ColumnMapping (target_field None where nothing matched)
    """
    targets = get_target_fields(data_type)
    seen: set[str] = set()
    suggestions = []

    for column in columns:
        if column in seen:
            continue
        seen.add(column)
        suggestions.append(suggest_mapping(column, targets))

    logger.debug(
        "mappings_suggested",
        data_type=DataType(data_type).value,
        columns=len(suggestions),
        mapped=sum(1 for s in suggestions if s.target_field)
    )

    return suggestions


def build_initial_mapping(
    suggestions: list[ColumnMapping],
    threshold: Optional[float] = None,
) -> dict[str, Optional[str]]:
    """
    Working mapping shown to the user before any manual change.

    Only suggestions with confidence strictly above the threshold are
    pre-selected, and each target field is claimed by at most one column.
    """
    if threshold is None:
        threshold = settings.mapping_confidence_threshold

    mapping: dict[str, Optional[str]] = {s.source_column: None for s in suggestions}
    claimed: dict[str, ColumnMapping] = {}

    for suggestion in suggestions:
        if not suggestion.target_field or suggestion.confidence <= threshold:
            continue
        holder = claimed.get(suggestion.target_field)
        # Strictly greater: equal confidence keeps the earlier column
        if holder is None or suggestion.confidence > holder.confidence:
            claimed[suggestion.target_field] = suggestion

    for target, suggestion in claimed.items():
        mapping[suggestion.source_column] = target

    return mapping


def unmapped_required_fields(
    mapping: dict[str, Optional[str]],
    data_type: DataType,
) -> list[str]:
    """Required target fields no column maps to."""
    mapped = {target for target in mapping.values() if target}
    return [
        name for name in get_required_fields(data_type) if name not in mapped
    ]


def analyze_file(
    content: bytes,
    filename: Optional[str],
    data_type: DataType,
    content_type: Optional[str] = None,
) -> AnalysisResult:
    """
    Parse an upload and suggest its column mapping.

    Raises:
        ImportParseError: If the file cannot be parsed
    """
    parsed = parse_spreadsheet(
        content,
        filename=filename,
        content_type=content_type,
        max_bytes=settings.import_max_file_bytes,
    )

    suggestions = suggest_mappings(parsed.columns, data_type)

    logger.info(
        "file_analyzed",
        filename=filename,
        data_type=DataType(data_type).value,
        rows=parsed.row_count,
        columns=len(parsed.columns)
    )

    return AnalysisResult(
        columns=parsed.columns,
        raw_rows=parsed.rows,
        sample_rows=parsed.rows[:settings.import_sample_rows],
        column_suggestions=suggestions,
    )
