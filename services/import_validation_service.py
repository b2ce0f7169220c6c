"""
Import validation service.

Applies a finished column mapping to raw spreadsheet rows and produces a
ValidationResult. Rows are numbered as the user sees them in the file:
data row 0 is row 2 because the header is row 1.

Per row:
    1. map source cells onto target fields
    2. required fields must be non-empty, otherwise the row is skipped
    3. typed required fields (price, stock) must parse, otherwise skipped
    4. once the record is built, its category resolves through a
       CategoryCache, creating missing ones
    5. malformed optional fields are reported but the row is kept
       without that field
    6. a natural key repeated inside the file skips the later row

Categories created in step 4 are written immediately. They stay even if
the import is never run.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re
from typing import Any, Optional
import structlog

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from config import settings
from models.imports import (
    DataType,
    FieldKind,
    LoyaltyMemberImportRecord,
    MissingField,
    ProductImportRecord,
    RowValidationError,
    TargetFieldSpec,
    ValidationResult,
    get_target_fields,
)
from services.category_service import CategoryService, get_category_service
from utils.text_utils import clean_cell
from exceptions import AppError, CategoryCreationError

logger = structlog.get_logger(__name__)

HEADER_ROW_OFFSET = 2
TWO_PLACES = Decimal("0.01")
DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d"]
TRUE_VALUES = {"yes", "y", "true", "t", "1"}
FALSE_VALUES = {"no", "n", "false", "f", "0"}
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_CHARS = re.compile(r"[\s$€£¥]")
NUMBER_PATTERN = re.compile(r"^-?\d[\d.,]*$")

NATURAL_KEYS = {
    DataType.INVENTORY: "sku",
    DataType.LOYALTY: "loyalty_id",
}


class FieldParseError(ValueError):
    """A cell could not be converted to its field's type."""


# ===================
# CATEGORY CACHE
# ===================

@dataclass
class CategoryCache:
    """
    Case-insensitive category name -> id, alive for one validation pass.

    Misses go to the category service (lookup, then insert) and the
    resolved id is remembered, so "Fruit" and "fruit" in the same file
    share one category.
    """
    service: CategoryService
    ids: dict[str, str] = field(default_factory=dict)
    created: list[str] = field(default_factory=list)

    @classmethod
    def load(cls, service: CategoryService) -> "CategoryCache":
        """Start a cache pre-filled with existing categories."""
        cache = cls(service=service)
        for category in service.get_all():
            cache.ids.setdefault(category.name.strip().lower(), category.id)
        return cache

    def resolve(self, name: str) -> str:
        """
        Category id for a name, creating the category when needed.

        Raises:
            CategoryCreationError: If lookup or insert fails
        """
        key = name.strip().lower()
        if key in self.ids:
            return self.ids[key]

        try:
            category, created = self.service.get_or_create(name.strip())
        except AppError as e:
            raise CategoryCreationError(name, e.message) from e
        except Exception as e:
            raise CategoryCreationError(name, str(e)) from e

        self.ids[key] = category.id
        if created:
            self.created.append(category.name)
            logger.info("category_auto_created", name=category.name, category_id=category.id)
        return category.id


# ===================
# CELL PARSERS
# ===================

def parse_decimal(raw: str) -> Decimal:
    """
    Parse a money-like cell.

    "$1,299.5" -> Decimal("1299.5"); "1,50" -> Decimal("1.50")
    """
    text = CURRENCY_CHARS.sub("", raw)
    if not NUMBER_PATTERN.match(text):
        raise FieldParseError("must be a valid number")

    if "," in text and "." in text:
        text = text.replace(",", "")
    elif text.count(",") == 1 and len(text.split(",")[1]) in (1, 2):
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")

    try:
        value = Decimal(text)
    except InvalidOperation:
        raise FieldParseError("must be a valid number")

    if not value.is_finite():
        raise FieldParseError("must be a valid number")
    if value < 0:
        raise FieldParseError("must be a valid positive number")
    return value


def format_decimal(value: Decimal) -> str:
    return str(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def parse_integer(raw: str) -> int:
    """Parse a whole non-negative number; "100.0" from Excel is accepted."""
    try:
        value = Decimal(raw.replace(",", "").strip())
    except InvalidOperation:
        raise FieldParseError("must be a valid whole number")

    if not value.is_finite() or value != value.to_integral_value():
        raise FieldParseError("must be a valid whole number")
    if value < 0:
        raise FieldParseError("must be a valid positive number")
    return int(value)


def parse_date(raw: str) -> date:
    """Parse the date formats spreadsheets commonly produce."""
    text = raw.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    # Excel cells read as text look like "2025-03-01 00:00:00"
    try:
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        raise FieldParseError("Invalid date format. Use YYYY-MM-DD format.")
    if pd.isna(parsed):
        raise FieldParseError("Invalid date format. Use YYYY-MM-DD format.")
    return parsed.date()


def parse_boolean(raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise FieldParseError("Use Yes/No, True/False or 1/0")


def apply_mapping(row: dict[str, str], mapping: dict[str, Optional[str]]) -> dict[str, str]:
    """
    Turn a raw row into target field -> raw text.

    When two columns feed one field, the leftmost non-empty cell wins.
    """
    values: dict[str, str] = {}
    for column, raw in row.items():
        target = mapping.get(column)
        if not target:
            continue
        cell = (raw or "").strip()
        if target not in values or (not values[target] and cell):
            values[target] = cell
    return values


# ===================
# SERVICE
# ===================

class ImportValidationService:
    """
    Validates mapped spreadsheet rows.
    """

    def __init__(self, category_service: Optional[CategoryService] = None):
        self._category_service = category_service

    @property
    def category_service(self) -> CategoryService:
        if self._category_service is None:
            self._category_service = get_category_service()
        return self._category_service

    def validate(
        self,
        raw_rows: list[dict[str, str]],
        mapping: dict[str, Optional[str]],
        data_type: DataType,
    ) -> ValidationResult:
        """
        Validate every row and collect the importable ones.

        Args:
            raw_rows: Rows as parsed from the file
            mapping: Source column -> target field (None = ignore column)
            data_type: Which record type to build

        Returns:
            ValidationResult; mapped_data holds every row that passed, even
            when success is False
        """
        data_type = DataType(data_type)
        fields = get_target_fields(data_type)
        known = {f.name for f in fields}
        mapping = {col: target for col, target in mapping.items() if target in known}
        mapped_targets = set(mapping.values())
        natural_key = NATURAL_KEYS[data_type]

        logger.info(
            "validation_started",
            data_type=data_type.value,
            rows=len(raw_rows),
            mapped_fields=sorted(mapped_targets)
        )

        result = ValidationResult(total_rows=len(raw_rows))
        cache = CategoryCache.load(self.category_service) if data_type == DataType.INVENTORY else None
        seen_keys: set[str] = set()

        for index, row in enumerate(raw_rows):
            row_number = index + HEADER_ROW_OFFSET
            try:
                record = self._validate_row(
                    row,
                    row_number,
                    mapping,
                    mapped_targets,
                    fields,
                    data_type,
                    natural_key,
                    seen_keys,
                    cache,
                    result,
                )
            except Exception as e:
                logger.error("validation_row_failed", row=row_number, error=str(e))
                result.errors.append(RowValidationError(
                    row=row_number,
                    field="General",
                    value="",
                    reason=f"Unexpected error: {e}"
                ))
                record = None

            if record is None:
                result.skipped_rows += 1
                continue

            seen_keys.add(getattr(record, natural_key).lower())
            result.mapped_data.append(record)
            result.processed_rows += 1

        result.imported_rows = result.processed_rows
        if cache is not None:
            result.new_categories = list(cache.created)
        result.success = not result.errors and not result.required_missing

        logger.info(
            "validation_completed",
            data_type=data_type.value,
            total_rows=result.total_rows,
            processed_rows=result.processed_rows,
            skipped_rows=result.skipped_rows,
            errors=len(result.errors),
            missing_fields=len(result.missing_fields),
            new_categories=len(result.new_categories),
            success=result.success
        )

        return result

    def _validate_row(
        self,
        row: dict[str, str],
        row_number: int,
        mapping: dict[str, Optional[str]],
        mapped_targets: set[str],
        fields: list[TargetFieldSpec],
        data_type: DataType,
        natural_key: str,
        seen_keys: set[str],
        cache: Optional[CategoryCache],
        result: ValidationResult,
    ):
        """Validate one row. Returns the record, or None when the row is skipped."""
        cells = apply_mapping(row, mapping)
        values: dict[str, Any] = {}
        skip = False

        for spec in fields:
            raw = cells.get(spec.name, "")

            if not raw:
                if spec.required:
                    result.missing_fields.append(MissingField(
                        row=row_number, field=spec.name, is_required=True
                    ))
                    result.errors.append(RowValidationError(
                        row=row_number,
                        field=spec.label,
                        value="",
                        reason=f"{spec.label} is required"
                    ))
                    skip = True
                elif spec.name in mapped_targets:
                    result.missing_fields.append(MissingField(
                        row=row_number, field=spec.name, is_required=False
                    ))
                continue

            try:
                values[spec.name] = self._parse_cell(spec, raw)
            except FieldParseError as e:
                result.errors.append(RowValidationError(
                    row=row_number,
                    field=spec.label,
                    value=raw,
                    reason=f"{spec.label} {e}" if spec.kind in (FieldKind.DECIMAL, FieldKind.INTEGER) else str(e)
                ))
                # Required fields skip the row; optional ones are dropped
                if spec.required:
                    skip = True

        if skip:
            return None

        key_spec = next(f for f in fields if f.name == natural_key)
        key_value = values[natural_key]
        if key_value.lower() in seen_keys:
            result.errors.append(RowValidationError(
                row=row_number,
                field=key_spec.label,
                value=key_value,
                reason=f"Duplicate {key_spec.label} found in import file"
            ))
            return None

        if data_type == DataType.INVENTORY:
            return self._build_product(values, row_number, cache, result)
        return self._build_member(values, row_number, result)

    def _parse_cell(self, spec: TargetFieldSpec, raw: str) -> Any:
        if spec.kind == FieldKind.DECIMAL:
            return format_decimal(parse_decimal(raw))
        if spec.kind == FieldKind.INTEGER:
            return parse_integer(raw)
        if spec.kind == FieldKind.DATE:
            return parse_date(raw)
        if spec.kind == FieldKind.BOOLEAN:
            return parse_boolean(raw)
        if spec.name == "sku":
            return raw.upper()
        if spec.name == "email" and not EMAIL_PATTERN.match(raw):
            raise FieldParseError("Invalid email address")
        return clean_cell(raw)

    def _build_product(
        self,
        values: dict[str, Any],
        row_number: int,
        cache: CategoryCache,
        result: ValidationResult,
    ) -> Optional[ProductImportRecord]:
        supplied = values.pop("category", None)
        category_name = supplied or settings.default_category_name

        record = self._build_record(
            ProductImportRecord,
            {**values, "category_name": category_name, "category_supplied": bool(supplied)},
            row_number,
            result,
        )
        if record is None:
            return None

        # Resolved last so a rejected row never creates a category
        try:
            record.category_id = cache.resolve(category_name)
        except CategoryCreationError as e:
            logger.warning("category_resolution_failed", row=row_number, category=category_name)
            result.errors.append(RowValidationError(
                row=row_number,
                field="Category",
                value=category_name,
                reason=e.message
            ))
            return None

        return record

    def _build_member(
        self,
        values: dict[str, Any],
        row_number: int,
        result: ValidationResult,
    ) -> Optional[LoyaltyMemberImportRecord]:
        return self._build_record(LoyaltyMemberImportRecord, values, row_number, result)

    def _build_record(self, model, values: dict[str, Any], row_number: int, result: ValidationResult):
        try:
            return model(**values)
        except PydanticValidationError as e:
            for issue in e.errors():
                field_name = ".".join(str(p) for p in issue["loc"]) or "General"
                result.errors.append(RowValidationError(
                    row=row_number,
                    field=field_name,
                    value=str(values.get(field_name, "")),
                    reason=issue["msg"]
                ))
            return None


# Singleton instance
_import_validation_service: Optional[ImportValidationService] = None


def get_import_validation_service() -> ImportValidationService:
    """Get or create ImportValidationService instance."""
    global _import_validation_service
    if _import_validation_service is None:
        _import_validation_service = ImportValidationService()
    return _import_validation_service
