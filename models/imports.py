"""
Import pipeline schemas.

Covers the whole spreadsheet import workflow: target field catalogs,
column mapping suggestions, validation results, import results and the
import session exposed to the wizard.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from models.base import BaseSchema


class DataType(str, Enum):
    """Kind of records a spreadsheet holds."""
    INVENTORY = "inventory"
    LOYALTY = "loyalty"


class FieldKind(str, Enum):
    """How a target field's raw text is parsed."""
    TEXT = "text"
    DECIMAL = "decimal"
    INTEGER = "integer"
    DATE = "date"
    BOOLEAN = "boolean"
    REFERENCE = "reference"


class ImportState(str, Enum):
    """Wizard steps, in order."""
    UPLOAD = "upload"
    MAPPING = "mapping"
    VALIDATION = "validation"
    IMPORT = "import"
    COMPLETE = "complete"


# ===================
# TARGET SCHEMA
# ===================

class TargetFieldSpec(BaseModel):
    """One field of the target entity a source column can map to."""

    name: str = Field(..., description="Field name on the validated record")
    label: str = Field(..., description="Human label, also used in error rows")
    required: bool = Field(default=False)
    kind: FieldKind = Field(default=FieldKind.TEXT)
    aliases: tuple[str, ...] = Field(
        default=(),
        description="Normalized header synonyms"
    )


TARGET_FIELDS: dict[DataType, list[TargetFieldSpec]] = {
    DataType.INVENTORY: [
        TargetFieldSpec(
            name="name", label="Product Name", required=True,
            aliases=("productname", "item", "itemname", "title", "product"),
        ),
        TargetFieldSpec(
            name="sku", label="SKU", required=True,
            aliases=("itemcode", "productcode", "upc", "ean", "code", "articlenumber"),
        ),
        TargetFieldSpec(
            name="category", label="Category", kind=FieldKind.REFERENCE,
            aliases=("categoryname", "department", "section", "group", "productcategory"),
        ),
        TargetFieldSpec(
            name="price", label="Price", required=True, kind=FieldKind.DECIMAL,
            aliases=("unitprice", "saleprice", "retailprice", "sellingprice", "amount"),
        ),
        TargetFieldSpec(
            name="stock", label="Stock", required=True, kind=FieldKind.INTEGER,
            aliases=("qty", "quantity", "stocklevel", "inventory", "onhand", "available"),
        ),
        TargetFieldSpec(
            name="expiry_date", label="Expiry Date", kind=FieldKind.DATE,
            aliases=("expiry", "expiration", "expirationdate", "bestbefore", "expires"),
        ),
        TargetFieldSpec(
            name="description", label="Description",
            aliases=("desc", "details", "productdescription", "info", "notes"),
        ),
        TargetFieldSpec(
            name="barcode", label="Barcode",
            aliases=("barcodenumber", "gtin"),
        ),
        TargetFieldSpec(
            name="image_url", label="Image URL",
            aliases=("image", "imagelink", "photo", "picture"),
        ),
        TargetFieldSpec(
            name="supplier", label="Supplier",
            aliases=("vendor", "manufacturer", "brand"),
        ),
        TargetFieldSpec(
            name="cost_price", label="Cost Price", kind=FieldKind.DECIMAL,
            aliases=("cost", "unitcost", "purchaseprice", "costprice"),
        ),
        TargetFieldSpec(
            name="is_perishable", label="Perishable", kind=FieldKind.BOOLEAN,
            aliases=("perishable", "hasexpiration"),
        ),
        TargetFieldSpec(
            name="minimum_level", label="Minimum Level", kind=FieldKind.INTEGER,
            aliases=("minstock", "minstocklevel", "reorderlevel", "reorderpoint"),
        ),
    ],
    DataType.LOYALTY: [
        TargetFieldSpec(
            name="full_name", label="Full Name", required=True,
            aliases=("name", "customername", "customer", "fullname", "contactname", "membername"),
        ),
        TargetFieldSpec(
            name="loyalty_id", label="Loyalty ID", required=True,
            aliases=("loyalty", "memberid", "membershipid", "cardnumber", "loyaltynumber"),
        ),
        TargetFieldSpec(
            name="email", label="Email",
            aliases=("emailaddress", "mail", "customeremail"),
        ),
        TargetFieldSpec(
            name="phone", label="Phone",
            aliases=("phonenumber", "telephone", "mobile", "cell"),
        ),
        TargetFieldSpec(
            name="points", label="Points", kind=FieldKind.INTEGER,
            aliases=("loyaltypoints", "rewardpoints", "balance", "pointbalance"),
        ),
        TargetFieldSpec(
            name="tier", label="Tier",
            aliases=("level", "loyaltytier", "membertier", "rank"),
        ),
        TargetFieldSpec(
            name="enrollment_date", label="Enrollment Date", kind=FieldKind.DATE,
            aliases=("enrolled", "joindate", "joined", "registered", "membersince", "startdate"),
        ),
    ],
}


def get_target_fields(data_type: DataType) -> list[TargetFieldSpec]:
    """Field catalog for a data type, in display order."""
    return TARGET_FIELDS[DataType(data_type)]


def get_required_fields(data_type: DataType) -> list[str]:
    return [f.name for f in get_target_fields(data_type) if f.required]


# ===================
# ANALYSIS
# ===================

class ColumnMapping(BaseSchema):
    """Suggested target for one source column."""

    source_column: str = Field(..., description="Header as it appears in the file")
    target_field: Optional[str] = Field(None, description="Target field name, None = do not import")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    required: bool = Field(default=False, description="Whether the target field is required")


class AnalysisResult(BaseModel):
    """Output of analyzing an uploaded file."""

    columns: list[str]
    raw_rows: list[dict[str, str]]
    sample_rows: list[dict[str, str]]
    column_suggestions: list[ColumnMapping]


# ===================
# VALIDATION
# ===================

class RowValidationError(BaseModel):
    """A problem with one cell. Row numbers count the header as row 1."""

    row: int = Field(..., ge=1)
    field: str
    value: str = ""
    reason: str


class MissingField(BaseModel):
    """A target field with no value on a row."""

    row: int = Field(..., ge=1)
    field: str
    is_required: bool


class ProductImportRecord(BaseSchema):
    """Inventory row that passed validation."""

    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    category_id: Optional[str] = Field(None, description="Resolved category UUID")
    category_name: Optional[str] = None
    category_supplied: bool = Field(
        True,
        description="False when the row had no category and the default was used"
    )
    price: str = Field(..., description="Decimal string with two places")
    stock: int = Field(..., ge=0)
    expiry_date: Optional[date] = None
    description: Optional[str] = None
    barcode: Optional[str] = None
    image_url: Optional[str] = None
    supplier: Optional[str] = None
    cost_price: Optional[str] = None
    is_perishable: Optional[bool] = None
    minimum_level: Optional[int] = Field(None, ge=0)

    @property
    def natural_key(self) -> str:
        return self.sku


class LoyaltyMemberImportRecord(BaseSchema):
    """Loyalty row that passed validation."""

    full_name: str = Field(..., min_length=1)
    loyalty_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    tier: Optional[str] = None
    enrollment_date: Optional[date] = None

    @property
    def natural_key(self) -> str:
        return self.loyalty_id


ImportRecord = Union[ProductImportRecord, LoyaltyMemberImportRecord]


class ValidationResult(BaseModel):
    """Outcome of validating every raw row against a mapping."""

    success: bool = True
    total_rows: int = 0
    imported_rows: int = 0
    processed_rows: int = 0
    skipped_rows: int = 0
    errors: list[RowValidationError] = Field(default_factory=list)
    missing_fields: list[MissingField] = Field(default_factory=list)
    mapped_data: list[ImportRecord] = Field(default_factory=list)
    new_categories: list[str] = Field(default_factory=list)

    @property
    def required_missing(self) -> list[MissingField]:
        return [m for m in self.missing_fields if m.is_required]

    @property
    def ready_to_import(self) -> bool:
        """At least one row can be imported."""
        return self.imported_rows > 0


# ===================
# IMPORT
# ===================

class FailedRecord(BaseModel):
    """A validated record the upsert could not write."""

    record: ImportRecord
    error: str


class ImportResult(BaseModel):
    """Outcome of upserting validated records into a store."""

    success: bool = True
    imported_count: int = 0
    failed_records: list[FailedRecord] = Field(default_factory=list)


# ===================
# SESSION API
# ===================

class MappingUpdate(BaseModel):
    """Explicit column choices from the wizard. None unmaps a column."""

    mapping: dict[str, Optional[str]] = Field(default_factory=dict)


class StoreSelection(BaseModel):
    store_id: str = Field(..., min_length=1)


class ImportSessionResponse(BaseModel):
    """Session summary returned to the wizard (raw rows omitted)."""

    id: str
    state: ImportState
    data_type: DataType
    columns: list[str]
    total_rows: int
    sample_rows: list[dict[str, str]]
    suggested_mappings: list[ColumnMapping]
    final_mapping: dict[str, Optional[str]]
    unmapped_required_fields: list[str]
    selected_store: Optional[str] = None
    validation_result: Optional[ValidationResult] = None
    import_result: Optional[ImportResult] = None
    created_at: datetime
