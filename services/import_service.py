"""
Import service.

Writes validated records into a store. Records are processed in batches of
settings.import_batch_size, one at a time inside a batch:

    inventory: product by SKU (global) + inventory row per (product, store)
    loyalty:   member by loyalty ID (global) + enrollment per (member, store)

Existing entities are merged, never replaced: an incoming value only
overwrites when it is non-empty. A failing record is collected and the
rest carry on. If the loop itself breaks, every record not yet attempted
is reported as failed and the records already written stay written.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence
import structlog

from config import settings
from models.imports import (
    DataType,
    FailedRecord,
    ImportRecord,
    ImportResult,
    LoyaltyMemberImportRecord,
    ProductImportRecord,
)
from services.product_service import ProductService, get_product_service
from services.inventory_service import InventoryService, get_inventory_service
from services.loyalty_service import LoyaltyService, get_loyalty_service
from exceptions import AppError, ImportRowError

logger = structlog.get_logger(__name__)

BULK_FAILURE_REASON = "Bulk import failed"

PRODUCT_COLUMNS = (
    "sku", "name", "category_id", "price", "cost_price", "description",
    "barcode", "image_url", "supplier", "is_perishable",
)
MEMBER_COLUMNS = ("loyalty_id", "full_name", "email", "phone", "points", "tier")


def _db_value(value: Any) -> Any:
    """Convert a value to what the REST API stores."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def merge_fields(existing: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """
    Columns to write when merging incoming values into an existing row.

    Incoming None or "" never overwrites. Unchanged values are left out, so
    an empty result means the row is already up to date.

    Example:
        merge_fields({"name": "Apple", "barcode": "123"}, {"name": "Green Apple", "barcode": ""})
        -> {"name": "Green Apple"}
    """
    changes = {}
    for column, value in incoming.items():
        if value is None or value == "":
            continue
        value = _db_value(value)
        if _db_value(existing.get(column)) != value:
            changes[column] = value
    return changes


def _columns(record: ImportRecord, names: Sequence[str]) -> dict[str, Any]:
    return {name: getattr(record, name) for name in names}


@dataclass
class RecordOutcome:
    """Result of writing one record."""
    record: ImportRecord
    success: bool
    entity_id: Optional[str] = None
    created: bool = False
    error: Optional[str] = None

    @classmethod
    def failed(cls, record: ImportRecord, error: str) -> "RecordOutcome":
        return cls(record=record, success=False, error=error)


class ImportService:
    """
    Upserts validated import records into a store.
    """

    def __init__(
        self,
        product_service: Optional[ProductService] = None,
        inventory_service: Optional[InventoryService] = None,
        loyalty_service: Optional[LoyaltyService] = None,
    ):
        self._products = product_service
        self._inventory = inventory_service
        self._loyalty = loyalty_service

    @property
    def products(self) -> ProductService:
        if self._products is None:
            self._products = get_product_service()
        return self._products

    @property
    def inventory(self) -> InventoryService:
        if self._inventory is None:
            self._inventory = get_inventory_service()
        return self._inventory

    @property
    def loyalty(self) -> LoyaltyService:
        if self._loyalty is None:
            self._loyalty = get_loyalty_service()
        return self._loyalty

    # ===================
    # ENTRY POINT
    # ===================

    def import_records(
        self,
        mapped_data: list[ImportRecord],
        store_id: str,
        data_type: DataType,
    ) -> ImportResult:
        """
        Upsert validated records into a store.

        Args:
            mapped_data: Records from a ValidationResult
            store_id: Destination store UUID
            data_type: Record type of mapped_data

        Returns:
            ImportResult. success is False only when the batch loop broke;
            individual record failures are listed in failed_records.
        """
        data_type = DataType(data_type)
        batch_size = max(1, settings.import_batch_size)
        outcomes: list[RecordOutcome] = []
        bulk_error: Optional[str] = None

        logger.info(
            "import_started",
            data_type=data_type.value,
            store_id=store_id,
            records=len(mapped_data),
            batch_size=batch_size
        )

        try:
            for start in range(0, len(mapped_data), batch_size):
                batch = mapped_data[start:start + batch_size]
                self._process_batch(
                    batch,
                    store_id,
                    data_type,
                    outcomes,
                    batch_number=start // batch_size + 1,
                )
        except Exception as e:
            bulk_error = str(e)
            logger.error(
                "bulk_import_failed",
                store_id=store_id,
                attempted=len(outcomes),
                remaining=len(mapped_data) - len(outcomes),
                error=bulk_error
            )

        failed = [
            FailedRecord(record=o.record, error=o.error or "Unknown error")
            for o in outcomes if not o.success
        ]
        if bulk_error is not None:
            failed.extend(
                FailedRecord(record=record, error=BULK_FAILURE_REASON)
                for record in mapped_data[len(outcomes):]
            )

        result = ImportResult(
            success=bulk_error is None,
            imported_count=len(mapped_data) - len(failed),
            failed_records=failed,
        )

        logger.info(
            "import_completed",
            data_type=data_type.value,
            store_id=store_id,
            imported=result.imported_count,
            failed=len(result.failed_records),
            success=result.success
        )

        return result

    def _process_batch(
        self,
        batch: list[ImportRecord],
        store_id: str,
        data_type: DataType,
        outcomes: list[RecordOutcome],
        batch_number: int,
    ) -> None:
        """Write one batch, appending one outcome per record."""
        logger.debug("import_batch_started", batch=batch_number, size=len(batch))

        write = self._import_product if data_type == DataType.INVENTORY else self._import_member

        for record in batch:
            try:
                outcomes.append(write(record, store_id))
            except Exception as e:
                error = e if isinstance(e, AppError) else ImportRowError(record.natural_key, str(e))
                logger.warning(
                    "import_record_failed",
                    key=record.natural_key,
                    code=error.code,
                    error=error.message
                )
                outcomes.append(RecordOutcome.failed(record, error.message))

        logger.debug("import_batch_completed", batch=batch_number, processed=len(outcomes))

    # ===================
    # RECORD WRITERS
    # ===================

    def _import_product(self, record: ProductImportRecord, store_id: str) -> RecordOutcome:
        incoming = _columns(record, PRODUCT_COLUMNS)
        existing = self.products.get_by_sku(record.sku)

        if existing:
            # The default category only applies to new products
            if not record.category_supplied:
                incoming.pop("category_id")
            changes = merge_fields(existing.model_dump(), incoming)
            self.products.update(existing.id, changes)
            product_id = existing.id
            created = False
        else:
            data = {k: _db_value(v) for k, v in incoming.items() if v is not None}
            product_id = self.products.create(data).id
            created = True

        stock = {
            "quantity": record.stock,
            "minimum_level": record.minimum_level,
            "expiry_date": record.expiry_date,
        }
        current = self.inventory.get_for_store(product_id, store_id)
        if current:
            self.inventory.update(current.id, merge_fields(current.model_dump(), stock))
        else:
            self.inventory.create(
                product_id,
                store_id,
                {k: _db_value(v) for k, v in stock.items() if v is not None}
            )

        return RecordOutcome(record=record, success=True, entity_id=product_id, created=created)

    def _import_member(self, record: LoyaltyMemberImportRecord, store_id: str) -> RecordOutcome:
        incoming = _columns(record, MEMBER_COLUMNS)
        existing = self.loyalty.get_by_loyalty_id(record.loyalty_id)

        if existing:
            changes = merge_fields(existing.model_dump(), incoming)
            self.loyalty.update_member(existing.id, changes)
            member_id = existing.id
            created = False
        else:
            data = {k: _db_value(v) for k, v in incoming.items() if v is not None}
            data.setdefault("points", 0)
            member_id = self.loyalty.create_member(data).id
            created = True

        enrollment = self.loyalty.get_enrollment(member_id, store_id)
        if enrollment:
            self.loyalty.update_enrollment(
                enrollment.id,
                merge_fields(enrollment.model_dump(), {"enrollment_date": record.enrollment_date})
            )
        else:
            self.loyalty.create_enrollment(
                member_id,
                store_id,
                {"enrollment_date": _db_value(record.enrollment_date or date.today())}
            )

        return RecordOutcome(record=record, success=True, entity_id=member_id, created=created)


# Singleton instance
_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
