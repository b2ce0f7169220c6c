"""
Unit tests for ImportService.

Run: pytest tests/unit/test_import_service.py -v
"""

from datetime import date

import pytest
from unittest.mock import patch

from models.imports import DataType
from services.import_service import (
    BULK_FAILURE_REASON,
    ImportService,
    merge_fields,
)
from services.import_validation_service import ImportValidationService
from tests.factories import (
    INVENTORY_MAPPING,
    MemberRecordFactory,
    ProductFactory,
    ProductRecordFactory,
)


# ===================
# MERGE CONTRACT
# ===================

class TestMergeFields:

    def test_non_empty_incoming_overwrites(self):
        assert merge_fields({"name": "Apple"}, {"name": "Green Apple"}) == {"name": "Green Apple"}

    def test_empty_incoming_keeps_existing(self):
        existing = {"barcode": "123", "description": "Crisp"}

        assert merge_fields(existing, {"barcode": "", "description": None}) == {}

    def test_unchanged_values_left_out(self):
        assert merge_fields({"price": "1.50", "stock": 4}, {"price": "1.50", "stock": 5}) == {"stock": 5}

    def test_zero_and_false_are_values(self):
        changes = merge_fields({"quantity": 10, "is_perishable": True}, {"quantity": 0, "is_perishable": False})

        assert changes == {"quantity": 0, "is_perishable": False}

    def test_dates_serialized(self):
        changes = merge_fields({"expiry_date": None}, {"expiry_date": date(2025, 6, 1)})

        assert changes == {"expiry_date": "2025-06-01"}


# ===================
# INVENTORY IMPORT
# ===================

class TestImportProducts:

    def test_inserts_new_products_and_stock(self, mock_db, mock_supabase, store_id):
        records = ProductRecordFactory.create_batch(3)
        service = ImportService()

        result = service.import_records(records, store_id, DataType.INVENTORY)

        assert result.success is True
        assert result.imported_count == 3
        assert result.failed_records == []
        assert len(mock_supabase.rows("products")) == 3
        stock = mock_supabase.rows("inventory")
        assert len(stock) == 3
        assert {s["store_id"] for s in stock} == {store_id}
        assert {s["quantity"] for s in stock} == {10}

    def test_record_failure_is_isolated(self, mock_db, mock_supabase, store_id):
        """120 records, batch size 50, record #75 hits a unique constraint."""
        records = ProductRecordFactory.create_batch(120)
        bad_sku = records[74].sku
        mock_supabase.fail_on(
            "products",
            "insert",
            when=lambda row: row["sku"] == bad_sku,
            error=Exception('duplicate key value violates unique constraint "products_sku_key" (23505)'),
        )
        service = ImportService()

        with patch.object(service, "_process_batch", wraps=service._process_batch) as process_batch:
            result = service.import_records(records, store_id, DataType.INVENTORY)

        assert [len(c.args[0]) for c in process_batch.call_args_list] == [50, 50, 20]
        assert result.success is True
        assert result.imported_count == 119
        assert len(result.failed_records) == 1
        assert result.failed_records[0].record.sku == bad_sku
        assert result.failed_records[0].error == "Product with this sku already exists"
        assert len(mock_supabase.rows("products")) == 119

    def test_existing_product_is_merged(self, mock_db, mock_supabase, store_id):
        mock_supabase.set_table_data("products", [
            ProductFactory.create(id="prod-1", sku="ABC-1", name="Apple", barcode="123", supplier="Orchard Co")
        ])
        record = ProductRecordFactory.create(sku="ABC-1", name="Green Apple", price="2.00", supplier="")
        service = ImportService()

        result = service.import_records([record], store_id, DataType.INVENTORY)

        assert result.imported_count == 1
        products = mock_supabase.rows("products")
        assert len(products) == 1
        assert products[0]["name"] == "Green Apple"
        assert products[0]["price"] == "2.00"
        assert products[0]["barcode"] == "123"
        assert products[0]["supplier"] == "Orchard Co"

    def test_default_category_does_not_replace_existing(self, mock_db, mock_supabase, store_id):
        mock_supabase.set_table_data("products", [
            ProductFactory.create(id="prod-1", sku="ABC-1", category_id="cat-fruit")
        ])
        record = ProductRecordFactory.create(
            sku="ABC-1", category_id="cat-uncategorized", category_supplied=False
        )

        ImportService().import_records([record], store_id, DataType.INVENTORY)

        assert mock_supabase.rows("products")[0]["category_id"] == "cat-fruit"

    def test_default_category_applies_to_new_product(self, mock_db, mock_supabase, store_id):
        record = ProductRecordFactory.create(
            sku="NEW-1", category_id="cat-uncategorized", category_supplied=False
        )

        ImportService().import_records([record], store_id, DataType.INVENTORY)

        assert mock_supabase.rows("products")[0]["category_id"] == "cat-uncategorized"

    def test_supplied_category_replaces_existing(self, mock_db, mock_supabase, store_id):
        mock_supabase.set_table_data("products", [
            ProductFactory.create(id="prod-1", sku="ABC-1", category_id="cat-fruit")
        ])
        record = ProductRecordFactory.create(sku="ABC-1", category_id="cat-produce")

        ImportService().import_records([record], store_id, DataType.INVENTORY)

        assert mock_supabase.rows("products")[0]["category_id"] == "cat-produce"

    def test_reimport_without_category_column_keeps_category(self, mock_db, mock_supabase, store_id):
        """Apple,SKU1,Fruit,1.50,100 then the same SKU from a file with no Category column."""
        validation = ImportValidationService()
        service = ImportService()
        first = validation.validate(
            [{"Product Name": "Apple", "SKU": "SKU1", "Category": "Fruit", "Price": "1.50", "Stock": "100"}],
            INVENTORY_MAPPING,
            DataType.INVENTORY,
        )
        service.import_records(first.mapped_data, store_id, DataType.INVENTORY)
        fruit_id = mock_supabase.rows("products")[0]["category_id"]

        mapping = {k: v for k, v in INVENTORY_MAPPING.items() if v != "category"}
        second = validation.validate(
            [{"Product Name": "Apple", "SKU": "SKU1", "Price": "1.75", "Stock": "90"}],
            mapping,
            DataType.INVENTORY,
        )
        service.import_records(second.mapped_data, store_id, DataType.INVENTORY)

        product = mock_supabase.rows("products")[0]
        assert product["category_id"] == fruit_id
        assert product["price"] == "1.75"

    def test_reimport_is_idempotent(self, mock_db, mock_supabase, store_id):
        records = ProductRecordFactory.create_batch(5)
        service = ImportService()

        service.import_records(records, store_id, DataType.INVENTORY)
        first_products = [dict(p) for p in mock_supabase.rows("products")]
        first_stock = [dict(s) for s in mock_supabase.rows("inventory")]
        result = service.import_records(records, store_id, DataType.INVENTORY)

        assert result.imported_count == 5
        assert len(mock_supabase.rows("products")) == 5
        assert len(mock_supabase.rows("inventory")) == 5
        strip = lambda rows: [{k: v for k, v in r.items() if k != "updated_at"} for r in rows]
        assert strip(mock_supabase.rows("products")) == strip(first_products)
        assert strip(mock_supabase.rows("inventory")) == strip(first_stock)

    def test_second_store_gets_its_own_stock_row(self, mock_db, mock_supabase):
        record = ProductRecordFactory.create(sku="MULTI-1", stock=7)
        service = ImportService()

        service.import_records([record], "store-a", DataType.INVENTORY)
        service.import_records([record], "store-b", DataType.INVENTORY)

        assert len(mock_supabase.rows("products")) == 1
        stock = mock_supabase.rows("inventory")
        assert sorted(s["store_id"] for s in stock) == ["store-a", "store-b"]
        assert len({s["product_id"] for s in stock}) == 1

    def test_stock_update_keeps_optional_columns(self, mock_db, mock_supabase, store_id):
        service = ImportService()
        service.import_records(
            [ProductRecordFactory.create(sku="KEEP-1", stock=3, minimum_level=2)],
            store_id,
            DataType.INVENTORY,
        )

        service.import_records([ProductRecordFactory.create(sku="KEEP-1", stock=9)], store_id, DataType.INVENTORY)

        stock = mock_supabase.rows("inventory")[0]
        assert stock["quantity"] == 9
        assert stock["minimum_level"] == 2

    def test_bulk_failure_marks_remaining_records(self, mock_db, mock_supabase, store_id):
        records = ProductRecordFactory.create_batch(120)
        service = ImportService()
        original = service._process_batch
        calls = []

        def failing_batch(batch, *args, **kwargs):
            calls.append(len(batch))
            if len(calls) == 2:
                raise ConnectionError("connection reset")
            return original(batch, *args, **kwargs)

        with patch.object(service, "_process_batch", side_effect=failing_batch):
            result = service.import_records(records, store_id, DataType.INVENTORY)

        assert result.success is False
        assert result.imported_count == 50
        assert len(result.failed_records) == 70
        assert all(f.error == BULK_FAILURE_REASON for f in result.failed_records)
        assert result.failed_records[0].record.sku == records[50].sku
        # Committed records are kept
        assert len(mock_supabase.rows("products")) == 50

    def test_empty_input(self, mock_db, store_id):
        result = ImportService().import_records([], store_id, DataType.INVENTORY)

        assert result.success is True
        assert result.imported_count == 0


# ===================
# LOYALTY IMPORT
# ===================

class TestImportMembers:

    def test_creates_member_and_enrollment(self, mock_db, mock_supabase, store_id):
        record = MemberRecordFactory.create(loyalty_id="L-1", email="ada@example.com", points=40)
        service = ImportService()

        result = service.import_records([record], store_id, DataType.LOYALTY)

        assert result.imported_count == 1
        member = mock_supabase.rows("loyalty_members")[0]
        assert member["loyalty_id"] == "L-1"
        assert member["points"] == 40
        enrollment = mock_supabase.rows("loyalty_enrollments")[0]
        assert enrollment["member_id"] == member["id"]
        assert enrollment["store_id"] == store_id
        assert enrollment["enrollment_date"] == date.today().isoformat()

    def test_existing_member_merged_and_enrolled_in_new_store(self, mock_db, mock_supabase):
        service = ImportService()
        service.import_records(
            [MemberRecordFactory.create(loyalty_id="L-2", full_name="Ada", phone="555-0100", points=10)],
            "store-a",
            DataType.LOYALTY,
        )

        service.import_records(
            [MemberRecordFactory.create(loyalty_id="L-2", full_name="Ada Lovelace", tier="Gold")],
            "store-b",
            DataType.LOYALTY,
        )

        members = mock_supabase.rows("loyalty_members")
        assert len(members) == 1
        assert members[0]["full_name"] == "Ada Lovelace"
        assert members[0]["phone"] == "555-0100"
        assert members[0]["points"] == 10
        assert members[0]["tier"] == "Gold"
        stores = sorted(e["store_id"] for e in mock_supabase.rows("loyalty_enrollments"))
        assert stores == ["store-a", "store-b"]

    def test_member_failure_is_isolated(self, mock_db, mock_supabase, store_id):
        mock_supabase.fail_on("loyalty_members", "insert", when=lambda row: row["loyalty_id"] == "L-BAD")
        records = [
            MemberRecordFactory.create(loyalty_id="L-OK"),
            MemberRecordFactory.create(loyalty_id="L-BAD"),
        ]

        result = ImportService().import_records(records, store_id, DataType.LOYALTY)

        assert result.imported_count == 1
        assert [f.record.loyalty_id for f in result.failed_records] == ["L-BAD"]
