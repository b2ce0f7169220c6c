"""
API tests for the import wizard routes.

Run: pytest tests/unit/test_import_routes.py -v
"""

import pytest

from tests.factories import INVENTORY_COLUMNS, InventoryRowFactory, make_csv


@pytest.fixture
def client(test_client_with_mock_db):
    return test_client_with_mock_db


def _upload(client, content: bytes, filename: str = "stock.csv", content_type: str = "text/csv"):
    return client.post(
        "/api/imports/sessions",
        files={"file": (filename, content, content_type)},
        data={"data_type": "inventory"},
    )


class TestImportRoutes:

    def test_full_wizard(self, client, mock_supabase, store_id):
        rows = InventoryRowFactory.create_batch(2) + [InventoryRowFactory.create(Price="")]
        response = _upload(client, make_csv(rows, columns=INVENTORY_COLUMNS))
        assert response.status_code == 201
        session = response.json()
        assert session["state"] == "mapping"
        assert session["total_rows"] == 3
        assert "raw_rows" not in session
        session_id = session["id"]

        response = client.post(f"/api/imports/sessions/{session_id}/validate")
        assert response.status_code == 200
        validation = response.json()["validation_result"]
        assert validation["processed_rows"] == 2
        assert validation["skipped_rows"] == 1
        assert validation["errors"][0]["field"] == "Price"

        response = client.put(f"/api/imports/sessions/{session_id}/store", json={"store_id": store_id})
        assert response.json()["state"] == "import"

        response = client.post(f"/api/imports/sessions/{session_id}/import")
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "complete"
        assert body["import_result"]["imported_count"] == 2
        assert len(mock_supabase.rows("products")) == 2

        response = client.get(f"/api/imports/sessions/{session_id}/error-report")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.splitlines()
        assert lines[0] == "row,field,value,reason"
        assert lines[1].startswith("4,Price,")

        response = client.get(f"/api/imports/sessions/{session_id}/missing-fields-report")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.splitlines() == ["row,field,required", "4,price,yes"]

    def test_unsupported_file_type(self, client):
        response = _upload(client, b"%PDF-1.4", filename="stock.pdf", content_type="application/pdf")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_UNSUPPORTED_FILE"

    def test_header_only_file(self, client):
        response = _upload(client, b"Product Name,SKU,Price,Stock\n")

        assert response.status_code == 422
        assert "No data found" in response.json()["error"]["message"]

    def test_unknown_session(self, client):
        response = client.get("/api/imports/sessions/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "IMPORT_SESSION_NOT_FOUND"

    def test_mapping_update_and_guard(self, client):
        session_id = _upload(client, make_csv(InventoryRowFactory.create_batch(1), columns=INVENTORY_COLUMNS)).json()["id"]

        response = client.put(
            f"/api/imports/sessions/{session_id}/mapping",
            json={"mapping": {"Stock": None}},
        )
        assert response.status_code == 200
        assert response.json()["unmapped_required_fields"] == ["stock"]

        response = client.post(f"/api/imports/sessions/{session_id}/validate")
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_STEP_NOT_ALLOWED"

    def test_import_requires_store(self, client):
        session_id = _upload(client, make_csv(InventoryRowFactory.create_batch(1), columns=INVENTORY_COLUMNS)).json()["id"]
        client.post(f"/api/imports/sessions/{session_id}/validate")

        response = client.post(f"/api/imports/sessions/{session_id}/import")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_STORE_REQUIRED"

    def test_back_and_reset(self, client):
        session_id = _upload(client, make_csv(InventoryRowFactory.create_batch(1), columns=INVENTORY_COLUMNS)).json()["id"]
        client.post(f"/api/imports/sessions/{session_id}/validate")

        assert client.post(f"/api/imports/sessions/{session_id}/back").json()["state"] == "mapping"

        response = client.post(f"/api/imports/sessions/{session_id}/reset")
        assert response.json()["state"] == "upload"
        assert response.json()["columns"] == []

    def test_target_fields(self, client):
        response = client.get("/api/imports/target-fields/loyalty")

        assert response.status_code == 200
        names = [f["name"] for f in response.json()]
        assert names[:2] == ["full_name", "loyalty_id"]
        assert response.json()[0]["required"] is True
