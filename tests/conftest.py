"""
Shared test fixtures.

"""

import os
import re
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings require these at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Callable, Generator, Optional
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


def _like_to_regex(pattern: str) -> re.Pattern:
    """Translate an ilike() pattern, honouring backslash escapes."""
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$", re.IGNORECASE | re.DOTALL)


class MockSupabaseQuery:
    """
    Chainable query against one in-memory table.

    Filters (eq, ilike) apply to select, update and delete; nothing touches
    the table until execute().
    """

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._operation = "select"
        self._payload = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def delete(self):
        self._operation = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def ilike(self, column, pattern):
        regex = _like_to_regex(pattern)
        self._filters.append(lambda row: row.get(column) is not None and bool(regex.match(str(row[column]))))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._operation == "insert":
            return MockSupabaseResponse(data=self._table.insert_rows(self._payload))

        matched = [row for row in self._table.rows if all(f(row) for f in self._filters)]

        if self._operation == "update":
            self._table.check_failure("update", self._payload)
            now = datetime.utcnow().isoformat() + "Z"
            for row in matched:
                row.update(self._payload)
                row["updated_at"] = now
            return MockSupabaseResponse(data=[dict(r) for r in matched])

        if self._operation == "delete":
            self._table.rows = [r for r in self._table.rows if r not in matched]
            return MockSupabaseResponse(data=[dict(r) for r in matched])

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda r: str(r.get(column) or ""), reverse=desc)
        count = len(matched)
        if self._limit is not None:
            matched = matched[:self._limit]

        data = [dict(r) for r in matched]
        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None, count=count)
        return MockSupabaseResponse(data=data, count=count)


class MockSupabaseTable:
    """In-memory table with optional unique columns and injected failures."""

    def __init__(self, name: str, rows: list = None, unique: tuple = ()):
        self.name = name
        self.rows: list[dict] = [dict(r) for r in (rows or [])]
        self.unique = unique
        self.failures: list[tuple[str, Callable[[dict], bool], Exception]] = []
        self.insert_calls = 0

    def check_failure(self, operation: str, row: dict) -> None:
        for op, when, error in self.failures:
            if op == operation and when(row):
                raise error

    def insert_rows(self, data) -> list[dict]:
        items = data if isinstance(data, list) else [data]
        created = []
        for item in items:
            self.insert_calls += 1
            self.check_failure("insert", item)
            for columns in self.unique:
                if any(all(r.get(c) == item.get(c) for c in columns) for r in self.rows):
                    raise Exception(
                        f'duplicate key value violates unique constraint "{self.name}_{"_".join(columns)}_key" (23505)'
                    )
            now = datetime.utcnow().isoformat() + "Z"
            row = {"id": str(uuid4()), "created_at": now, "updated_at": now, **item}
            self.rows.append(row)
            created.append(dict(row))
        return created

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self).update(data)

    def delete(self):
        return MockSupabaseQuery(self).delete()


UNIQUE_COLUMNS = {
    "products": (("sku",),),
    "categories": (("name",),),
    "inventory": (("product_id", "store_id"),),
    "loyalty_members": (("loyalty_id",),),
    "loyalty_enrollments": (("member_id", "store_id"),),
}


class MockSupabaseClient:
    """Mock Supabase client holding every table in memory."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = MockSupabaseTable(
            table_name, data, UNIQUE_COLUMNS.get(table_name, ())
        )

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self.table(table_name).rows

    def fail_on(
        self,
        table_name: str,
        operation: str,
        when: Callable[[dict], bool] = lambda row: True,
        error: Exception = None,
    ):
        """Make insert/update of matching rows raise."""
        self.table(table_name).failures.append(
            (operation, when, error or Exception(f"{table_name} {operation} failed"))
        )

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        if name not in self._tables:
            self.set_table_data(name, [])
        return self._tables[name]


# ===================
# FIXTURES
# ===================

SERVICE_MODULES = [
    "config.database",
    "services.category_service",
    "services.product_service",
    "services.inventory_service",
    "services.loyalty_service",
]


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Fresh service singletons and an empty session store for every test."""
    import services.category_service as category_service
    import services.product_service as product_service
    import services.inventory_service as inventory_service
    import services.loyalty_service as loyalty_service
    import services.import_validation_service as import_validation_service
    import services.import_service as import_service
    import services.import_session_service as import_session_service

    monkeypatch.setattr(category_service, "_category_service", None)
    monkeypatch.setattr(product_service, "_product_service", None)
    monkeypatch.setattr(inventory_service, "_inventory_service", None)
    monkeypatch.setattr(loyalty_service, "_loyalty_service", None)
    monkeypatch.setattr(import_validation_service, "_import_validation_service", None)
    monkeypatch.setattr(import_service, "_import_service", None)
    monkeypatch.setattr(import_session_service, "_import_session_controller", None)
    monkeypatch.setattr(import_session_service, "_sessions", {})


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "sku": "TEST", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    patches = [
        patch(f"{module}.get_supabase_client", return_value=mock_supabase)
        for module in SERVICE_MODULES
    ]
    for p in patches:
        p.start()
    try:
        yield mock_supabase
    finally:
        for p in reversed(patches):
            p.stop()


@pytest.fixture
def store_id() -> str:
    return "store-0001"


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            response = test_client_with_mock_db.get("/api/imports/target-fields/inventory")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
