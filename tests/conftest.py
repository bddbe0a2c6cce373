"""
Shared test fixtures.

The Supabase client is replaced by an in-memory fake that actually
filters, orders and enforces the composite unique indexes, so store and
reconciler tests exercise real query semantics.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import importlib
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional
from unittest.mock import patch
from uuid import uuid4

import pytest


# ===================
# FAKE SUPABASE CLIENT
# ===================

UNIQUE_INDEXES = {
    "product_daily_summaries": ("product_id", "company_id"),
    "product_details_daily_summaries": ("product_id", "company_id", "date"),
}


class FakeAPIError(Exception):
    """Stands in for postgrest's APIError: carries a PostgreSQL code."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class FakeResponse:
    """Query response with `data` and `count`."""

    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        self.count = count


class FakeQuery:
    """Chainable query builder mirroring the postgrest methods in use."""

    def __init__(self, client: "FakeSupabase", table: str, op: str, payload: Any = None):
        self._client = client
        self._table = table
        self._op = op
        self._payload = payload
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._range: Optional[tuple[int, int]] = None
        self._single = False

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = set(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def is_(self, column, value):
        if value in ("null", None):
            self._filters.append(lambda row: row.get(column) is None)
        else:
            self._filters.append(lambda row: row.get(column) is value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def gt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) > value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) < value)
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def single(self):
        self._single = True
        return self

    def matches(self, row: dict) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> FakeResponse:
        return self._client._execute(self)


class FakeTable:
    """Entry point returned by client.table()."""

    def __init__(self, client: "FakeSupabase", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return FakeQuery(self._client, self._name, "select")

    def insert(self, data):
        return FakeQuery(self._client, self._name, "insert", data)

    def update(self, data):
        return FakeQuery(self._client, self._name, "update", data)

    def delete(self):
        return FakeQuery(self._client, self._name, "delete")


class FakeSupabase:
    """
    In-memory Supabase client.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.seed("items", [ItemFactory.create()])
            mock_supabase.fail("orders")            # every query on orders raises
            mock_supabase.before("insert", "product_daily_summaries", fn)  # one-shot hook
            mock_supabase.max_rows = 2              # cap select responses like PostgREST
    """

    def __init__(self):
        self._tables: dict[str, list[dict]] = defaultdict(list)
        self._failures: dict[str, Exception] = {}
        self._hooks: dict[tuple[str, str], list[Callable[["FakeSupabase"], None]]] = defaultdict(list)
        self._lock = threading.RLock()
        self.calls: list[tuple[str, str]] = []
        self.max_rows: Optional[int] = None

    # Test helpers

    def seed(self, table: str, rows: list[dict]) -> None:
        with self._lock:
            self._tables[table].extend(copy.deepcopy(rows))

    def rows(self, table: str) -> list[dict]:
        with self._lock:
            return copy.deepcopy(self._tables[table])

    def update_rows(self, table: str, where: dict, changes: dict) -> None:
        """Change stored rows directly, bypassing hooks and failures."""
        with self._lock:
            for row in self._tables[table]:
                if all(row.get(k) == v for k, v in where.items()):
                    row.update(changes)

    def fail(self, table: str, error: Optional[Exception] = None) -> None:
        self._failures[table] = error or FakeAPIError(f"{table} unavailable", code="08006")

    def before(self, op: str, table: str, hook: Callable[["FakeSupabase"], None]) -> None:
        """Run `hook` once, right before the next `op` on `table`."""
        self._hooks[(op, table)].append(hook)

    # Client API

    def table(self, name: str) -> FakeTable:
        return FakeTable(self, name)

    def _execute(self, query: FakeQuery) -> FakeResponse:
        hooks = self._hooks.pop((query._op, query._table), [])
        for hook in hooks:
            hook(self)

        with self._lock:
            self.calls.append((query._op, query._table))
            if query._table in self._failures:
                raise self._failures[query._table]

            handler = getattr(self, f"_do_{query._op}")
            return handler(query)

    def _do_select(self, query: FakeQuery) -> FakeResponse:
        matched = [copy.deepcopy(r) for r in self._tables[query._table] if query.matches(r)]
        for column, desc in reversed(query._order):
            matched.sort(
                key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else ""),
                reverse=desc
            )
        count = len(matched)
        if query._limit is not None:
            matched = matched[:query._limit]
        if query._range is not None:
            start, end = query._range
            matched = matched[start:end + 1]
        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        if query._single:
            return FakeResponse(matched[0] if matched else None, count)
        return FakeResponse(matched, count)

    def _do_insert(self, query: FakeQuery) -> FakeResponse:
        payload = query._payload
        new_rows = [payload] if isinstance(payload, dict) else list(payload)
        table = self._tables[query._table]
        unique = UNIQUE_INDEXES.get(query._table)

        created = []
        for data in new_rows:
            row = copy.deepcopy(data)
            if unique:
                key = tuple(row.get(c) for c in unique)
                if any(tuple(r.get(c) for c in unique) == key for r in table):
                    raise FakeAPIError(
                        f'duplicate key value violates unique constraint "{query._table}_key"',
                        code="23505"
                    )
            now = datetime.now(timezone.utc).isoformat()
            row.setdefault("id", str(uuid4()))
            row.setdefault("created_at", now)
            row.setdefault("updated_at", now)
            table.append(row)
            created.append(copy.deepcopy(row))
        return FakeResponse(created, len(created))

    def _do_update(self, query: FakeQuery) -> FakeResponse:
        updated = []
        for row in self._tables[query._table]:
            if query.matches(row):
                row.update(copy.deepcopy(query._payload))
                updated.append(copy.deepcopy(row))
        return FakeResponse(updated, len(updated))

    def _do_delete(self, query: FakeQuery) -> FakeResponse:
        table = self._tables[query._table]
        removed = [r for r in table if query.matches(r)]
        self._tables[query._table] = [r for r in table if not query.matches(r)]
        return FakeResponse(removed, len(removed))


# ===================
# FIXTURES
# ===================

PATCHED_MODULES = (
    "config.database",
    "services.summary_store",
    "services.catalog_service",
    "services.indent_service",
    "services.production_group_service",
)

SINGLETONS = (
    ("services.summary_store", "_summary_store"),
    ("services.catalog_service", "_catalog_service"),
    ("services.indent_service", "_indent_service"),
    ("services.reconciler_service", "_reconciler_service"),
    ("services.approval_service", "_approval_service"),
    ("services.production_group_service", "_production_group_service"),
    ("services.dashboard_service", "_dashboard_service"),
)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Services cache their client; start every test with fresh instances."""
    for module_name, attr in SINGLETONS:
        setattr(importlib.import_module(module_name), attr, None)
    yield
    for module_name, attr in SINGLETONS:
        setattr(importlib.import_module(module_name), attr, None)


@pytest.fixture
def mock_supabase() -> FakeSupabase:
    """Create an empty in-memory Supabase client."""
    return FakeSupabase()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with the fake.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.seed("items", [...])
            # Any service built now reads and writes the fake
    """
    patches = [
        patch(f"{module}.get_supabase_client", return_value=mock_supabase)
        for module in PATCHED_MODULES
    ]
    for p in patches:
        p.start()
    try:
        yield mock_supabase
    finally:
        for p in reversed(patches):
            p.stop()


@pytest.fixture
def company() -> dict:
    """A seeded-ready company row."""
    from tests.factories import CompanyFactory
    return CompanyFactory.create(id="company-1", name="Acme Foods")


@pytest.fixture
def item(company) -> dict:
    """An item of `company` with no batch size configured."""
    from tests.factories import ItemFactory
    return ItemFactory.create(id="item-1", name="Masala Mix", company_id=company["id"], qty=40)


@pytest.fixture
def seeded(mock_db, mock_supabase, company, item) -> FakeSupabase:
    """Fake database holding one company and one item."""
    mock_supabase.seed("companies", [company])
    mock_supabase.seed("items", [item])
    return mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with the fake database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.seed("items", [...])
            response = test_client_with_mock_db.get("/api/summaries?company_id=c1")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
