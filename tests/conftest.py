"""
Shared test fixtures.

Stores run in memory and the attributes API is replaced by a fake
client, so no test touches the network or the filesystem outside tmp_path.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read once at import time
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "development")

import asyncio
import pytest
from unittest.mock import patch
from typing import Generator, Optional

from models.epw import AttributeClass, AttributeEntry
from exceptions import AttributeFetchError


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Chainable query over one in-memory table (key/value rows)."""

    def __init__(self, rows: dict):
        self._rows = rows
        self._filters: list[tuple[str, str]] = []
        self._limit: Optional[int] = None
        self._action = "select"
        self._payload = None

    def select(self, *args, **kwargs):
        self._action = "select"
        return self

    def upsert(self, data):
        self._action = "upsert"
        self._payload = data
        return self

    def delete(self):
        self._action = "delete"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matching(self) -> list[dict]:
        rows = list(self._rows.values())
        for column, value in self._filters:
            rows = [r for r in rows if r.get(column) == value]
        return rows

    def execute(self) -> MockSupabaseResponse:
        if self._action == "upsert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            for item in items:
                self._rows[item["key"]] = dict(item)
            return MockSupabaseResponse(data=items)

        if self._action == "delete":
            removed = self._matching()
            for row in removed:
                self._rows.pop(row["key"], None)
            return MockSupabaseResponse(data=removed)

        rows = self._matching()
        if self._limit is not None:
            rows = rows[:self._limit]
        return MockSupabaseResponse(data=[dict(r) for r in rows])


class MockSupabaseClient:
    """Mock Supabase client keeping rows per table."""

    def __init__(self):
        self._tables: dict[str, dict] = {}
        self.fail_on: set[str] = set()

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table."""
        self._tables[table_name] = {row["key"]: dict(row) for row in data}

    def rows(self, table_name: str) -> list:
        return list(self._tables.get(table_name, {}).values())

    def table(self, name: str) -> MockSupabaseQuery:
        if name in self.fail_on:
            raise RuntimeError(f"table {name} unavailable")
        return MockSupabaseQuery(self._tables.setdefault(name, {}))


# ===================
# FAKE ATTRIBUTES CLIENT
# ===================

class FakeAttributesClient:
    """
    Stand-in for EPWAttributesClient.

    Usage:
        client = FakeAttributesClient({AttributeClass.COR: {"C": "Castanho"}})
        client.failing.add(AttributeClass.TIPO)
    """

    def __init__(self, responses: Optional[dict] = None):
        self.responses: dict[AttributeClass, dict[str, str]] = responses or {}
        self.failing: set[AttributeClass] = set()
        self.calls: list[AttributeClass] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def fetch(self, attribute_class: AttributeClass) -> list[AttributeEntry]:
        self.calls.append(attribute_class)
        if self.gate is not None:
            await self.gate.wait()
        if attribute_class in self.failing:
            raise AttributeFetchError(attribute_class.value, "API request failed: 503 Service Unavailable")
        return [
            AttributeEntry(code=code, description=description)
            for code, description in self.responses.get(attribute_class, {}).items()
        ]

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingStore:
    """KeyValueStore wrapper whose writes to some keys always fail."""

    name = "failing"

    def __init__(self, inner, failing_keys: set):
        self.inner = inner
        self.failing_keys = failing_keys

    def get(self, key):
        return self.inner.get(key)

    def set(self, key, value):
        from exceptions import StorageError
        if key in self.failing_keys:
            raise StorageError("write", "quota exceeded", details={"key": key})
        self.inner.set(key, value)

    def delete(self, key):
        self.inner.delete(key)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("kv_store", [
                {"key": "epw-code-exceptions", "value": "{...}"}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """Patch the database client with mock."""
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


@pytest.fixture
def memory_store():
    from services.kv_store import MemoryStore
    return MemoryStore()


@pytest.fixture
def fake_client() -> FakeAttributesClient:
    return FakeAttributesClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver(fake_client, memory_store, clock):
    """AttributeResolver over the static dictionary, fake API and memory store."""
    from services.attribute_resolver import AttributeResolver
    return AttributeResolver(
        client=fake_client,
        store=memory_store,
        ttl_seconds=30 * 60,
        clock=clock,
    )


@pytest.fixture
def exception_store(memory_store, resolver):
    from services.exception_store import ExceptionStore
    return ExceptionStore(memory_store, resolver=resolver)


@pytest.fixture
def decoder(resolver, exception_store):
    from parsers.epw_decoder import EPWDecoder
    return EPWDecoder(resolver, exception_store=exception_store)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(memory_store, resolver, exception_store, decoder) -> Generator:
    """
    FastAPI test client wired to the in-memory services above.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/epw/decode/RSC23CL01")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from services import epw_service

    epw_service.reset_services()
    epw_service._kv_store = memory_store
    epw_service._attribute_resolver = resolver
    epw_service._exception_store = exception_store
    epw_service._epw_decoder = decoder

    from main import app

    with TestClient(app) as client:
        yield client

    epw_service.reset_services()
