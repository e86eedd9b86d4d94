"""Shared fixtures: an in-memory stand-in for the Supabase query builder."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from datetime import datetime
from unittest.mock import patch

import pytest


class FakeAPIResponse:
    """Mimics postgrest's APIResponse (data + count)."""

    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query supporting the subset of postgrest calls the store makes."""

    def __init__(self, table):
        self.table = table
        self.operation = None
        self.payload = None
        self.count_mode = None
        self.filters = []
        self.ordering = None
        self.row_limit = None

    def select(self, columns="*", count=None):
        self.operation = "select"
        self.count_mode = count
        return self

    def insert(self, record):
        self.operation = "insert"
        self.payload = record
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, lambda a, b: a == b, value))
        return self

    def gte(self, column, value):
        self.filters.append((column, lambda a, b: a is not None and a >= b, value))
        return self

    def lte(self, column, value):
        self.filters.append((column, lambda a, b: a is not None and a <= b, value))
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, size):
        self.row_limit = size
        return self

    def execute(self):
        if self.table.fail_with is not None:
            raise self.table.fail_with

        if self.operation == "insert":
            row = dict(self.payload)
            row["id"] = self.table.next_id
            self.table.next_id += 1
            self.table.rows.append(row)
            return FakeAPIResponse([dict(row)])

        matched = [row for row in self.table.rows if self._matches(row)]

        if self.operation == "delete":
            self.table.rows = [row for row in self.table.rows if not self._matches(row)]
            return FakeAPIResponse([dict(row) for row in matched])

        if self.ordering:
            column, desc = self.ordering
            matched.sort(key=lambda row: _comparable(column, row.get(column)), reverse=desc)
        if self.row_limit is not None and self.table.honour_limit:
            matched = matched[:self.row_limit]

        count = len(matched) if self.count_mode == "exact" else None
        return FakeAPIResponse([dict(row) for row in matched], count=count)

    def _matches(self, row):
        return all(
            compare(_comparable(column, row.get(column)), _comparable(column, value))
            for column, compare, value in self.filters
        )


class FakeTable:
    def __init__(self):
        self.rows = []
        self.next_id = 1
        self.honour_limit = True
        self.fail_with = None


class FakeSupabaseClient:
    """Minimal supabase.Client double holding rows in memory."""

    def __init__(self):
        self.tables = {}

    def table(self, name):
        if name not in self.tables:
            self.tables[name] = FakeTable()
        return FakeQuery(self.tables[name])


def _comparable(column, value):
    if column == "timestamp" and isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


@pytest.fixture
def fake_supabase():
    """Create an empty in-memory Supabase client."""
    return FakeSupabaseClient()


@pytest.fixture
def store(fake_supabase):
    """Create a ConversationStore backed by the in-memory client."""
    from services.conversation_store import ConversationStore

    with patch('services.conversation_store.create_client', return_value=fake_supabase):
        yield ConversationStore(
            supabase_url="https://test.supabase.co",
            supabase_key="test_key"
        )


@pytest.fixture
def chat_table(fake_supabase, store):
    """The FakeTable behind the store, for inspecting or sabotaging storage."""
    fake_supabase.table(store.table_name)
    return fake_supabase.tables[store.table_name]
