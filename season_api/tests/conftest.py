from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone

import pytest
from postgrest.exceptions import APIError


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


def _ilike(value, pattern: str) -> bool:
    needle = pattern.strip("%").lower()
    return needle in str(value or "").lower()


def _parse_or(filters: str):
    """Parse ``a.ilike.%x%,b.eq.y`` into (field, op, value) triples."""
    clauses = []
    for clause in filters.split(","):
        field, op, value = clause.split(".", 2)
        clauses.append((field, op, value))
    return clauses


class FakeQuery:
    def __init__(self, db: "FakeSupabaseClient", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters: list = []
        self.order_by: list[tuple[str, bool]] = []
        self.limit_value: int | None = None
        self.range_value: tuple[int, int] | None = None
        self.count_requested = False

    # builders
    def select(self, columns="*", count=None):
        self.columns = columns
        self.count_requested = count == "exact"
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def update(self, values: dict):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, field, value):
        self.filters.append(lambda row: row.get(field) == value)
        return self

    def in_(self, field, values):
        allowed = list(values)
        self.filters.append(lambda row: row.get(field) in allowed)
        return self

    def gte(self, field, value):
        self.filters.append(lambda row: row.get(field) is not None and row.get(field) >= value)
        return self

    def lte(self, field, value):
        self.filters.append(lambda row: row.get(field) is not None and row.get(field) <= value)
        return self

    def or_(self, filters: str, reference_table: str | None = None):
        clauses = _parse_or(filters)

        def predicate(row):
            target = self.db.profile_for(row) if reference_table == "profiles" else row
            target = target or {}
            for field, op, value in clauses:
                if op == "ilike" and _ilike(target.get(field), value):
                    return True
                if op == "eq" and str(target.get(field)) == value:
                    return True
            return False

        self.filters.append(predicate)
        return self

    def order(self, column, desc=False):
        self.order_by.append((column, desc))
        return self

    def limit(self, value: int):
        self.limit_value = value
        return self

    def range(self, start: int, end: int):
        self.range_value = (start, end)
        return self

    # execution
    def _matching(self) -> list[dict]:
        rows = self.db.tables.setdefault(self.table_name, [])
        return [row for row in rows if all(predicate(row) for predicate in self.filters)]

    def _with_joins(self, row: dict) -> dict:
        out = copy.deepcopy(row)
        if "profiles" in self.columns:
            out["profiles"] = copy.deepcopy(self.db.profile_for(row))
        return out

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        if self.op == "insert":
            return self._execute_insert()
        if self.op == "update":
            matched = self._matching()
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(row) for row in matched])
        if self.op == "delete":
            matched = self._matching()
            rows = self.db.tables[self.table_name]
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return FakeResponse(matched)
        return self._execute_select()

    def _execute_insert(self):
        failure = self.db.insert_failures.get(self.table_name)
        if failure is not None:
            raise failure

        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        created = []
        for row in rows:
            new_row = {
                "id": self.db.next_id(self.table_name),
                "created_at": self.db.next_timestamp(),
                **copy.deepcopy(row),
            }
            self.db.check_unique(self.table_name, new_row)
            self.db.tables.setdefault(self.table_name, []).append(new_row)
            created.append(copy.deepcopy(new_row))
        return FakeResponse(created)

    def _execute_select(self):
        rows = self._matching()
        if "profiles!inner" in self.columns:
            rows = [row for row in rows if self.db.profile_for(row) is not None]
        for column, desc in reversed(self.order_by):
            rows = sorted(rows, key=lambda row: row.get(column) or "", reverse=desc)
        count = len(rows)
        if self.range_value is not None:
            start, end = self.range_value
            rows = rows[start : end + 1]
        if self.limit_value is not None:
            rows = rows[: self.limit_value]
        return FakeResponse(
            [self._with_joins(row) for row in rows],
            count if self.count_requested else None,
        )


class FakeSupabaseClient:
    """In-memory stand-in for the Supabase query builder."""

    def __init__(self, tables: dict[str, list[dict]] | None = None):
        self.tables: dict[str, list[dict]] = copy.deepcopy(tables or {})
        self.insert_failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._ids: dict[str, int] = {}
        self._clock = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def next_id(self, table: str) -> str:
        self._ids[table] = self._ids.get(table, 0) + 1
        return f"{table}-{self._ids[table]}"

    def next_timestamp(self) -> str:
        self._clock += timedelta(minutes=1)
        return self._clock.isoformat()

    def profile_for(self, row: dict) -> dict | None:
        for profile in self.tables.get("profiles", []):
            if profile["id"] == row.get("user_id"):
                return {
                    key: profile.get(key)
                    for key in ("id", "email", "first_name", "last_name")
                }
        return None

    def check_unique(self, table: str, row: dict) -> None:
        # mirrors the partial unique index on pending season requests
        if table != "season_price_requests" or row.get("status") != "pending":
            return
        for existing in self.tables.get(table, []):
            if (
                existing.get("status") == "pending"
                and existing.get("room_id") == row.get("room_id")
                and existing.get("season_year") == row.get("season_year")
            ):
                raise APIError(
                    {
                        "code": "23505",
                        "message": "duplicate key value violates unique constraint",
                        "details": "",
                        "hint": "",
                    }
                )

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])


@pytest.fixture
def fake_supabase():
    return FakeSupabaseClient
