"""
Pytest configuration and fixtures.

Provides an in-memory stand-in for the PostgreSQL store so the lifecycle
engine can be exercised without a database: a Database-like handle with
transaction()/cursor() context managers and a cursor that answers the
engine's queries from Python lists. Amendment writes are rolled back when the
transaction block raises.
"""

import copy
import re
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import psycopg2
import pytest

from models.contract_lifecycle import AmendmentType


def _norm(query: str) -> str:
    return " ".join(query.split())


class FakeStore:
    """Contract, sector-association and amendment tables held in memory."""

    def __init__(self):
        self.contracts: Dict[str, List[Dict[str, Any]]] = {}
        self.associations: Dict[str, List[Dict[str, Any]]] = {}
        self.amendments: Dict[str, List[Dict[str, Any]]] = {}
        self.locks: List[tuple] = []
        self.queries: List[str] = []
        self._next_amendment_id = 1000
        # Failure injection: raise on the Nth query containing fail_on
        self.fail_on: Optional[str] = None
        self.fail_at: int = 1
        self._fail_hits = 0

    # -- seeding -----------------------------------------------------------

    def add_contract(
        self,
        table: str,
        id: Any,
        contract_date_start: date,
        contract_date_end: Optional[date] = None,
        sector_id: Any = None,
        estimated_quantity_tons: Optional[Decimal] = None,
        contract_number: Optional[str] = None,
        is_active: bool = True,
        deleted_at=None,
    ) -> Dict[str, Any]:
        row = {
            "id": id,
            "contract_number": contract_number or f"C-{id}",
            "contract_date_start": contract_date_start,
            "contract_date_end": contract_date_end,
            "sector_id": sector_id,
            "estimated_quantity_tons": estimated_quantity_tons,
            "is_active": is_active,
            "deleted_at": deleted_at,
        }
        self.contracts.setdefault(table, []).append(row)
        return row

    def link_sector(self, table: str, contract_id: Any, sector_id: Any, deleted_at=None):
        self.associations.setdefault(table, []).append(
            {"contract_id": contract_id, "sector_id": sector_id, "deleted_at": deleted_at}
        )

    def add_amendment(self, table: str, **values) -> Dict[str, Any]:
        row = {
            "id": self._new_amendment_id(),
            "amendment_number": "A-1",
            "amendment_date": date(2025, 1, 1),
            "amendment_type": AmendmentType.EXTENSION.value,
            "new_contract_date_end": None,
            "new_estimated_quantity_tons": None,
            "quantity_adjustment_auto": None,
            "reference_contract_id": None,
            "changes_description": None,
            "notes": None,
            "created_by": None,
            "deleted_at": None,
        }
        row.update(values)
        self.amendments.setdefault(table, []).append(row)
        return row

    def amendment_rows(self, table: str) -> List[Dict[str, Any]]:
        return self.amendments.get(table, [])

    def _new_amendment_id(self) -> int:
        self._next_amendment_id += 1
        return self._next_amendment_id

    # -- query answering ---------------------------------------------------

    def execute(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        q = _norm(query)
        self.queries.append(q)

        if self.fail_on and self.fail_on in q:
            self._fail_hits += 1
            if self._fail_hits >= self.fail_at:
                raise psycopg2.OperationalError("simulated store failure")

        if q.startswith("INSERT INTO"):
            return self._insert(q, params)
        if "FOR UPDATE" in q:
            return self._lock(q, params)
        if "COUNT(*)" in q:
            return self._count(q, params)
        if " AS value" in q:
            return self._latest_value(q, params)
        if "LEFT JOIN" in q:
            return self._list_auto_terminations(q, params)
        if "reference_contract_id = %(reference_contract_id)s" in q:
            return self._dedup(q, params)
        if "ANY(%(sector_ids)s" in q:
            return self._overlap(q, params, association=True)
        if "sector_id = %(sector_id)s" in q:
            return self._overlap(q, params, association=False)
        if "WHERE id = %(contract_id)s" in q:
            return self._get_contract(q, params)
        raise AssertionError(f"Unexpected query: {q}")

    def _table_after(self, keyword: str, q: str) -> str:
        return re.search(keyword + r" (\w+)", q).group(1)

    def _quantity(self, q: str, row: Dict[str, Any]):
        if "NULL::numeric AS original_quantity" in q:
            return None
        return row["estimated_quantity_tons"]

    def _contract_view(self, q: str, row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "contract_number": row["contract_number"],
            "contract_date_start": row["contract_date_start"],
            "contract_date_end": row["contract_date_end"],
            "original_quantity": self._quantity(q, row),
        }

    def _insert(self, q, params):
        table = self._table_after("INSERT INTO", q)
        row = {"deleted_at": None}
        row.update(params)
        row["id"] = self._new_amendment_id()
        self.amendments.setdefault(table, []).append(row)
        return [{"id": row["id"]}]

    def _lock(self, q, params):
        table = self._table_after("FROM", q)
        self.locks.append((table, params["contract_id"]))
        return [
            {"id": r["id"]} for r in self.contracts.get(table, [])
            if r["id"] == params["contract_id"]
        ]

    def _live_amendments(self, table, contract_id):
        return [
            a for a in self.amendments.get(table, [])
            if a["contract_id"] == contract_id and a["deleted_at"] is None
        ]

    def _count(self, q, params):
        table = self._table_after("FROM", q)
        return [{"count": len(self._live_amendments(table, params["contract_id"]))}]

    def _dedup(self, q, params):
        table = self._table_after("FROM", q)
        hits = [
            a for a in self._live_amendments(table, params["contract_id"])
            if a["amendment_type"] == params["amendment_type"]
            and a["reference_contract_id"] == params["reference_contract_id"]
        ]
        return [{"?column?": 1}] if hits else []

    def _latest_value(self, q, params):
        table = self._table_after("FROM", q)
        column = re.search(r"SELECT amendment_number, (\w+) AS value", q).group(1)
        rows = [
            a for a in self._live_amendments(table, params["contract_id"])
            if a.get(column) is not None
        ]
        rows.sort(key=lambda a: (a["amendment_date"], a["id"]), reverse=True)
        return [
            {"amendment_number": r["amendment_number"], "value": r[column]} for r in rows[:1]
        ]

    def _list_auto_terminations(self, q, params):
        table = self._table_after("FROM", q)
        contract_table = self._table_after("LEFT JOIN", q)
        numbers = {c["id"]: c["contract_number"] for c in self.contracts.get(contract_table, [])}
        rows = [
            a for a in self._live_amendments(table, params["contract_id"])
            if a["amendment_type"] == params["amendment_type"]
        ]
        rows.sort(key=lambda a: (a["amendment_date"], a["id"]), reverse=True)
        result = []
        for a in rows:
            view = {
                k: a.get(k) for k in (
                    "id", "contract_id", "amendment_number", "amendment_date",
                    "new_contract_date_end", "new_estimated_quantity_tons",
                    "quantity_adjustment_auto", "reference_contract_id",
                    "changes_description", "notes", "created_by", "deleted_at",
                )
            }
            view["reference_contract_number"] = numbers.get(a["reference_contract_id"])
            result.append(view)
        return result

    def _overlap(self, q, params, association: bool):
        table = self._table_after("FROM", q)
        if association:
            assoc_table = self._table_after("JOIN", q)
            wanted = set(params["sector_ids"])
            linked = {
                link["contract_id"] for link in self.associations.get(assoc_table, [])
                if link["sector_id"] in wanted and link["deleted_at"] is None
            }

            def covers(row):
                return row["id"] in linked
        else:
            def covers(row):
                return row["sector_id"] == params["sector_id"]

        rows = [
            r for r in self.contracts.get(table, [])
            if covers(r)
            and r["id"] != params["exclude_id"]
            and r["is_active"]
            and r["deleted_at"] is None
            and r["contract_date_start"] <= params["termination_date"]
            and (r["contract_date_end"] is None or r["contract_date_end"] >= params["service_start"])
        ]
        rows.sort(key=lambda r: (r["contract_date_start"], r["id"]))
        return [self._contract_view(q, r) for r in rows]

    def _get_contract(self, q, params):
        table = self._table_after("FROM", q)
        return [
            self._contract_view(q, r) for r in self.contracts.get(table, [])
            if r["id"] == params["contract_id"] and r["deleted_at"] is None
        ]


class FakeCursor:
    def __init__(self, store: FakeStore):
        self.store = store
        self._rows: List[Dict[str, Any]] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self._rows = self.store.execute(query, params or {})

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, store: FakeStore):
        self.store = store

    def cursor(self):
        return FakeCursor(self.store)


class FakeDatabase:
    """Database-compatible handle over a FakeStore."""

    def __init__(self, store: FakeStore):
        self.store = store
        self.commits = 0
        self.rollbacks = 0
        self.isolation_levels: List[str] = []

    @contextmanager
    def transaction(self, isolation_level: str = "READ COMMITTED"):
        self.isolation_levels.append(isolation_level)
        snapshot = copy.deepcopy(self.store.amendments)
        try:
            yield FakeConnection(self.store)
            self.commits += 1
        except Exception:
            self.store.amendments = snapshot
            self.rollbacks += 1
            raise

    @property
    def transactions(self) -> int:
        return self.commits + self.rollbacks


@pytest.fixture
def store():
    """Empty in-memory contract store."""
    return FakeStore()


@pytest.fixture
def fake_db(store):
    """Database handle backed by the in-memory store."""
    return FakeDatabase(store)
