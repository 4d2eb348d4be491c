"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio

from bentamate.clients.auth import AuthContext
from bentamate.clients.backend import RemoteBackend
from bentamate.core.errors import AuthError, BackendError, NetworkError
from bentamate.db.base import MEMORY_DB_URL
from bentamate.domain.sync.gateway import OperationGateway
from bentamate.domain.sync.network import NetworkStatusObserver
from bentamate.domain.sync.store import OfflineStore


class FakeBackend(RemoteBackend):
    """In-memory stand-in for the hosted backend."""

    def __init__(self, user_id: Optional[str] = "user-1"):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"products": [], "transactions": []}
        self.user_id = user_id
        self.reachable = True
        self.fail_next_inserts = 0
        self.reject_inserts = False
        self.calls: List[tuple] = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self):
        if not self.reachable:
            raise NetworkError("backend unreachable")

    def _now(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    @staticmethod
    def _matches(row, match):
        return all(str(row.get(k)) == str(v) for k, v in (match or {}).items())

    def add_product(self, **fields) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "barcode": "",
            "category": "",
            "description": None,
            "user_id": self.user_id,
            "created_at": self._now(),
            **fields,
        }
        self.tables["products"].append(row)
        return dict(row)

    def product(self, product_id: str) -> Optional[Dict[str, Any]]:
        for row in self.tables["products"]:
            if str(row["id"]) == str(product_id):
                return row
        return None

    async def select(self, table, filters=None, order=None):
        self._check()
        self.calls.append(("select", table, filters))
        rows = [dict(row) for row in self.tables[table] if self._matches(row, filters)]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda row: str(row.get(column) or ""), reverse=direction == "desc")
        return rows

    async def insert(self, table, row):
        self._check()
        self.calls.append(("insert", table, row))
        if self.fail_next_inserts:
            self.fail_next_inserts -= 1
            raise NetworkError("connection reset")
        if self.reject_inserts:
            raise BackendError("insert rejected", status_code=409)
        stored = {**row}
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", self._now())
        self.tables[table].append(stored)
        return dict(stored)

    async def update(self, table, values, match):
        self._check()
        self.calls.append(("update", table, values, match))
        updated = None
        for row in self.tables[table]:
            if self._matches(row, match):
                row.update(values)
                updated = updated or dict(row)
        return updated

    async def delete(self, table, match):
        self._check()
        self.calls.append(("delete", table, match))
        self.tables[table] = [row for row in self.tables[table] if not self._matches(row, match)]

    async def get_user(self):
        self._check()
        if not self.user_id:
            raise AuthError("No signed-in user")
        return {"id": self.user_id, "email": "owner@example.com"}

    async def ping(self):
        return self.reachable


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def seeded_backend(backend: FakeBackend) -> FakeBackend:
    """Backend holding beer (A) and noodles (B)."""
    backend.add_product(id="A", name="San Miguel Beer 330ml", barcode="4806502121002",
                        capital=35.0, selling=45.0, stock=120, category="Beverages")
    backend.add_product(id="B", name="Lucky Me Instant Noodles", barcode="4800194122306",
                        capital=18.0, selling=25.0, stock=5, category="Food & Snacks")
    return backend


@pytest.fixture
def network() -> NetworkStatusObserver:
    return NetworkStatusObserver(online=True)


@pytest_asyncio.fixture
async def store():
    store = OfflineStore(MEMORY_DB_URL)
    await store.init()
    yield store
    await store.dispose()


@pytest.fixture
def auth(backend: FakeBackend) -> AuthContext:
    return AuthContext(backend)


@pytest_asyncio.fixture
async def gateway(backend, store, network, auth):
    gateway = OperationGateway(backend, store, network, auth)
    gateway.start()
    yield gateway
    await gateway.dispose()
