"""Tests for the local durable store."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from bentamate.core.errors import StorageIOError
from bentamate.db.base import MEMORY_DB_URL
from bentamate.domain.checkout.schemas import CartLineItem, TransactionDraft
from bentamate.domain.sync.store import OfflineStore, open_offline_store


def make_draft(total="115.00", paid="150.00", user_id="user-1") -> TransactionDraft:
    return TransactionDraft(
        items=[
            CartLineItem(product_id="A", name="Beer", unit_price=Decimal("45.00"), quantity=2),
            CartLineItem(product_id="B", name="Noodles", unit_price=Decimal("25.00"), quantity=1),
        ],
        total=Decimal(total),
        amount_received=Decimal(paid),
        change_amount=Decimal(paid) - Decimal(total),
        user_id=user_id,
        created_at=datetime.now(timezone.utc),
    )


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


class TestOfflineTransactions:

    @pytest.mark.asyncio
    async def test_store_then_read_unsynced(self, store):
        offline_id = await store.store_offline_transaction(make_draft())

        [record] = await store.get_unsynced_transactions()

        assert record.id == offline_id
        assert record.synced is False
        assert record.total == Decimal("115.00")
        assert record.change_amount == Decimal("35.00")
        assert [(i.product_id, i.quantity) for i in record.items] == [("A", 2), ("B", 1)]
        assert record.timestamp is not None

    @pytest.mark.asyncio
    async def test_mark_synced_removes_from_unsynced(self, store):
        offline_id = await store.store_offline_transaction(make_draft())

        await store.mark_transaction_synced(offline_id)

        assert await store.get_unsynced_transactions() == []

    @pytest.mark.asyncio
    async def test_mark_unknown_id_is_noop(self, store):
        await store.mark_transaction_synced("offline_missing")
        await store.mark_product_synced(12345)

    @pytest.mark.asyncio
    async def test_local_ids_are_prefixed_and_unique(self, store):
        ids = [await store.store_offline_transaction(make_draft()) for _ in range(5)]
        assert len(set(ids)) == 5
        assert all(store.is_local_id(i) for i in ids)
        assert not store.is_local_id("3f1c4a8e-8f0a-4c55-9a53-2d1d6f0e2b11")

    @pytest.mark.asyncio
    async def test_failures_are_recorded(self, store):
        offline_id = await store.store_offline_transaction(make_draft())

        await store.record_transaction_failure(offline_id, "backend unreachable")
        await store.record_transaction_failure(offline_id, "backend unreachable")

        [record] = await store.get_unsynced_transactions()
        assert record.sync_attempts == 2
        assert record.last_error == "backend unreachable"


class TestOfflineProducts:

    @pytest.mark.asyncio
    async def test_create_then_update_stays_one_create(self, store):
        await store.store_offline_product("p1", "create", {"name": "Bread", "stock": 15})
        await store.store_offline_product("p1", "update", {"stock": 12})

        [op] = await store.get_unsynced_products()
        assert op.action == "create"
        assert op.data == {"name": "Bread", "stock": 12}

    @pytest.mark.asyncio
    async def test_create_then_delete_cancels_out(self, store):
        await store.store_offline_product("p1", "create", {"name": "Bread"})
        op_id = await store.store_offline_product("p1", "delete")

        assert op_id is None
        assert await store.get_unsynced_products() == []

    @pytest.mark.asyncio
    async def test_updates_are_merged(self, store):
        await store.store_offline_product("A", "update", {"stock": 118})
        await store.store_offline_product("A", "update", {"stock": 117, "selling": "46.00"})

        [op] = await store.get_unsynced_products()
        assert op.action == "update"
        assert op.data == {"stock": 117, "selling": "46.00"}

    @pytest.mark.asyncio
    async def test_update_then_delete_becomes_delete(self, store):
        await store.store_offline_product("A", "update", {"stock": 118})
        await store.store_offline_product("A", "delete")

        [op] = await store.get_unsynced_products()
        assert op.action == "delete"
        assert op.data == {}

    @pytest.mark.asyncio
    async def test_delete_then_create_keeps_order(self, store):
        await store.store_offline_product("A", "delete")
        await store.store_offline_product("A", "create", {"name": "Beer again"})

        ops = await store.get_unsynced_products()
        assert [op.action for op in ops] == ["delete", "create"]

    @pytest.mark.asyncio
    async def test_synced_op_is_not_merged_into(self, store):
        first = await store.store_offline_product("A", "update", {"stock": 118})
        await store.mark_product_synced(first)
        await store.store_offline_product("A", "update", {"stock": 100})

        [op] = await store.get_unsynced_products()
        assert op.op_id != first
        assert op.data == {"stock": 100}

    @pytest.mark.asyncio
    async def test_op_being_replayed_is_not_merged_into(self, store):
        first = await store.store_offline_product("A", "update", {"stock": 118})

        async with store.replaying(first) as op:
            assert op.data == {"stock": 118}
            await store.store_offline_product("A", "update", {"stock": 117})
            await store.store_offline_product("A", "update", {"name": "Beer"})
            await store.mark_product_synced(first)

        [pending] = await store.get_unsynced_products()
        assert pending.op_id != first
        assert pending.data == {"stock": 117, "name": "Beer"}

    @pytest.mark.asyncio
    async def test_replaying_a_cancelled_op_yields_none(self, store):
        op_id = await store.store_offline_product("p1", "create", {"name": "Bread"})
        await store.store_offline_product("p1", "delete")

        async with store.replaying(op_id) as op:
            assert op is None

    @pytest.mark.asyncio
    async def test_remap_product_id(self, store):
        await store.store_offline_product("A", "delete")
        await store.store_offline_product("A", "create", {"name": "Beer"})

        remapped = await store.remap_product_id("A", "server-1")

        assert remapped == 2
        assert {op.product_id for op in await store.get_unsynced_products()} == {"server-1"}


class TestCacheAndMaintenance:

    @pytest.mark.asyncio
    async def test_cache_is_last_write_wins(self, store):
        assert await store.get_cached_data("products") is None

        await store.cache_data("products", [{"id": "A"}])
        await store.cache_data("products", [{"id": "B"}])

        assert await store.get_cached_data("products") == [{"id": "B"}]

    @pytest.mark.asyncio
    async def test_count_and_clear(self, store):
        await store.store_offline_transaction(make_draft())
        await store.store_offline_product("A", "update", {"stock": 1})
        await store.cache_data("products", [])

        assert await store.count_unsynced() == {"transactions": 1, "products": 1}

        await store.clear_offline_data()

        assert await store.count_unsynced() == {"transactions": 0, "products": 0}
        assert await store.get_cached_data("products") is None


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_concurrent_init_yields_one_ready_store(self):
        store = OfflineStore(MEMORY_DB_URL)
        try:
            await asyncio.gather(*(store.init() for _ in range(10)))
            assert store.ready
            await store.cache_data("k", {"v": 1})
            assert await store.get_cached_data("k") == {"v": 1}
        finally:
            await store.dispose()

    @pytest.mark.asyncio
    async def test_operations_init_lazily(self):
        store = OfflineStore(MEMORY_DB_URL)
        try:
            assert await store.get_unsynced_transactions() == []
            assert store.ready
        finally:
            await store.dispose()

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, tmp_path):
        url = sqlite_url(tmp_path / "offline.db")
        first = OfflineStore(url)
        offline_id = await first.store_offline_transaction(make_draft())
        await first.dispose()

        second = OfflineStore(url)
        try:
            assert second.durable
            assert [r.id for r in await second.get_unsynced_transactions()] == [offline_id]
        finally:
            await second.dispose()

    @pytest.mark.asyncio
    async def test_unavailable_medium_raises_storage_error(self, tmp_path):
        store = OfflineStore(sqlite_url(tmp_path / "missing" / "dir" / "offline.db"))
        try:
            with pytest.raises(StorageIOError):
                await store.init()
            with pytest.raises(StorageIOError):
                await store.store_offline_transaction(make_draft())
        finally:
            await store.dispose()

    @pytest.mark.asyncio
    async def test_open_without_fallback_propagates(self, tmp_path):
        with pytest.raises(StorageIOError):
            await open_offline_store(sqlite_url(tmp_path / "missing" / "offline.db"))

    @pytest.mark.asyncio
    async def test_open_with_fallback_is_memory_only(self, tmp_path):
        store = await open_offline_store(
            sqlite_url(tmp_path / "missing" / "offline.db"),
            allow_memory_fallback=True,
        )
        try:
            assert store.durable is False
            offline_id = await store.store_offline_transaction(make_draft())
            assert offline_id.startswith("offline_")
        finally:
            await store.dispose()
