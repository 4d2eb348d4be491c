# bentamate/domain/sync/store.py
"""Local durable store for pending sales, pending catalog edits and cached reads.

The store is an explicitly constructed service: build it with a database URL,
``await store.init()`` (safe to call repeatedly and concurrently) and
``await store.dispose()`` when done. Every failure of the underlying medium
surfaces as :class:`StorageIOError`.
"""
import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bentamate.core.errors import StorageIOError
from bentamate.db.base import MEMORY_DB_URL, Base, is_memory_url, make_engine, make_sessionmaker
from bentamate.db.models.cache_entries import CacheEntry
from bentamate.db.models.offline_product_ops import OfflineProductOp
from bentamate.db.models.offline_transactions import OfflineTransaction, utcnow
from bentamate.db.repositories import cache_entries as cache_repo
from bentamate.db.repositories import offline_product_ops as product_ops_repo
from bentamate.db.repositories import offline_transactions as transactions_repo
from bentamate.domain.catalog.schemas import PendingProductOp, ProductAction
from bentamate.domain.checkout.schemas import OfflineTransactionRecord, TransactionDraft

logger = logging.getLogger(__name__)

DEFAULT_ID_PREFIX = "offline_"


class OfflineStore:

    def __init__(self, db_url: str, id_prefix: str = DEFAULT_ID_PREFIX):
        self.db_url = db_url
        self.id_prefix = id_prefix
        self.engine = make_engine(db_url)
        self._sessionmaker = make_sessionmaker(self.engine)
        self._init_lock = asyncio.Lock()
        self._ready = False
        # seqs of product ops currently being sent to the backend
        self._replaying: Set[int] = set()
        self._product_ops_lock = asyncio.Lock()

    @property
    def durable(self) -> bool:
        return not is_memory_url(self.db_url)

    @property
    def ready(self) -> bool:
        return self._ready

    async def init(self) -> None:
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return
            try:
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except (SQLAlchemyError, OSError) as exc:
                raise StorageIOError(f"Cannot open offline store {self.db_url}: {exc}") from exc
            self._ready = True
            logger.info("Offline store ready at %s", self.db_url)

    async def dispose(self) -> None:
        self._ready = False
        await self.engine.dispose()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        await self.init()
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError) as exc:
            if isinstance(exc, StorageIOError):
                raise
            raise StorageIOError(f"Offline store operation failed: {exc}") from exc

    def mint_id(self) -> str:
        """Local id that cannot collide with a server UUID."""
        return f"{self.id_prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex}"

    def is_local_id(self, record_id: str) -> bool:
        return str(record_id).startswith(self.id_prefix)

    # transactions

    async def store_offline_transaction(self, draft: TransactionDraft) -> str:
        offline_id = self.mint_id()
        async with self._transaction() as db:
            await transactions_repo.add_offline_transaction(
                db,
                OfflineTransaction(
                    id=offline_id,
                    items=[item.model_dump(mode="json") for item in draft.items],
                    total=draft.total,
                    amount_received=draft.amount_received,
                    change_amount=draft.change_amount,
                    user_id=draft.user_id,
                    created_at=draft.created_at,
                    timestamp=utcnow(),
                    synced=False,
                ),
            )
        logger.info("Queued offline transaction %s (total %s)", offline_id, draft.total)
        return offline_id

    async def get_unsynced_transactions(self) -> List[OfflineTransactionRecord]:
        async with self._transaction() as db:
            rows = await transactions_repo.get_unsynced_transactions(db)
            return [OfflineTransactionRecord.model_validate(row) for row in rows]

    async def mark_transaction_synced(self, transaction_id: str) -> None:
        async with self._transaction() as db:
            await transactions_repo.mark_transaction_synced(db, transaction_id)

    async def record_transaction_failure(self, transaction_id: str, error: str) -> None:
        async with self._transaction() as db:
            await transactions_repo.record_transaction_failure(db, transaction_id, error)

    # products

    async def store_offline_product(
        self,
        product_id: str,
        action: ProductAction,
        data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[int]:
        """Queue a catalog mutation; returns the op id it landed in, or None when it cancelled out."""
        action = ProductAction(action)
        async with self._product_ops_lock:
            async with self._transaction() as db:
                op = await product_ops_repo.queue_product_op(
                    db, product_id, action.value, data or {}, user_id=user_id, frozen=self._replaying
                )
                op_id = op.seq if op is not None else None
        logger.info("Queued offline product %s for %s", action.value, product_id)
        return op_id

    async def get_unsynced_products(self) -> List[PendingProductOp]:
        async with self._transaction() as db:
            rows = await product_ops_repo.get_unsynced_product_ops(db)
            return [PendingProductOp.model_validate(row) for row in rows]

    async def get_product_op(self, op_id: int) -> Optional[PendingProductOp]:
        async with self._transaction() as db:
            row = await product_ops_repo.get_product_op(db, op_id)
            if row is None or row.synced:
                return None
            return PendingProductOp.model_validate(row)

    @asynccontextmanager
    async def replaying(self, op_id: int) -> AsyncIterator[Optional[PendingProductOp]]:
        """Hold a queued op still while it is sent to the backend.

        Yields the op as currently stored (None once it is synced or cancelled
        out). Mutations queued for the same product meanwhile are appended as
        new ops instead of being folded into this one.
        """
        async with self._product_ops_lock:
            self._replaying.add(op_id)
        try:
            yield await self.get_product_op(op_id)
        finally:
            self._replaying.discard(op_id)

    async def mark_product_synced(self, op_id: int) -> None:
        async with self._transaction() as db:
            await product_ops_repo.mark_product_op_synced(db, op_id)

    async def record_product_failure(self, op_id: int, error: str) -> None:
        async with self._transaction() as db:
            await product_ops_repo.record_product_op_failure(db, op_id, error)

    async def remap_product_id(self, old_id: str, new_id: str) -> int:
        async with self._transaction() as db:
            return await product_ops_repo.remap_product_id(db, old_id, new_id)

    # cache

    async def cache_data(self, key: str, data: Any) -> None:
        async with self._transaction() as db:
            await cache_repo.put_cache_entry(db, key, data)

    async def get_cached_data(self, key: str) -> Any:
        async with self._transaction() as db:
            return await cache_repo.get_cache_entry(db, key)

    # maintenance

    async def count_unsynced(self) -> Dict[str, int]:
        async with self._transaction() as db:
            transactions = await db.scalar(
                select(func.count()).select_from(OfflineTransaction).where(OfflineTransaction.synced.is_(False))
            )
            products = await db.scalar(
                select(func.count()).select_from(OfflineProductOp).where(OfflineProductOp.synced.is_(False))
            )
        return {"transactions": transactions or 0, "products": products or 0}

    async def clear_offline_data(self) -> None:
        async with self._transaction() as db:
            for model in (OfflineTransaction, OfflineProductOp, CacheEntry):
                await db.execute(model.__table__.delete())
        logger.warning("Offline data cleared")


async def open_offline_store(
    db_url: str,
    allow_memory_fallback: bool = False,
    id_prefix: str = DEFAULT_ID_PREFIX,
) -> OfflineStore:
    """Open the durable store, degrading to memory only when the caller allows it.

    The returned store's ``durable`` flag tells the caller which one it got.
    """
    store = OfflineStore(db_url, id_prefix=id_prefix)
    try:
        await store.init()
        return store
    except StorageIOError:
        await store.dispose()
        if not allow_memory_fallback:
            raise
        logger.warning(
            "Offline storage unavailable at %s; queued records will not survive a restart",
            db_url,
            exc_info=True,
        )

    fallback = OfflineStore(MEMORY_DB_URL, id_prefix=id_prefix)
    await fallback.init()
    return fallback
