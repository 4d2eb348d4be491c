# bentamate/domain/sync/gateway.py
"""Single entry point for writes that must survive losing the network.

Online, writes go straight to the backend and come back as the backend stored
them. Offline (or when the backend turns out to be unreachable) they are
queued in the offline store and returned tagged ``offline: True``. When the
network observer reports the way back online, queued records are replayed by
:meth:`OperationGateway.reconcile`.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from bentamate.clients.auth import AuthContext
from bentamate.clients.backend import RemoteBackend
from bentamate.core.errors import AuthError, BackendError, NetworkError, NotFoundError
from bentamate.domain.catalog.merge import apply_pending_ops
from bentamate.domain.catalog.schemas import PendingProductOp, Product, ProductAction
from bentamate.domain.checkout.schemas import OfflineTransactionRecord, Transaction, TransactionDraft
from bentamate.domain.sync.network import NetworkStatusObserver
from bentamate.domain.sync.store import OfflineStore

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
TRANSACTIONS_TABLE = "transactions"
PRODUCTS_CACHE_KEY = "products"

# not columns of the products table
_LOCAL_PRODUCT_FIELDS = {"id", "offline", "status"}

# failures that leave a queued record in place for the next pass
_RETRYABLE = (NetworkError, AuthError, BackendError)


class SyncFailure(BaseModel):
    kind: str
    record_id: str
    reason: str


class ReconcileReport(BaseModel):
    transactions_synced: int = 0
    products_synced: int = 0
    failures: List[SyncFailure] = Field(default_factory=list)


class OperationGateway:

    def __init__(
        self,
        backend: RemoteBackend,
        store: OfflineStore,
        network: NetworkStatusObserver,
        auth: AuthContext,
    ):
        self.backend = backend
        self.store = store
        self.network = network
        self.auth = auth
        self._reconcile_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe = None

    @property
    def online(self) -> bool:
        return self.network.get_status()

    @property
    def durable(self) -> bool:
        return self.store.durable

    # lifecycle

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.network.on_status_change(self._on_status_change)

    async def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _on_status_change(self, online: bool) -> None:
        if not online:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Back online outside an event loop; reconciliation waits for the next trigger")
            return
        logger.info("Back online, reconciling pending offline data")
        task = loop.create_task(self.reconcile())
        self._tasks.add(task)
        task.add_done_callback(self._reconcile_done)

    def _reconcile_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background reconciliation failed", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait for reconciliations started by status changes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _went_offline(self, exc: NetworkError) -> None:
        logger.warning("Backend unreachable, switching to offline queue: %s", exc)
        self.network.set_status(False)

    async def current_user(self) -> str:
        return await self.auth.get_current_user()

    # writes

    async def submit_transaction(self, draft: TransactionDraft) -> Transaction:
        if self.online:
            try:
                row = await self.backend.insert(TRANSACTIONS_TABLE, draft.model_dump(mode="json"))
                return Transaction.model_validate(row)
            except NetworkError as exc:
                self._went_offline(exc)

        offline_id = await self.store.store_offline_transaction(draft)
        return Transaction(**draft.model_dump(), id=offline_id, offline=True)

    async def submit_product_mutation(
        self,
        product: Dict[str, Any],
        action: ProductAction,
    ) -> Dict[str, Any]:
        action = ProductAction(action)
        user_id = await self.current_user()
        product_id = product.get("id")
        if action != ProductAction.CREATE and not product_id:
            raise NotFoundError(f"Cannot {action.value} a product without an id")

        if self.online:
            try:
                return await self._write_product(product_id, action, _columns(product), user_id)
            except NetworkError as exc:
                self._went_offline(exc)

        if action == ProductAction.CREATE and not product_id:
            product_id = self.store.mint_id()
        data = _columns(product) if action != ProductAction.DELETE else {}
        await self.store.store_offline_product(product_id, action, data, user_id=user_id)
        return {**product, "id": product_id, "offline": True}

    async def _write_product(
        self,
        product_id: Optional[str],
        action: ProductAction,
        fields: Dict[str, Any],
        user_id: Optional[str],
    ) -> Dict[str, Any]:
        if action == ProductAction.CREATE:
            row = {**fields, "user_id": user_id}
            if product_id and not self.store.is_local_id(product_id):
                row["id"] = product_id
            return await self.backend.insert(PRODUCTS_TABLE, row)
        if action == ProductAction.UPDATE:
            row = await self.backend.update(PRODUCTS_TABLE, fields, {"id": product_id})
            return row if row is not None else {**fields, "id": product_id}
        await self.backend.delete(PRODUCTS_TABLE, {"id": product_id})
        return {"id": product_id}

    async def decrement_stock(self, product_id: str, quantity: int) -> int:
        """Lower a product's stock by ``quantity`` (never below zero); returns the new stock."""
        if self.online:
            try:
                rows = await self.backend.select(PRODUCTS_TABLE, filters={"id": product_id})
                if not rows:
                    raise NotFoundError(f"Product {product_id} not found")
                new_stock = _decremented(rows[0].get("stock"), quantity, product_id)
                await self.backend.update(PRODUCTS_TABLE, {"stock": new_stock}, {"id": product_id})
                return new_stock
            except NetworkError as exc:
                self._went_offline(exc)

        product = await self._find_offline_product(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} is not in the offline catalog")
        new_stock = _decremented(product.stock, quantity, product_id)
        user_id = self.auth.user_id
        await self.store.store_offline_product(
            product_id, ProductAction.UPDATE, {"stock": new_stock}, user_id=user_id
        )
        return new_stock

    # reads

    async def fetch_products(self) -> List[Product]:
        snapshot = None
        if self.online:
            try:
                snapshot = await self.backend.select(PRODUCTS_TABLE, order="created_at.desc")
                await self.store.cache_data(PRODUCTS_CACHE_KEY, snapshot)
            except NetworkError as exc:
                self._went_offline(exc)
        if snapshot is None:
            snapshot = await self.store.get_cached_data(PRODUCTS_CACHE_KEY) or []

        pending = await self.store.get_unsynced_products()
        return apply_pending_ops(snapshot, pending)

    async def _find_offline_product(self, product_id: str) -> Optional[Product]:
        snapshot = await self.store.get_cached_data(PRODUCTS_CACHE_KEY) or []
        pending = await self.store.get_unsynced_products()
        for product in apply_pending_ops(snapshot, pending):
            if product.id == str(product_id):
                return product
        return None

    # reconciliation

    async def reconcile(self) -> ReconcileReport:
        """Replay every unsynced record; one failure never stops the others.

        Passes are serialized. Records queued while a pass runs are left for
        the next one, including edits to a product whose op is being sent.
        """
        async with self._reconcile_lock:
            report = ReconcileReport()

            for record in await self.store.get_unsynced_transactions():
                try:
                    await self._replay_transaction(record)
                except _RETRYABLE as exc:
                    self._defer(report, "transaction", record.id, exc)
                    await self.store.record_transaction_failure(record.id, str(exc))
                    continue
                await self.store.mark_transaction_synced(record.id)
                report.transactions_synced += 1

            for queued in await self.store.get_unsynced_products():
                # re-read: earlier creates in this pass may have remapped its product id
                async with self.store.replaying(queued.op_id) as op:
                    if op is None:
                        continue
                    try:
                        await self._replay_product_op(op)
                    except _RETRYABLE as exc:
                        self._defer(report, "product", str(op.op_id), exc)
                        await self.store.record_product_failure(op.op_id, str(exc))
                        continue
                    await self.store.mark_product_synced(op.op_id)
                    report.products_synced += 1

            logger.info(
                "Reconciliation finished: %d transactions, %d products synced, %d deferred",
                report.transactions_synced,
                report.products_synced,
                len(report.failures),
            )
            return report

    def _defer(self, report: ReconcileReport, kind: str, record_id: str, exc: Exception) -> None:
        logger.warning("Deferring %s %s to the next pass: %s", kind, record_id, exc)
        report.failures.append(SyncFailure(kind=kind, record_id=record_id, reason=str(exc)))

    async def _replay_transaction(self, record: OfflineTransactionRecord) -> None:
        await self.backend.insert(TRANSACTIONS_TABLE, record.to_draft().model_dump(mode="json"))

    async def _replay_product_op(self, op: PendingProductOp) -> None:
        row = await self._write_product(op.product_id, op.action, _columns(op.data), op.user_id)
        if op.action != ProductAction.CREATE:
            return
        server_id = str(row.get("id")) if row.get("id") is not None else None
        if server_id and server_id != op.product_id:
            remapped = await self.store.remap_product_id(op.product_id, server_id)
            logger.info("Product %s synced as %s (%d pending ops remapped)", op.product_id, server_id, remapped)


def _columns(product: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in product.items() if key not in _LOCAL_PRODUCT_FIELDS}


def _decremented(stock: Any, quantity: int, product_id: str) -> int:
    current = int(stock or 0)
    if quantity > current:
        logger.warning("Product %s oversold: stock %d, sold %d", product_id, current, quantity)
    return max(0, current - quantity)
