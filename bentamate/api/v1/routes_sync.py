# bentamate/api/v1/routes_sync.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from bentamate.api.deps import get_gateway
from bentamate.domain.sync.gateway import OperationGateway, ReconcileReport


router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


class NetworkSignal(BaseModel):
    online: bool


class SyncStatus(BaseModel):
    online: bool
    durable: bool
    pending_transactions: int
    pending_products: int


async def sync_status(gateway: OperationGateway) -> SyncStatus:
    counts = await gateway.store.count_unsynced()
    return SyncStatus(
        online=gateway.online,
        durable=gateway.durable,
        pending_transactions=counts["transactions"],
        pending_products=counts["products"],
    )


@router.get("/status", response_model=SyncStatus)
async def sync_status_endpoint(
    gateway: OperationGateway = Depends(get_gateway),
):
    return await sync_status(gateway)


@router.post("/reconcile", response_model=ReconcileReport)
async def reconcile_endpoint(
    gateway: OperationGateway = Depends(get_gateway),
):
    return await gateway.reconcile()


@router.put("/network", response_model=SyncStatus)
async def network_signal_endpoint(
    payload: NetworkSignal,
    gateway: OperationGateway = Depends(get_gateway),
):
    # going online schedules a reconciliation in the background
    gateway.network.set_status(payload.online)
    return await sync_status(gateway)
