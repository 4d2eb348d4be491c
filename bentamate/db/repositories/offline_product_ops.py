# bentamate/db/repositories/offline_product_ops.py
from typing import Any, Collection, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select, update

from bentamate.db.models.offline_product_ops import OfflineProductOp
from bentamate.db.models.offline_transactions import utcnow
from bentamate.domain.catalog.schemas import ProductAction

CREATE = ProductAction.CREATE.value
UPDATE = ProductAction.UPDATE.value
DELETE = ProductAction.DELETE.value


async def get_latest_unsynced_op(
    db: AsyncSession,
    product_id: str
) -> Optional[OfflineProductOp]:
    result = await db.execute(
        select(OfflineProductOp)
        .where(OfflineProductOp.product_id == product_id, OfflineProductOp.synced.is_(False))
        .order_by(OfflineProductOp.seq.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def queue_product_op(
    db: AsyncSession,
    product_id: str,
    action: str,
    data: Dict[str, Any],
    user_id: Optional[str] = None,
    frozen: Collection[int] = (),
) -> Optional[OfflineProductOp]:
    """Queue a catalog mutation, folding it into the pending one when possible.

    create + update -> create with merged fields
    create + delete -> nothing left to replay
    update + update -> update with merged fields
    update + delete -> delete
    Any other pair is appended, keeping the replay order. Ops whose seq is in
    ``frozen`` are being sent to the backend and are never folded into.
    """
    latest = await get_latest_unsynced_op(db, product_id)

    if latest is not None and latest.seq not in frozen:
        if latest.action == CREATE and action == UPDATE:
            return _merge_into(latest, data)
        if latest.action == CREATE and action == DELETE:
            await db.delete(latest)
            await db.flush()
            return None
        if latest.action == UPDATE and action == UPDATE:
            return _merge_into(latest, data)
        if latest.action == UPDATE and action == DELETE:
            latest.action = DELETE
            latest.data = {}
            latest.timestamp = utcnow()
            await db.flush()
            return latest

    op = OfflineProductOp(
        product_id=product_id,
        action=action,
        data=dict(data),
        user_id=user_id,
        timestamp=utcnow(),
        synced=False,
    )
    db.add(op)
    await db.flush()
    return op


def _merge_into(op: OfflineProductOp, data: Dict[str, Any]) -> OfflineProductOp:
    # reassign, JSON columns do not track in-place mutation
    op.data = {**(op.data or {}), **data}
    op.timestamp = utcnow()
    return op


async def get_unsynced_product_ops(
    db: AsyncSession,
) -> List[OfflineProductOp]:
    result = await db.execute(
        select(OfflineProductOp)
        .where(OfflineProductOp.synced.is_(False))
        .order_by(OfflineProductOp.seq)
    )
    return list(result.scalars().all())


async def mark_product_op_synced(
    db: AsyncSession,
    op_id: int
) -> bool:
    op = await db.get(OfflineProductOp, op_id)
    if op is None:
        return False
    op.synced = True
    op.last_error = None
    return True


async def record_product_op_failure(
    db: AsyncSession,
    op_id: int,
    error: str,
) -> None:
    op = await db.get(OfflineProductOp, op_id)
    if op is None:
        return
    op.sync_attempts = (op.sync_attempts or 0) + 1
    op.last_error = error


async def remap_product_id(
    db: AsyncSession,
    old_id: str,
    new_id: str,
) -> int:
    result = await db.execute(
        update(OfflineProductOp)
        .where(OfflineProductOp.product_id == old_id, OfflineProductOp.synced.is_(False))
        .values(product_id=new_id)
    )
    return result.rowcount or 0


async def get_product_op(
    db: AsyncSession,
    op_id: int,
) -> Optional[OfflineProductOp]:
    return await db.get(OfflineProductOp, op_id)
