# bentamate/db/repositories/offline_transactions.py
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from bentamate.db.models.offline_transactions import OfflineTransaction


async def add_offline_transaction(
    db: AsyncSession,
    txn: OfflineTransaction,
) -> OfflineTransaction:
    db.add(txn)
    await db.flush()
    return txn


async def get_offline_transaction_by_id(
    db: AsyncSession,
    transaction_id: str
) -> Optional[OfflineTransaction]:
    result = await db.execute(
        select(OfflineTransaction).where(OfflineTransaction.id == transaction_id)
    )
    return result.scalar_one_or_none()


async def get_unsynced_transactions(
    db: AsyncSession,
) -> List[OfflineTransaction]:
    result = await db.execute(
        select(OfflineTransaction).where(OfflineTransaction.synced.is_(False))
    )
    return list(result.scalars().all())


async def mark_transaction_synced(
    db: AsyncSession,
    transaction_id: str
) -> bool:
    txn = await get_offline_transaction_by_id(db, transaction_id)
    if txn is None:
        return False
    txn.synced = True
    txn.last_error = None
    return True


async def record_transaction_failure(
    db: AsyncSession,
    transaction_id: str,
    error: str,
) -> None:
    txn = await get_offline_transaction_by_id(db, transaction_id)
    if txn is None:
        return
    txn.sync_attempts = (txn.sync_attempts or 0) + 1
    txn.last_error = error
