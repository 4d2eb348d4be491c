# bentamate/db/repositories/cache_entries.py
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from bentamate.db.models.cache_entries import CacheEntry
from bentamate.db.models.offline_transactions import utcnow


async def put_cache_entry(
    db: AsyncSession,
    key: str,
    data: Any,
) -> CacheEntry:
    entry = await db.get(CacheEntry, key)
    if entry is None:
        entry = CacheEntry(key=key, data=data, timestamp=utcnow())
        db.add(entry)
    else:
        entry.data = data
        entry.timestamp = utcnow()
    await db.flush()
    return entry


async def get_cache_entry(
    db: AsyncSession,
    key: str,
) -> Any:
    entry = await db.get(CacheEntry, key)
    if entry is None:
        return None
    return entry.data
