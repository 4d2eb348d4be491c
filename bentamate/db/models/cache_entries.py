# bentamate/db/models/cache_entries.py
from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from bentamate.db.base import Base
from bentamate.db.models.offline_transactions import utcnow


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    """Last known copy of a backend read (for example the products list).

    Overwritten on every successful online fetch of the same key and served
    back while offline. Entries never expire.
    """

    key = Column(String, primary_key=True)
    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
