# bentamate/db/models/offline_transactions.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from bentamate.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OfflineTransaction(Base):
    __tablename__ = "offline_transactions"

    """A sale recorded while the backend was unreachable.

    The row is a frozen snapshot of the checked-out cart (line items, totals,
    payment and change) under a locally minted id. It stays here with
    ``synced = False`` until reconciliation has inserted it into the backend.
    """

    id = Column(String, primary_key=True)

    items = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    total = Column(Numeric(18, 2), nullable=False)
    amount_received = Column(Numeric(18, 2), nullable=False)
    change_amount = Column(Numeric(18, 2), nullable=False)
    user_id = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    synced = Column(Boolean, nullable=False, default=False, index=True)
    sync_attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_offline_transactions_timestamp", "timestamp"),
    )
