# bentamate/db/models/offline_product_ops.py
from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from bentamate.db.base import Base
from bentamate.db.models.offline_transactions import utcnow


class OfflineProductOp(Base):
    __tablename__ = "offline_product_ops"

    """Queued catalog mutation (create/update/delete) waiting to be replayed.

    Rows are ordered by ``seq``. At most one unsynced row per product id is kept
    for consecutive compatible actions (the queue coalesces them on write), so
    replaying the unsynced rows in ``seq`` order reproduces the owner's intent.
    """

    seq = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    product_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)  # "create" | "update" | "delete"

    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    user_id = Column(String, nullable=True)

    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    synced = Column(Boolean, nullable=False, default=False, index=True)
    sync_attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_offline_product_ops_product_synced", "product_id", "synced"),
    )
