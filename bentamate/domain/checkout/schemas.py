# bentamate/domain/checkout/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CartLineItem(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)


class CartTotals(BaseModel):
    subtotal: Decimal
    total: Decimal
    change: Decimal


class TransactionDraft(BaseModel):
    items: List[CartLineItem]
    total: Decimal
    amount_received: Decimal
    change_amount: Decimal
    user_id: str
    created_at: datetime


class Transaction(TransactionDraft):
    model_config = ConfigDict(from_attributes=True)

    id: str
    offline: bool = False


class OfflineTransactionRecord(TransactionDraft):
    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    synced: bool = False
    sync_attempts: int = 0
    last_error: Optional[str] = None

    def to_draft(self) -> TransactionDraft:
        return TransactionDraft.model_validate(self.model_dump(include=set(TransactionDraft.model_fields)))


class CheckoutResult(BaseModel):
    transaction: Transaction
    stock_failures: List[str] = Field(default_factory=list)


class AddItem(BaseModel):
    product_id: str


class QuantityChange(BaseModel):
    delta: int


class PaymentIn(BaseModel):
    amount: Optional[Decimal] = None


class CartOut(BaseModel):
    id: UUID
    items: List[CartLineItem]
    payment_received: Optional[Decimal]
    totals: CartTotals
    ready: bool
