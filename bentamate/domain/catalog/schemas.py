# bentamate/domain/catalog/schemas.py
import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

LOW_STOCK_THRESHOLD = 10


class StockStatus(str, enum.Enum):
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"


class ProductAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def derive_stock_status(stock: int) -> StockStatus:
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class ProductBase(BaseModel):
    name: str
    barcode: str = ""
    capital: Decimal = Field(ge=0)
    selling: Decimal = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    category: str = ""
    description: Optional[str] = None


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    barcode: Optional[str] = None
    capital: Optional[Decimal] = Field(default=None, ge=0)
    selling: Optional[Decimal] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None


class Product(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    offline: bool = False

    @computed_field
    @property
    def status(self) -> StockStatus:
        return derive_stock_status(self.stock)


class PendingProductOp(BaseModel):
    """Unsynced catalog mutation as read back from the offline queue."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    op_id: int = Field(validation_alias="seq")
    product_id: str
    action: ProductAction
    data: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    timestamp: datetime
    synced: bool = False
    sync_attempts: int = 0
    last_error: Optional[str] = None


class InventorySummary(BaseModel):
    total: int
    in_stock: int
    low_stock: int
    out_of_stock: int
