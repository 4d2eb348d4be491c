# bentamate/domain/catalog/service.py
from typing import Iterable, List, Optional

from bentamate.core.errors import NotFoundError, ValidationError
from bentamate.domain.catalog.schemas import (
    InventorySummary,
    Product,
    ProductAction,
    ProductBase,
    ProductCreate,
    ProductUpdate,
    StockStatus,
)
from bentamate.domain.sync.gateway import OperationGateway


def validate_product(product: ProductBase) -> None:
    if not product.name or not product.name.strip():
        raise ValidationError(ValidationError.NAME_REQUIRED, "Product name is required")
    if product.selling <= product.capital:
        raise ValidationError(
            ValidationError.PRICE_NOT_ABOVE_CAPITAL,
            "Selling price must be higher than capital price",
        )


async def list_products(
    gateway: OperationGateway,
    search: Optional[str] = None,
) -> List[Product]:
    products = await gateway.fetch_products()
    if search:
        products = search_products(products, search)
    return products


async def get_product(
    gateway: OperationGateway,
    product_id: str,
) -> Product:
    for product in await gateway.fetch_products():
        if product.id == str(product_id):
            return product
    raise NotFoundError(f"Product {product_id} not found")


async def create_product(
    gateway: OperationGateway,
    data: ProductCreate,
) -> Product:
    validate_product(data)
    saved = await gateway.submit_product_mutation(data.model_dump(mode="json"), ProductAction.CREATE)
    return Product.model_validate(saved)


async def update_product(
    gateway: OperationGateway,
    product_id: str,
    changes: ProductUpdate,
) -> Product:
    current = await get_product(gateway, product_id)
    fields = changes.model_dump(mode="json", exclude_unset=True)

    merged = ProductBase.model_validate({**current.model_dump(mode="json"), **fields})
    validate_product(merged)

    saved = await gateway.submit_product_mutation({**fields, "id": current.id}, ProductAction.UPDATE)
    return Product.model_validate({**current.model_dump(exclude={"status"}), **saved})


async def delete_product(
    gateway: OperationGateway,
    product_id: str,
) -> dict:
    return await gateway.submit_product_mutation({"id": str(product_id)}, ProductAction.DELETE)


def search_products(products: Iterable[Product], term: str) -> List[Product]:
    needle = term.strip().lower()
    if not needle:
        return list(products)
    return [
        product for product in products
        if needle in product.name.lower()
        or needle in (product.barcode or "")
        or needle in product.id.lower()
    ]


def inventory_summary(products: Iterable[Product]) -> InventorySummary:
    products = list(products)
    return InventorySummary(
        total=len(products),
        in_stock=sum(1 for p in products if p.status == StockStatus.IN_STOCK),
        low_stock=sum(1 for p in products if p.status == StockStatus.LOW_STOCK),
        out_of_stock=sum(1 for p in products if p.status == StockStatus.OUT_OF_STOCK),
    )
