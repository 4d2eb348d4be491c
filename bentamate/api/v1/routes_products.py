# bentamate/api/v1/routes_products.py
from typing import List, Optional

from fastapi import APIRouter, Depends

from bentamate.api.deps import get_gateway
from bentamate.domain.catalog import service as catalog
from bentamate.domain.catalog.schemas import InventorySummary, Product, ProductCreate, ProductUpdate
from bentamate.domain.sync.gateway import OperationGateway


router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.get("", response_model=List[Product])
async def list_products_endpoint(
    q: Optional[str] = None,
    gateway: OperationGateway = Depends(get_gateway),
):
    return await catalog.list_products(gateway, search=q)


@router.get("/summary", response_model=InventorySummary)
async def inventory_summary_endpoint(
    gateway: OperationGateway = Depends(get_gateway),
):
    return catalog.inventory_summary(await catalog.list_products(gateway))


@router.get("/{product_id}", response_model=Product)
async def get_product_endpoint(
    product_id: str,
    gateway: OperationGateway = Depends(get_gateway),
):
    return await catalog.get_product(gateway, product_id)


@router.post("", response_model=Product, status_code=201)
async def create_product_endpoint(
    payload: ProductCreate,
    gateway: OperationGateway = Depends(get_gateway),
):
    return await catalog.create_product(gateway, payload)


@router.patch("/{product_id}", response_model=Product)
async def update_product_endpoint(
    product_id: str,
    payload: ProductUpdate,
    gateway: OperationGateway = Depends(get_gateway),
):
    return await catalog.update_product(gateway, product_id, payload)


@router.delete("/{product_id}")
async def delete_product_endpoint(
    product_id: str,
    gateway: OperationGateway = Depends(get_gateway),
):
    return await catalog.delete_product(gateway, product_id)
