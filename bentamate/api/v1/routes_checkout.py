# bentamate/api/v1/routes_checkout.py
from typing import Dict
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends

from bentamate.api.deps import get_cart, get_carts, get_gateway
from bentamate.domain.catalog.service import get_product
from bentamate.domain.checkout.cart import Cart
from bentamate.domain.checkout.schemas import AddItem, CartOut, CheckoutResult, PaymentIn, QuantityChange
from bentamate.domain.checkout.service import checkout
from bentamate.domain.sync.gateway import OperationGateway


router = APIRouter(prefix="/api/v1/carts", tags=["carts"])


def cart_out(cart_id: UUID, cart: Cart) -> CartOut:
    return CartOut(
        id=cart_id,
        items=cart.items,
        payment_received=cart.payment_received,
        totals=cart.compute_totals(),
        ready=cart.is_ready(),
    )


@router.post("", response_model=CartOut, status_code=201)
async def create_cart_endpoint(
    carts: Dict[UUID, Cart] = Depends(get_carts),
):
    cart_id = uuid4()
    carts[cart_id] = Cart()
    return cart_out(cart_id, carts[cart_id])


@router.get("/{cart_id}", response_model=CartOut)
async def get_cart_endpoint(
    cart_id: UUID,
    cart: Cart = Depends(get_cart),
):
    return cart_out(cart_id, cart)


@router.post("/{cart_id}/items", response_model=CartOut)
async def add_item_endpoint(
    cart_id: UUID,
    payload: AddItem,
    cart: Cart = Depends(get_cart),
    gateway: OperationGateway = Depends(get_gateway),
):
    product = await get_product(gateway, payload.product_id)
    cart.add_item(product)
    return cart_out(cart_id, cart)


@router.patch("/{cart_id}/items/{product_id}", response_model=CartOut)
async def change_quantity_endpoint(
    cart_id: UUID,
    product_id: str,
    payload: QuantityChange,
    cart: Cart = Depends(get_cart),
):
    cart.change_quantity(product_id, payload.delta)
    return cart_out(cart_id, cart)


@router.delete("/{cart_id}/items/{product_id}", response_model=CartOut)
async def remove_item_endpoint(
    cart_id: UUID,
    product_id: str,
    cart: Cart = Depends(get_cart),
):
    cart.remove_item(product_id)
    return cart_out(cart_id, cart)


@router.delete("/{cart_id}/items", response_model=CartOut)
async def clear_cart_endpoint(
    cart_id: UUID,
    cart: Cart = Depends(get_cart),
):
    cart.clear()
    return cart_out(cart_id, cart)


@router.put("/{cart_id}/payment", response_model=CartOut)
async def set_payment_endpoint(
    cart_id: UUID,
    payload: PaymentIn,
    cart: Cart = Depends(get_cart),
):
    cart.set_payment_received(payload.amount)
    return cart_out(cart_id, cart)


@router.delete("/{cart_id}", status_code=204)
async def discard_cart_endpoint(
    cart_id: UUID,
    cart: Cart = Depends(get_cart),
    carts: Dict[UUID, Cart] = Depends(get_carts),
):
    carts.pop(cart_id, None)


@router.post("/{cart_id}/checkout", response_model=CheckoutResult)
async def checkout_endpoint(
    cart_id: UUID,
    cart: Cart = Depends(get_cart),
    carts: Dict[UUID, Cart] = Depends(get_carts),
    gateway: OperationGateway = Depends(get_gateway),
):
    result = await checkout(cart, gateway)
    # a finished sale starts over with a new cart
    carts.pop(cart_id, None)
    return result
