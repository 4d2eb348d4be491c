# bentamate/api/deps.py
from typing import Dict
from uuid import UUID

from fastapi import Depends, Request

from bentamate.core.errors import NotFoundError
from bentamate.domain.checkout.cart import Cart
from bentamate.domain.sync.gateway import OperationGateway


def get_gateway(request: Request) -> OperationGateway:
    return request.app.state.gateway


def get_carts(request: Request) -> Dict[UUID, Cart]:
    return request.app.state.carts


def get_cart(cart_id: UUID, carts: Dict[UUID, Cart] = Depends(get_carts)) -> Cart:
    cart = carts.get(cart_id)
    if cart is None:
        raise NotFoundError(f"Cart {cart_id} not found")
    return cart
