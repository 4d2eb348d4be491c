# bentamate/domain/checkout/cart.py
"""In-memory cart for the sale being rung up.

Totals are never stored; :meth:`Cart.compute_totals` recomputes them from the
lines every time so they cannot drift. Quantities stay >= 1: a change that
would reach zero removes the line.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional

from bentamate.core.errors import ValidationError
from bentamate.domain.checkout.schemas import CartLineItem, CartTotals

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _unit_price(product) -> Decimal:
    try:
        price = Decimal(str(product.selling))
    except InvalidOperation as exc:
        raise ValidationError(ValidationError.INVALID_PRICE, f"Product {product.id} has no valid price") from exc
    if not price.is_finite() or price < 0:
        raise ValidationError(ValidationError.INVALID_PRICE, f"Product {product.id} has no valid price")
    return to_money(price)


class Cart:

    def __init__(self):
        self._items: List[CartLineItem] = []
        self.payment_received: Optional[Decimal] = None

    @property
    def items(self) -> List[CartLineItem]:
        return [item.model_copy() for item in self._items]

    def is_empty(self) -> bool:
        return not self._items

    def _find(self, product_id: str) -> Optional[CartLineItem]:
        for item in self._items:
            if item.product_id == str(product_id):
                return item
        return None

    def add_item(self, product) -> CartLineItem:
        """Add one unit; the selling price is locked in when the line is created."""
        line = self._find(product.id)
        if line is not None:
            line.quantity += 1
            return line.model_copy()

        line = CartLineItem(
            product_id=str(product.id),
            name=product.name,
            unit_price=_unit_price(product),
            quantity=1,
        )
        self._items.append(line)
        return line.model_copy()

    def change_quantity(self, product_id: str, delta: int) -> None:
        line = self._find(product_id)
        if line is None:
            return
        quantity = max(0, line.quantity + int(delta))
        if quantity == 0:
            self._items.remove(line)
        else:
            line.quantity = quantity

    def remove_item(self, product_id: str) -> None:
        line = self._find(product_id)
        if line is not None:
            self._items.remove(line)

    def clear(self) -> None:
        self._items = []
        self.payment_received = None

    def set_payment_received(self, amount: Any) -> None:
        if amount is None:
            self.payment_received = None
            return
        try:
            value = Decimal(str(amount))
        except InvalidOperation as exc:
            raise ValidationError(ValidationError.INVALID_PAYMENT, "Payment must be a number") from exc
        if not value.is_finite() or value < 0:
            raise ValidationError(ValidationError.INVALID_PAYMENT, "Payment must be a non-negative number")
        self.payment_received = to_money(value)

    def compute_totals(self) -> CartTotals:
        subtotal = sum((item.unit_price * item.quantity for item in self._items), Decimal("0"))
        subtotal = to_money(subtotal)
        # no tax or discount model: total is the subtotal
        total = subtotal
        if self.payment_received is None:
            change = to_money(0)
        else:
            change = to_money(max(Decimal("0"), self.payment_received - total))
        return CartTotals(subtotal=subtotal, total=total, change=change)

    def is_ready(self) -> bool:
        if self.is_empty() or self.payment_received is None:
            return False
        return self.payment_received >= self.compute_totals().total
