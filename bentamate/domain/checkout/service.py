# bentamate/domain/checkout/service.py
import logging
from datetime import datetime, timezone
from typing import List

from bentamate.core.errors import BentaMateError, ValidationError
from bentamate.domain.checkout.cart import Cart
from bentamate.domain.checkout.schemas import CheckoutResult, TransactionDraft
from bentamate.domain.sync.gateway import OperationGateway

logger = logging.getLogger(__name__)


def validate_checkout(cart: Cart) -> None:
    if cart.is_empty():
        raise ValidationError(ValidationError.EMPTY_CART, "Please add items to cart before checkout")

    total = cart.compute_totals().total
    if cart.payment_received is None or cart.payment_received < total:
        raise ValidationError(
            ValidationError.INSUFFICIENT_PAYMENT,
            "Amount received must be equal to or greater than total",
        )


def build_transaction_draft(cart: Cart, user_id: str) -> TransactionDraft:
    totals = cart.compute_totals()
    return TransactionDraft(
        items=cart.items,
        total=totals.total,
        amount_received=cart.payment_received,
        change_amount=totals.change,
        user_id=user_id,
        created_at=datetime.now(timezone.utc),
    )


async def checkout(
    cart: Cart,
    gateway: OperationGateway,
) -> CheckoutResult:
    """Persist the sale, lower stock per line, then clear the cart.

    Nothing happens unless the cart is non-empty, fully paid and a user is
    signed in. If saving the transaction fails the error propagates and the
    cart is left as it was. Stock updates run after the sale is saved and
    are not atomic across lines: one that fails is logged and reported in
    ``stock_failures`` without undoing the sale.
    """
    validate_checkout(cart)
    user_id = await gateway.current_user()

    draft = build_transaction_draft(cart, user_id)
    saved = await gateway.submit_transaction(draft)

    stock_failures: List[str] = []
    for line in draft.items:
        try:
            await gateway.decrement_stock(line.product_id, line.quantity)
        except BentaMateError as exc:
            logger.error(
                "Transaction %s saved but stock for %s was not decremented by %d: %s",
                saved.id, line.product_id, line.quantity, exc,
            )
            stock_failures.append(line.product_id)

    cart.clear()
    return CheckoutResult(transaction=saved, stock_failures=stock_failures)
