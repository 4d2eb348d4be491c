# bentamate/core/errors.py
"""Error taxonomy shared by the cart, the offline store and the gateway.

Every error carries a machine ``code`` and a ``category`` the UI can map to a
user-readable message (insufficient payment, empty cart, network unavailable,
authentication required, ...).
"""
from typing import Optional


class BentaMateError(Exception):
    category = "error"
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        self.code = code or self.category.upper().replace(" ", "_")
        super().__init__(self.message)


class ValidationError(BentaMateError):
    category = "validation"
    default_message = "Invalid input"

    EMPTY_CART = "EMPTY_CART"
    INSUFFICIENT_PAYMENT = "INSUFFICIENT_PAYMENT"
    INVALID_PAYMENT = "INVALID_PAYMENT"
    INVALID_PRICE = "INVALID_PRICE"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    NAME_REQUIRED = "NAME_REQUIRED"
    PRICE_NOT_ABOVE_CAPITAL = "PRICE_NOT_ABOVE_CAPITAL"

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message, code=code)


class NetworkError(BentaMateError):
    category = "network unavailable"
    default_message = "Network unavailable"


class AuthError(BentaMateError):
    category = "authentication required"
    default_message = "Authentication required"


class StorageIOError(BentaMateError, OSError):
    category = "offline storage unavailable"
    default_message = "Offline storage unavailable"


class BackendError(BentaMateError):
    category = "backend"
    default_message = "Backend rejected the request"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(BentaMateError):
    category = "not found"
    default_message = "Not found"
