from storefront.schemas.orders import (
    CheckoutItem,
    CheckoutRequest,
    CheckoutResponse,
    OrderResponse,
    PaymentStatusResponse,
)

__all__ = [
    "CheckoutItem",
    "CheckoutRequest",
    "CheckoutResponse",
    "OrderResponse",
    "PaymentStatusResponse",
]
