from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMING = "confirming"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    EXPIRED = "expired"


PAID_PROVIDER_STATUSES = {"finished", "confirmed"}
CONFIRMING_PROVIDER_STATUSES = {"confirming", "sending", "partially_paid"}
PASSTHROUGH_PROVIDER_STATUSES = {
    OrderStatus.FAILED.value,
    OrderStatus.REFUNDED.value,
    OrderStatus.EXPIRED.value,
}


def map_provider_status(provider_status: object) -> OrderStatus:
    """Translate a NOWPayments ``payment_status`` into the order vocabulary.

    Matching is exact; anything unknown (``waiting``, missing, wrong type)
    maps to pending.
    """
    if not isinstance(provider_status, str):
        return OrderStatus.PENDING
    if provider_status in PAID_PROVIDER_STATUSES:
        return OrderStatus.PAID
    if provider_status in CONFIRMING_PROVIDER_STATUSES:
        return OrderStatus.CONFIRMING
    if provider_status in PASSTHROUGH_PROVIDER_STATUSES:
        return OrderStatus(provider_status)
    return OrderStatus.PENDING
