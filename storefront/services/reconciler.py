import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from storefront.services.checkout import PaymentConfig
from storefront.services.errors import (
    InvalidSignatureError,
    MalformedNotificationError,
    ReconciliationError,
)
from storefront.services.order_store import OrderStore
from storefront.services.signatures import format_number, verify_signature
from storefront.services.status_mapping import OrderStatus, map_provider_status

logger = logging.getLogger(__name__)

PAYMENT_ID_FIELDS = ("invoice_id", "order_id")


class ReconcileOutcome(str, Enum):
    UPDATED = "updated"
    ALREADY_SETTLED = "already_settled"
    NO_MATCHING_ORDERS = "no_matching_orders"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    payment_id: str
    status: OrderStatus | None = None
    updated_rows: int = 0


def log_service_activation(payment_id: str) -> None:
    logger.info("Payment confirmed, service activation triggered for payment_id %s", payment_id)


def extract_payment_id(payload: dict) -> str:
    """Invoice id of the notification, falling back to ``order_id``.

    String ids are returned verbatim so they match the stored payment_id exactly.
    """
    for field in PAYMENT_ID_FIELDS:
        value = payload.get(field)
        if isinstance(value, bool) or not value:
            continue
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return format_number(value)
        if isinstance(value, str) and value.strip():
            return value
    raise MalformedNotificationError("No invoice/order ID")


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _parse_payload(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body, parse_constant=_reject_constant)
    except ValueError as exc:
        logger.warning("Unparsable IPN body: %s", exc)
        raise MalformedNotificationError("Invalid payload") from exc
    if not isinstance(payload, dict):
        logger.warning("IPN body is not a JSON object: %s", type(payload).__name__)
        raise MalformedNotificationError("Invalid payload")
    return payload


class WebhookReconciler:
    """Apply signed NOWPayments IPN callbacks to the orders of one invoice.

    Callbacks may repeat and arrive out of order. ``paid`` is terminal: once
    any order of the invoice is paid, later callbacks are acknowledged
    without touching the rows, and ``on_settled`` fires once per invoice.
    """

    def __init__(
        self,
        config: PaymentConfig,
        store: OrderStore,
        on_settled: Callable[[str], None] | None = None,
    ):
        self.config = config
        self.store = store
        self.on_settled = on_settled or log_service_activation

    def authenticate(self, raw_body: bytes, signature: str | None) -> dict:
        """Return the parsed payload once its HMAC-SHA512 signature checks out."""
        if not self.config.ipn_secret:
            logger.error("NOWPAYMENTS_IPN_SECRET is not set, rejecting IPN")
            raise InvalidSignatureError("Invalid signature")
        if not signature:
            logger.warning("IPN rejected: missing x-nowpayments-sig header")
            raise InvalidSignatureError("Invalid signature")

        payload = _parse_payload(raw_body)
        if not verify_signature(payload, signature, self.config.ipn_secret):
            logger.warning("IPN rejected: invalid signature")
            raise InvalidSignatureError("Invalid signature")
        return payload

    def handle(self, raw_body: bytes, signature: str | None) -> ReconcileResult:
        payload = self.authenticate(raw_body, signature)
        logger.info("IPN received: %s", raw_body.decode("utf-8", errors="replace"))

        payment_id = extract_payment_id(payload)
        new_status = map_provider_status(payload.get("payment_status"))

        try:
            current = self.store.find_payment_status(payment_id)
            if current is None:
                logger.warning("IPN for unknown payment_id %s, nothing to update", payment_id)
                return ReconcileResult(ReconcileOutcome.NO_MATCHING_ORDERS, payment_id, new_status)
            if current == OrderStatus.PAID.value:
                logger.info("Already processed, skipping: %s", payment_id)
                return ReconcileResult(ReconcileOutcome.ALREADY_SETTLED, payment_id, OrderStatus.PAID)

            updated = self.store.apply_payment_status(payment_id, new_status)
        except SQLAlchemyError as exc:
            logger.error("Failed to update orders for payment_id %s: %s", payment_id, exc, exc_info=True)
            raise ReconciliationError("DB update failed") from exc

        if updated == 0:
            logger.info("Payment %s was settled by a concurrent notification, skipping", payment_id)
            return ReconcileResult(ReconcileOutcome.ALREADY_SETTLED, payment_id, OrderStatus.PAID)

        logger.info("Orders with payment_id %s updated to: %s (%s rows)", payment_id, new_status.value, updated)
        if new_status is OrderStatus.PAID:
            self._notify_settled(payment_id)
        return ReconcileResult(ReconcileOutcome.UPDATED, payment_id, new_status, updated)

    def _notify_settled(self, payment_id: str) -> None:
        try:
            self.on_settled(payment_id)
        except Exception:
            # Settlement is already committed, so the IPN is still acknowledged.
            logger.exception("Service activation hook failed for payment_id %s", payment_id)
