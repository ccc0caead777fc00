import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from storefront.config import Settings
from storefront.models import Order
from storefront.models.order import EMAIL_MAX_LENGTH, INSTRUCTIONS_MAX_LENGTH
from storefront.schemas.orders import CheckoutRequest
from storefront.services.errors import (
    CheckoutValidationError,
    GatewayNotConfiguredError,
    InvoiceCreationError,
    OrderPersistenceError,
)
from storefront.services.nowpayments_service import Invoice, NowPaymentsError
from storefront.services.order_store import OrderLine, OrderStore
from storefront.services.url_utils import join_url, resolve_redirect_base

logger = logging.getLogger(__name__)

IPN_CALLBACK_PATH = "/webhooks/nowpayments"


@dataclass(frozen=True)
class PaymentConfig:
    api_key: str
    ipn_secret: str
    base_url: str
    frontend_url: str
    api_url: str = "https://api.nowpayments.io/v1"
    timeout_seconds: int = 30
    price_currency: str = "usd"
    pay_currency: str = "btc"
    max_total: Decimal = Decimal("100000")
    success_path: str = "/dashboard"
    cancel_path: str = "/cart"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentConfig":
        return cls(
            api_key=settings.NOWPAYMENTS_API_KEY,
            ipn_secret=settings.NOWPAYMENTS_IPN_SECRET,
            base_url=settings.BASE_URL,
            frontend_url=settings.FRONTEND_URL,
            api_url=settings.NOWPAYMENTS_API_URL,
            timeout_seconds=settings.NOWPAYMENTS_TIMEOUT_SECONDS,
            price_currency=settings.PRICE_CURRENCY,
            pay_currency=settings.PAY_CURRENCY,
            max_total=settings.MAX_CHECKOUT_TOTAL,
            success_path=settings.PAYMENT_SUCCESS_PATH,
            cancel_path=settings.PAYMENT_CANCEL_PATH,
        )

    @property
    def ipn_callback_url(self) -> str:
        return join_url(self.base_url, IPN_CALLBACK_PATH)


class InvoiceProvider(Protocol):
    def create_invoice(
        self,
        price_amount: Decimal,
        price_currency: str,
        pay_currency: str,
        ipn_callback_url: str,
        order_description: str,
        success_url: str,
        cancel_url: str,
    ) -> Invoice: ...


@dataclass(frozen=True)
class CheckoutResult:
    payment_url: str
    payment_id: str
    orders: list[Order]


class InvoiceCreator:
    """Turn a cart into a hosted NOWPayments invoice plus one pending order per item.

    No order is written unless the provider issued an invoice. If the
    insert fails afterwards the invoice is orphaned at the provider; that is
    logged and surfaced to the caller so they can retry.
    """

    def __init__(self, config: PaymentConfig, provider: InvoiceProvider | None, store: OrderStore):
        self.config = config
        self.provider = provider
        self.store = store

    def create(self, user_id: str, request: CheckoutRequest, origin: str | None = None) -> CheckoutResult:
        items = request.items or []
        if not items:
            raise CheckoutValidationError("No items provided")

        email = (request.email or "").strip()
        if "@" not in email or len(email) > EMAIL_MAX_LENGTH:
            raise CheckoutValidationError("Valid email required")

        instructions = (request.instructions or "").strip() or None
        if instructions and len(instructions) > INSTRUCTIONS_MAX_LENGTH:
            raise CheckoutValidationError("Instructions too long")

        total = sum((item.price for item in items), Decimal("0"))
        if total <= 0 or total > self.config.max_total:
            raise CheckoutValidationError("Invalid amount")

        if self.provider is None or not self.config.api_key:
            raise GatewayNotConfiguredError("Payment gateway not configured")

        redirect_base = resolve_redirect_base(origin, self.config.frontend_url)
        try:
            invoice = self.provider.create_invoice(
                price_amount=total,
                price_currency=self.config.price_currency,
                pay_currency=self.config.pay_currency,
                ipn_callback_url=self.config.ipn_callback_url,
                order_description="Order: " + ", ".join(item.name for item in items),
                success_url=join_url(redirect_base, self.config.success_path),
                cancel_url=join_url(redirect_base, self.config.cancel_path),
            )
        except NowPaymentsError as exc:
            logger.error(
                "NOWPayments invoice creation failed (status=%s): %s",
                exc.status_code,
                exc.detail,
            )
            raise InvoiceCreationError("Failed to create payment invoice") from exc

        lines = [
            OrderLine(
                service_id=str(item.id),
                btc_amount=item.btc_price or None,
                btc_address=item.btc_address or None,
            )
            for item in items
        ]
        try:
            orders = self.store.insert_pending(
                payment_id=invoice.id,
                user_id=user_id,
                customer_email=email,
                instructions=instructions,
                lines=lines,
            )
        except SQLAlchemyError as exc:
            logger.error(
                "Invoice %s was issued but its %s order(s) could not be stored; "
                "the invoice is orphaned and needs manual reconciliation",
                invoice.id,
                len(lines),
                exc_info=True,
            )
            raise OrderPersistenceError("Failed to record orders", payment_id=invoice.id) from exc

        logger.info(
            "Checkout for user %s: invoice %s, %s order(s), total %s %s",
            user_id,
            invoice.id,
            len(orders),
            total,
            self.config.price_currency,
        )
        return CheckoutResult(payment_url=invoice.invoice_url, payment_id=invoice.id, orders=orders)
