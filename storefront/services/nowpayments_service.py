import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Invoice:
    id: str
    invoice_url: str


class NowPaymentsError(Exception):
    """Invoice issuance failed; ``detail`` holds the raw provider response for logs."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _json_amount(amount: Decimal) -> int | float:
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


class NowPaymentsClient:
    """Minimal NOWPayments API client: hosted invoice creation."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.nowpayments.io/v1",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("NOWPAYMENTS_API_KEY is not set")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def create_invoice(
        self,
        price_amount: Decimal,
        price_currency: str,
        pay_currency: str,
        ipn_callback_url: str,
        order_description: str,
        success_url: str,
        cancel_url: str,
    ) -> Invoice:
        """POST /invoice and return the invoice id and hosted payment URL."""
        payload = {
            "price_amount": _json_amount(price_amount),
            "price_currency": price_currency,
            "pay_currency": pay_currency,
            "ipn_callback_url": ipn_callback_url,
            "order_description": order_description,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/invoice",
                    json=payload,
                    headers={"x-api-key": self.api_key},
                )
        except httpx.HTTPError as exc:
            raise NowPaymentsError("NOWPayments request failed", detail=str(exc)) from exc

        if not response.is_success:
            raise NowPaymentsError(
                "NOWPayments rejected invoice request",
                status_code=response.status_code,
                detail=response.text,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise NowPaymentsError(
                "NOWPayments returned a non-JSON invoice response",
                status_code=response.status_code,
                detail=response.text,
            ) from exc

        invoice_id = body.get("id") if isinstance(body, dict) else None
        invoice_url = body.get("invoice_url") if isinstance(body, dict) else None
        if invoice_id in (None, "") or not invoice_url:
            raise NowPaymentsError(
                "NOWPayments invoice response is missing id or invoice_url",
                status_code=response.status_code,
                detail=response.text,
            )

        logger.info("NOWPayments invoice %s created for %s %s", invoice_id, price_amount, price_currency)
        return Invoice(id=str(invoice_id), invoice_url=str(invoice_url))
