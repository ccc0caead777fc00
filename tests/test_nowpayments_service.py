import json
from decimal import Decimal

import httpx
import pytest

from storefront.services.nowpayments_service import NowPaymentsClient, NowPaymentsError


def _client(handler) -> NowPaymentsClient:
    return NowPaymentsClient(
        api_key="np_test_key",
        base_url="https://api.nowpayments.test/v1/",
        transport=httpx.MockTransport(handler),
    )


def _create(client: NowPaymentsClient, amount: Decimal = Decimal("15")):
    return client.create_invoice(
        price_amount=amount,
        price_currency="usd",
        pay_currency="btc",
        ipn_callback_url="https://api.shop.example.com/webhooks/nowpayments",
        order_description="Order: A, B",
        success_url="https://shop.example.com/dashboard",
        cancel_url="https://shop.example.com/cart",
    )


def test_create_invoice_success():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(
            200,
            json={"id": "4522625843", "invoice_url": "https://nowpayments.io/payment/?iid=4522625843"},
        )

    invoice = _create(_client(handler))

    assert invoice.id == "4522625843"
    assert invoice.invoice_url == "https://nowpayments.io/payment/?iid=4522625843"

    request = captured["request"]
    assert request.method == "POST"
    assert str(request.url) == "https://api.nowpayments.test/v1/invoice"
    assert request.headers["x-api-key"] == "np_test_key"
    assert json.loads(request.content) == {
        "price_amount": 15,
        "price_currency": "usd",
        "pay_currency": "btc",
        "ipn_callback_url": "https://api.shop.example.com/webhooks/nowpayments",
        "order_description": "Order: A, B",
        "success_url": "https://shop.example.com/dashboard",
        "cancel_url": "https://shop.example.com/cart",
    }


def test_create_invoice_sends_fractional_amount_as_number():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": 7, "invoice_url": "https://nowpayments.io/payment/?iid=7"})

    invoice = _create(_client(handler), amount=Decimal("15.50"))

    assert captured["body"]["price_amount"] == 15.5
    assert invoice.id == "7"


def test_create_invoice_non_2xx_keeps_provider_body_for_logs():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"statusCode": 400, "message": "price_amount is too small"})

    with pytest.raises(NowPaymentsError) as exc_info:
        _create(_client(handler))

    assert exc_info.value.status_code == 400
    assert "price_amount is too small" in exc_info.value.detail


def test_create_invoice_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NowPaymentsError, match="request failed"):
        _create(_client(handler))


def test_create_invoice_missing_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "123"})

    with pytest.raises(NowPaymentsError, match="missing id or invoice_url"):
        _create(_client(handler))


def test_create_invoice_non_json_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(NowPaymentsError, match="non-JSON"):
        _create(_client(handler))


def test_client_requires_api_key():
    with pytest.raises(ValueError, match="NOWPAYMENTS_API_KEY"):
        NowPaymentsClient(api_key="")
