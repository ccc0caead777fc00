from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer, field_validator

from storefront.models.order import (
    BTC_ADDRESS_MAX_LENGTH,
    BTC_AMOUNT_DECIMALS,
    BTC_AMOUNT_DIGITS,
    SERVICE_ID_MAX_LENGTH,
)


class CheckoutItem(BaseModel):
    id: str | int
    name: str
    price: Decimal
    btc_price: Decimal | None = Field(
        default=None,
        max_digits=BTC_AMOUNT_DIGITS,
        decimal_places=BTC_AMOUNT_DECIMALS,
    )
    btc_address: str | None = Field(default=None, max_length=BTC_ADDRESS_MAX_LENGTH)

    @field_validator("id")
    @classmethod
    def check_id_length(cls, value: str | int) -> str | int:
        # Stored as text in orders.service_id.
        if len(str(value)) > SERVICE_ID_MAX_LENGTH:
            raise ValueError(f"id must be at most {SERVICE_ID_MAX_LENGTH} characters")
        return value


class CheckoutRequest(BaseModel):
    items: list[CheckoutItem] | None = None
    email: str | None = None
    instructions: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "id": "3f1c1f2e-8d1e-4c8e-9a43-2c1d4b7a9e10",
                            "name": "Logo design",
                            "price": 10,
                            "btc_price": 0.0002,
                            "btc_address": "bc1qexampleaddress",
                        }
                    ],
                    "email": "buyer@example.com",
                    "instructions": "Dark palette, please.",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    payment_url: str
    payment_id: str


class OrderResponse(BaseModel):
    id: int
    service_id: str
    btc_address: str | None = None
    btc_amount: Decimal | None = None
    status: str
    payment_status: str
    payment_id: str | None = None
    customer_email: str
    instructions: str | None = None
    created_at: str
    payment_confirmed_at: str | None = None

    @field_serializer("btc_amount")
    def serialize_btc_amount(self, value: Decimal | None) -> str | None:
        if value is None:
            return None
        return format(value.normalize(), "f")


class PaymentStatusResponse(BaseModel):
    payment_id: str
    payment_status: str
    orders: list[OrderResponse]
