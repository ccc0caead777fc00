import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.dependencies import get_current_user_id, get_invoice_provider, get_payment_config
from storefront.models import Order, get_db
from storefront.schemas.orders import (
    CheckoutRequest,
    CheckoutResponse,
    OrderResponse,
    PaymentStatusResponse,
)
from storefront.services.checkout import InvoiceCreator, InvoiceProvider, PaymentConfig
from storefront.services.errors import PaymentError
from storefront.services.order_store import OrderStore
from storefront.services.status_mapping import OrderStatus

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        service_id=order.service_id,
        btc_address=order.btc_address,
        btc_amount=order.btc_amount,
        status=order.status,
        payment_status=order.payment_status,
        payment_id=order.payment_id,
        customer_email=order.customer_email,
        instructions=order.instructions,
        created_at=order.created_at.isoformat() if order.created_at else "",
        payment_confirmed_at=order.payment_confirmed_at.isoformat() if order.payment_confirmed_at else None,
    )


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Create payment invoice for the cart",
    responses={
        400: {"description": "Empty cart, invalid email, or invalid total"},
        401: {"description": "Missing or invalid bearer token"},
        500: {"description": "Invoice or order creation failed"},
        503: {"description": "Payment gateway not configured"},
    },
)
def checkout(
    body: CheckoutRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[Session, Depends(get_db)],
    config: Annotated[PaymentConfig, Depends(get_payment_config)],
    provider: Annotated[InvoiceProvider | None, Depends(get_invoice_provider)],
):
    """
    Issue a NOWPayments invoice for the cart total and create one pending
    order per cart item, all tagged with the invoice id.
    Returns the hosted payment URL to redirect the buyer to.
    """
    creator = InvoiceCreator(config=config, provider=provider, store=OrderStore(db))
    try:
        result = creator.create(user_id, body, origin=request.headers.get("origin"))
    except PaymentError as e:
        return _error(e.status_code, e.message)
    except Exception:
        logger.exception("Unexpected checkout failure for user %s", user_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return CheckoutResponse(payment_url=result.payment_url, payment_id=result.payment_id)


@router.get(
    "/me",
    response_model=list[OrderResponse],
    summary="List my orders",
)
def my_orders(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[Session, Depends(get_db)],
):
    """Returns the current user's orders, newest first."""
    return [_order_response(o) for o in OrderStore(db).list_for_user(user_id)]


@router.get(
    "/payments/{payment_id}",
    response_model=PaymentStatusResponse,
    summary="Get payment status of a checkout",
)
def payment_status(
    payment_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[Session, Depends(get_db)],
):
    """Settlement status of one invoice (only for the current user's orders)."""
    orders = OrderStore(db).list_for_user_payment(user_id, payment_id)
    if not orders:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    statuses = {o.payment_status for o in orders}
    aggregate = OrderStatus.PAID.value if OrderStatus.PAID.value in statuses else orders[0].payment_status
    return PaymentStatusResponse(
        payment_id=payment_id,
        payment_status=aggregate,
        orders=[_order_response(o) for o in orders],
    )
