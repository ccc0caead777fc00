import logging
from typing import Annotated, Callable

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from storefront.dependencies import get_activation_hook, get_payment_config
from storefront.models import get_service_db
from storefront.services.checkout import PaymentConfig
from storefront.services.errors import PaymentError
from storefront.services.order_store import OrderStore
from storefront.services.reconciler import WebhookReconciler

router = APIRouter()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-nowpayments-sig"


@router.post(
    "/nowpayments",
    summary="NOWPayments IPN callback",
    response_class=PlainTextResponse,
)
async def nowpayments_ipn(
    request: Request,
    db: Annotated[Session, Depends(get_service_db)],
    config: Annotated[PaymentConfig, Depends(get_payment_config)],
    on_settled: Annotated[Callable[[str], None], Depends(get_activation_hook)],
):
    """
    NOWPayments calls this on every payment status change, possibly more
    than once per status. The body is signed with HMAC-SHA512 over its
    key-sorted JSON. Every order sharing the invoice id is updated;
    once paid, further callbacks are acknowledged without changes.
    """
    raw_body = await request.body()
    reconciler = WebhookReconciler(config=config, store=OrderStore(db), on_settled=on_settled)
    try:
        reconciler.handle(raw_body, request.headers.get(SIGNATURE_HEADER))
    except PaymentError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    except Exception:
        logger.exception("Webhook error")
        return PlainTextResponse("Internal error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)
