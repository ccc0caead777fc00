from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models import Order
from storefront.services.status_mapping import OrderStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderLine:
    service_id: str
    btc_amount: Decimal | None = None
    btc_address: str | None = None


class OrderStore:
    """Order persistence for the checkout and IPN handlers.

    The store owns transaction boundaries: every mutating call commits on
    success and rolls back before re-raising on failure.
    """

    def __init__(self, db: Session):
        self.db = db

    def _db_datetime(self, value: datetime) -> datetime:
        bind = self.db.get_bind()
        if bind and bind.dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def insert_pending(
        self,
        payment_id: str,
        user_id: str,
        customer_email: str,
        instructions: str | None,
        lines: list[OrderLine],
    ) -> list[Order]:
        orders = [
            Order(
                user_id=user_id,
                service_id=line.service_id,
                btc_address=line.btc_address,
                btc_amount=line.btc_amount,
                status=OrderStatus.PENDING.value,
                payment_status=OrderStatus.PENDING.value,
                payment_id=payment_id,
                customer_email=customer_email,
                instructions=instructions,
            )
            for line in lines
        ]
        try:
            self.db.add_all(orders)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return orders

    def find_payment_status(self, payment_id: str) -> str | None:
        """Settlement view shared by all orders of one invoice; None when nothing matches."""
        paid = (
            self.db.query(Order.id)
            .filter(Order.payment_id == payment_id, Order.payment_status == OrderStatus.PAID.value)
            .first()
        )
        if paid:
            return OrderStatus.PAID.value
        row = (
            self.db.query(Order.payment_status)
            .filter(Order.payment_id == payment_id)
            .order_by(Order.id)
            .first()
        )
        return row[0] if row else None

    def apply_payment_status(self, payment_id: str, new_status: OrderStatus, now: datetime | None = None) -> int:
        """Move every not-yet-paid order of the invoice to ``new_status``.

        The ``payment_status != 'paid'`` filter makes the write itself the
        idempotency guard, so two concurrent deliveries cannot both settle.
        Returns the number of rows changed.
        """
        db_now = self._db_datetime(now or utcnow())
        values = {
            Order.payment_status: new_status.value,
            Order.status: new_status.value,
            Order.updated_at: db_now,
        }
        if new_status is OrderStatus.PAID:
            values[Order.payment_confirmed_at] = db_now

        try:
            updated = (
                self.db.query(Order)
                .filter(
                    Order.payment_id == payment_id,
                    Order.payment_status != OrderStatus.PAID.value,
                )
                .update(values, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return updated

    def list_for_user(self, user_id: str) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def list_for_user_payment(self, user_id: str, payment_id: str) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.user_id == user_id, Order.payment_id == payment_id)
            .order_by(Order.id)
            .all()
        )
