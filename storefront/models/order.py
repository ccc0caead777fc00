from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from storefront.models.database import Base

INSTRUCTIONS_MAX_LENGTH = 1000
EMAIL_MAX_LENGTH = 255
SERVICE_ID_MAX_LENGTH = 64
BTC_ADDRESS_MAX_LENGTH = 128
BTC_AMOUNT_DIGITS = 18
BTC_AMOUNT_DECIMALS = 8


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    service_id = Column(String(SERVICE_ID_MAX_LENGTH), nullable=False)
    btc_address = Column(String(BTC_ADDRESS_MAX_LENGTH), nullable=True)
    btc_amount = Column(Numeric(BTC_AMOUNT_DIGITS, BTC_AMOUNT_DECIMALS), nullable=True)
    status = Column(String(32), nullable=False, default="pending")  # pending | confirming | paid | failed | refunded | expired
    payment_status = Column(String(32), nullable=False, default="pending")
    payment_id = Column(String(128), nullable=True, index=True)  # provider invoice id, shared per checkout
    customer_email = Column(String(EMAIL_MAX_LENGTH), nullable=False)
    instructions = Column(String(INSTRUCTIONS_MAX_LENGTH), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)
