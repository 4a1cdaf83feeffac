from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String

from shared.config.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    SETTLED = "SETTLED"
    ERROR = "ERROR"


class AuthOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INCORRECT_DETAILS = "INCORRECT_DETAILS"
    SERVER_ERROR = "SERVER_ERROR"


class SettlementOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    EXCEEDS_AUTH = "EXCEEDS_AUTH"


class Order(Base):
    __tablename__ = "orders"

    order_id = Column(String, primary_key=True)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value)
    customer_name = Column(String, nullable=True)
    card_last4 = Column(String(4), nullable=True)
    amount = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Authorization(Base):
    __tablename__ = "authorizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # One current authorization per order, kept that way by replace_authorization()
    order_id = Column(String, ForeignKey("orders.order_id"), nullable=False, unique=True, index=True)
    provider_token = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    outcome = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.order_id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    outcome = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
