"""
Credit purchase models written by the payment webhook.
"""

from sqlalchemy import Column, Integer, Numeric, String

from ..enums import PurchaseStatus
from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class CreditPurchase(Base, UUIDMixin, TimestampMixin):
    """One captured payment. payment_id is the idempotency key."""

    __tablename__ = "credit_purchases"

    user_id = Column(String(36), nullable=False, index=True)
    package_id = Column(String(36), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_id = Column(String(100), nullable=False, unique=True)
    order_id = Column(String(100), nullable=True)
    credits = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=PurchaseStatus.COMPLETED.value)


class UserCreditBalance(Base, TimestampMixin):
    """Spendable credit balance per user."""

    __tablename__ = "user_credit_balances"

    user_id = Column(String(36), primary_key=True)
    credits = Column(Integer, nullable=False, default=0)
