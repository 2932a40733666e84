"""
Pydantic schemas for payment gateway webhooks.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentNotes(BaseModel):
    """Metadata attached to the order when it was created."""

    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(..., min_length=1)
    package_id: str = Field(..., min_length=1)
    credits: int = Field(..., gt=0)


class CapturedPayment(BaseModel):
    """The payment entity of a payment.captured event."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    order_id: Optional[str] = None
    amount: int = Field(..., ge=0, description="Amount in minor units (paise, cents)")
    currency: str = Field(..., min_length=3, max_length=3)
    notes: PaymentNotes

    @property
    def major_amount(self) -> Decimal:
        return Decimal(self.amount) / Decimal(100)


class WebhookResult(BaseModel):
    """Outcome of one webhook delivery or checkout verification."""

    event: str
    processed: bool = False
    already_processed: bool = False
    payment_id: Optional[str] = None
    user_id: Optional[str] = None
    credits_added: int = 0
    new_balance: Optional[int] = None
