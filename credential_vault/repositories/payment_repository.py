"""
Repository for credit purchases and balances.
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_base import utc_now
from ..db.db_payment_models import CreditPurchase, UserCreditBalance
from ..utils.crud_helpers import record_exists
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[CreditPurchase]):
    """Writes purchases and the matching balance increment together."""

    def __init__(self, session: Session):
        super().__init__(session, CreditPurchase)

    def purchase_exists(self, payment_id: str) -> bool:
        try:
            return record_exists(self.session, CreditPurchase, {"payment_id": payment_id})
        except SQLAlchemyError as e:
            self._handle_db_error(e, "purchase_exists", payment_id=payment_id)

    def get_balance(self, user_id: str) -> Optional[int]:
        try:
            balance = self.session.get(UserCreditBalance, user_id, populate_existing=True)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_balance", user_id=user_id)
        return balance.credits if balance else None

    def record_purchase(self, purchase: Dict[str, Any]) -> CreditPurchase:
        """
        Insert a purchase and add its credits to the user's balance.

        Both writes commit together. A purchase whose payment_id is already
        stored fails with a DUPLICATE RepositoryError and changes nothing.
        """
        user_id = purchase["user_id"]
        credits = purchase["credits"]

        with self._write_operation(
            "record_purchase", payment_id=purchase["payment_id"], user_id=user_id
        ):
            record = CreditPurchase(**purchase)
            self.session.add(record)
            # Surface a duplicate payment_id before touching the balance
            self.session.flush()

            updated = (
                self.session.query(UserCreditBalance)
                .filter(UserCreditBalance.user_id == user_id)
                .update(
                    {
                        UserCreditBalance.credits: UserCreditBalance.credits + credits,
                        UserCreditBalance.updated_at: utc_now(),
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                self.session.add(UserCreditBalance(user_id=user_id, credits=credits))

        return record
