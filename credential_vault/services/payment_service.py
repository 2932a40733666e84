"""
Payment gateway callbacks.

Two routes credit a purchase: the gateway's webhook (HMAC-SHA256 of the raw
body with the webhook secret) and the checkout verification call (HMAC-SHA256
of ``order_id|payment_id`` with the key secret). Either way a payment id is
credited at most once, so a checkout followed by the webhook for the same
payment adds credits a single time.
"""

from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import PaymentEvent
from ..enums import PurchaseStatus
from ..exceptions import (
    ErrorCode,
    RepositoryError,
    ServiceError,
    ValidationError,
    WebhookSignatureError,
    missing_field,
)
from ..repositories.payment_repository import PaymentRepository
from ..schemas.payment_schemas import CapturedPayment, PaymentNotes, WebhookResult
from ..utils.json_utils import loads
from ..utils.logger import get_logger
from ..utils.signature_utils import checkout_payload, signature_prefix, signatures_match


def _require_secret(secret: Optional[str], name: str, operation: str) -> str:
    if not secret:
        raise ServiceError(
            f"Payment {name} is not configured",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation=operation,
        )
    return secret


class PaymentWebhookService:
    def __init__(
        self,
        session: Session,
        webhook_secret: Optional[str] = None,
        payment_repository: Optional[PaymentRepository] = None,
        key_secret: Optional[str] = None,
    ):
        payment_config = get_config().payment
        self.session = session
        self.webhook_secret = webhook_secret or payment_config.webhook_secret
        self.key_secret = key_secret or payment_config.key_secret
        self.payment_repository = payment_repository or PaymentRepository(session)
        self.logger = get_logger()

    def verify_signature(
        self, raw_body: Union[bytes, str], signature: Optional[str], secret: Optional[str] = None
    ) -> None:
        """
        Raises:
            ServiceError: CONFIGURATION_ERROR when no webhook secret is configured
            WebhookSignatureError: When the signature does not match the body
        """
        secret = _require_secret(secret or self.webhook_secret, "webhook secret", "verify_signature")
        if not signatures_match(raw_body, signature, secret):
            raise WebhookSignatureError(signature_prefix=signature_prefix(signature))

    def handle_webhook(self, raw_body: Union[bytes, str], signature: Optional[str]) -> WebhookResult:
        """
        Process one webhook delivery.

        Unhandled event types are acknowledged without side effects. A
        payment id seen before is acknowledged as already processed.

        Raises:
            WebhookSignatureError: Signature mismatch; nothing is parsed
            ValidationError: Unparseable payload or missing order notes
        """
        self.verify_signature(raw_body, signature)

        try:
            event = loads(raw_body)
        except ValueError as e:
            raise ValidationError(
                "Webhook payload is not valid JSON", error_code=ErrorCode.INVALID_FORMAT, cause=e
            ) from e

        event_name = event.get("event", "") if isinstance(event, dict) else ""
        if event_name != PaymentEvent.PAYMENT_CAPTURED.value:
            self.logger.info("Ignoring payment webhook event", extra={"event": event_name})
            return WebhookResult(event=event_name)

        try:
            payment = CapturedPayment.model_validate(event["payload"]["payment"]["entity"])
        except (KeyError, TypeError, PydanticValidationError) as e:
            raise ValidationError(
                "Missing payment metadata in webhook",
                field="payload.payment.entity",
                error_code=ErrorCode.MISSING_REQUIRED,
                error_type=type(e).__name__,
            ) from None

        return self._credit(event_name, payment)

    def verify_checkout(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        notes: Union[PaymentNotes, Dict[str, Any]],
        amount: int,
        currency: str = "INR",
    ) -> WebhookResult:
        """
        Verify a checkout callback and credit the purchase.

        ``notes`` are the order notes set when the order was created and
        ``amount`` is in minor units. Replaying a verified payment, or
        verifying one the webhook already credited, returns
        ``already_processed``.

        Raises:
            ValidationError: A missing id or signature, or incomplete notes
            ServiceError: CONFIGURATION_ERROR when no key secret is configured
            WebhookSignatureError: The signature does not match the pair
        """
        for field, value in (
            ("order_id", order_id),
            ("payment_id", payment_id),
            ("signature", signature),
        ):
            if not value:
                raise missing_field(field)

        secret = _require_secret(self.key_secret, "key secret", "verify_checkout")
        if not signatures_match(checkout_payload(order_id, payment_id), signature, secret):
            raise WebhookSignatureError(
                "Payment verification failed",
                signature_prefix=signature_prefix(signature),
                order_id=order_id,
            )

        try:
            payment = CapturedPayment(
                id=payment_id,
                order_id=order_id,
                amount=amount,
                currency=currency,
                notes=notes if isinstance(notes, PaymentNotes) else PaymentNotes.model_validate(notes),
            )
        except PydanticValidationError as e:
            raise ValidationError(
                "Missing payment metadata in order notes",
                field="notes",
                error_code=ErrorCode.MISSING_REQUIRED,
                error_type=type(e).__name__,
            ) from None

        return self._credit(PaymentEvent.CHECKOUT_VERIFIED.value, payment)

    def _credit(self, event_name: str, payment: CapturedPayment) -> WebhookResult:
        notes = payment.notes
        if self.payment_repository.purchase_exists(payment.id):
            return self._already_processed(event_name, payment)

        try:
            self.payment_repository.record_purchase(
                {
                    "user_id": notes.user_id,
                    "package_id": notes.package_id,
                    "amount": payment.major_amount,
                    "currency": payment.currency,
                    "payment_id": payment.id,
                    "order_id": payment.order_id,
                    "credits": notes.credits,
                    "status": PurchaseStatus.COMPLETED.value,
                }
            )
        except RepositoryError as e:
            # A concurrent delivery of the same payment won the insert
            if e.error_code == ErrorCode.DUPLICATE:
                return self._already_processed(event_name, payment)
            raise

        new_balance = self.payment_repository.get_balance(notes.user_id)
        self.logger.info(
            "Credits added from payment",
            extra={
                "event": event_name,
                "user_id": notes.user_id,
                "payment_id": payment.id,
                "credits_added": notes.credits,
                "new_balance": new_balance,
            },
        )
        return WebhookResult(
            event=event_name,
            processed=True,
            payment_id=payment.id,
            user_id=notes.user_id,
            credits_added=notes.credits,
            new_balance=new_balance,
        )

    def _already_processed(self, event_name: str, payment: CapturedPayment) -> WebhookResult:
        self.logger.info("Payment already processed", extra={"payment_id": payment.id})
        return WebhookResult(
            event=event_name,
            already_processed=True,
            payment_id=payment.id,
            user_id=payment.notes.user_id,
        )
