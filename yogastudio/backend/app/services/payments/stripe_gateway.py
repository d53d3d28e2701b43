import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import stripe

from .gateway import (
    BasePaymentGateway,
    GatewayError,
    GatewaySession,
    WebhookPayloadError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)

# Stripe rejects expiries closer than 30 minutes to its own clock
_MIN_EXPIRY = timedelta(minutes=30, seconds=30)


class StripeGateway(BasePaymentGateway):
    def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        expires_at: datetime,
    ) -> GatewaySession:
        expires_at = max(expires_at, datetime.now(timezone.utc) + _MIN_EXPIRY)
        try:
            session = stripe.checkout.Session.create(
                api_key=self.settings.stripe_secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency.lower(),
                            "product_data": {"name": description},
                            "unit_amount": amount_minor,
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                expires_at=int(expires_at.timestamp()),
            )
        except stripe.StripeError as exc:
            logger.exception(
                "Failed to create Stripe checkout session",
                extra={"metadata": metadata, "error_type": type(exc).__name__},
            )
            raise GatewayError(str(exc)) from exc
        logger.info("Created Stripe checkout session", extra={"session_id": session.id})
        return GatewaySession(session_id=session.id, url=session.url, expires_at=expires_at)

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.settings.stripe_webhook_secret,
                tolerance=self.settings.webhook_tolerance_sec,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise WebhookSignatureError(str(exc)) from exc
        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise WebhookPayloadError("Webhook body is not valid JSON") from exc
        if not isinstance(event, dict):
            raise WebhookPayloadError("Webhook body is not an event object")
        return event
