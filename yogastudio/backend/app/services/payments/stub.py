from __future__ import annotations

import hashlib
import hmac
import time
import uuid
from datetime import datetime

from .gateway import GatewaySession
from .stripe_gateway import StripeGateway


class StubGateway(StripeGateway):
    """Local development gateway.

    Sessions are never sent anywhere; the returned URL points back at the
    frontend. Webhooks use the Stripe signature scheme, so payloads signed
    with :func:`sign_payload` go through the same verification as production.
    """

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
        session_id = f"cs_stub_{uuid.uuid4().hex}"
        return GatewaySession(
            session_id=session_id,
            url=success_url.replace("{CHECKOUT_SESSION_ID}", session_id),
            expires_at=expires_at,
        )


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"
