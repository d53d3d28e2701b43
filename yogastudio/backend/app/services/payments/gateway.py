from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from ...config import Settings


class GatewayError(Exception):
    """The payment provider could not fulfil a request."""


class WebhookSignatureError(Exception):
    pass


class WebhookPayloadError(Exception):
    pass


@dataclass(frozen=True)
class GatewaySession:
    session_id: str
    url: str | None
    expires_at: datetime


class BasePaymentGateway(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
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
        raise NotImplementedError

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Check ``signature`` against the exact ``payload`` bytes and return the event."""
        raise NotImplementedError


def get_gateway(settings: Settings) -> BasePaymentGateway:
    if settings.payment_provider == "stub":
        from .stub import StubGateway

        return StubGateway(settings)
    if settings.payment_provider == "stripe":
        from .stripe_gateway import StripeGateway

        return StripeGateway(settings)
    raise ValueError(f"Unsupported payment provider {settings.payment_provider}")
