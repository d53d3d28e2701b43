from .gateway import (
    BasePaymentGateway,
    GatewayError,
    GatewaySession,
    WebhookPayloadError,
    WebhookSignatureError,
    get_gateway,
)
from .stripe_gateway import StripeGateway
from .stub import StubGateway, sign_payload

__all__ = [
    "BasePaymentGateway",
    "GatewayError",
    "GatewaySession",
    "WebhookPayloadError",
    "WebhookSignatureError",
    "get_gateway",
    "StripeGateway",
    "StubGateway",
    "sign_payload",
]
