from .base import CheckoutSession, GatewayClient, GatewayOutcome, OutcomeStatus
from .esewa import EsewaGateway
from .stripe_gateway import StripeGateway

__all__ = [
    "CheckoutSession",
    "EsewaGateway",
    "GatewayClient",
    "GatewayOutcome",
    "OutcomeStatus",
    "StripeGateway",
]
