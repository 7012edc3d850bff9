"""Gateway client contract shared by every online payment channel"""

import enum
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Protocol

from ....models import Currency, PaymentMethod


class OutcomeStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"  # gateway has not settled yet


@dataclass(frozen=True)
class CheckoutSession:
    url: str
    session_id: Optional[str] = None


@dataclass(frozen=True)
class GatewayOutcome:
    """What a gateway reports about one transaction reference"""

    reference: str
    status: OutcomeStatus
    amount: Optional[Decimal] = None
    currency: Optional[Currency] = None
    transaction_code: Optional[str] = None


def to_minor_unit(amount: Decimal) -> Decimal:
    """Quantize to cents / paisa"""
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class GatewayClient(Protocol):
    method: PaymentMethod
    currency: Currency

    async def create_checkout(
        self, amount: Decimal, currency: Currency, reference: str, description: str
    ) -> CheckoutSession:
        ...

    def verify_callback(self, payload: Any) -> Optional[GatewayOutcome]:
        """Decode and authenticate a callback; None for events that carry no outcome"""
        ...

    async def poll_status(
        self, reference: str, amount: Decimal, session_id: Optional[str] = None
    ) -> GatewayOutcome:
        ...
