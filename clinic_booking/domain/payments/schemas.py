"""Payment domain schemas"""

import enum
from typing import Optional

from pydantic import BaseModel

from ...models import AppointmentStatus, PaymentMethod, PaymentStatus


class PaymentChannel(str, enum.Enum):
    """Online channels addressable in URLs"""

    ESEWA = "esewa"
    STRIPE = "stripe"

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod(self.name)


class CheckoutResponse(BaseModel):
    appointment_id: str
    checkout_url: str


class EsewaCallback(BaseModel):
    data: str


class ReconciliationResponse(BaseModel):
    appointment_id: str
    appointment_status: AppointmentStatus
    payment_status: PaymentStatus
    transaction_code: Optional[str] = None
