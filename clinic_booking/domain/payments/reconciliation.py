"""
Payment reconciliation

One state machine for every online channel: PENDING -> PROCESSING once a
checkout is issued, then PAID or FAILED from a gateway callback or a status
poll. The channel specifics live behind the GatewayClient passed in.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...config import Settings, get_settings
from ...errors import NotFoundError, PaymentStateConflictError
from ...models import Appointment, AppointmentStatus, Payment, PaymentStatus
from ...tasks import TaskScheduler, notify_confirmation
from ..appointments.repository import AppointmentRepository
from ..appointments.service import AppointmentService
from .gateways.base import GatewayClient, GatewayOutcome, OutcomeStatus, to_minor_unit
from .repository import PaymentRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    appointment_id: str
    appointment_status: AppointmentStatus
    payment_status: PaymentStatus
    transaction_code: Optional[str] = None

    @classmethod
    def of(cls, appointment: Appointment, payment: Payment) -> "ReconciliationResult":
        return cls(
            appointment_id=appointment.id,
            appointment_status=appointment.status,
            payment_status=payment.status,
            transaction_code=payment.transaction_code,
        )


class PaymentReconciliationService:
    """Drives a Payment through its lifecycle for one gateway"""

    def __init__(
        self,
        db: Session,
        gateway: GatewayClient,
        scheduler: TaskScheduler,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.scheduler = scheduler
        self.settings = settings or get_settings()
        self.appointments = AppointmentRepository()
        self.payments = PaymentRepository()
        self.lifecycle = AppointmentService(db, scheduler, self.settings)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent payment update detected: {e}")
            raise PaymentStateConflictError("Payment was updated concurrently, please retry") from e

    def _load_for_patient(self, patient_id: str, appointment_id: str) -> Appointment:
        appointment = self.appointments.get_for_patient(self.db, appointment_id, patient_id)
        if not appointment or not appointment.payment:
            raise NotFoundError("Appointment not found")
        if appointment.payment_method != self.gateway.method:
            raise PaymentStateConflictError(
                f"Appointment is not set for {self.gateway.method.value} payment"
            )
        return appointment

    async def initiate(self, patient_id: str, appointment_id: str) -> str:
        """Issue a checkout for a pending appointment and return the URL to send the payer to"""
        appointment = self._load_for_patient(patient_id, appointment_id)
        payment = appointment.payment

        if appointment.status != AppointmentStatus.PENDING:
            raise PaymentStateConflictError(f"Appointment is {appointment.status.value}")
        if payment.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            raise PaymentStateConflictError("Payment already processed")
        if payment.currency != self.gateway.currency:
            raise PaymentStateConflictError(
                f"{self.gateway.method.value} only accepts {self.gateway.currency.value}"
            )

        reference = str(uuid.uuid4())
        doctor_name = appointment.doctor.display_name if appointment.doctor else "Doctor"
        description = f"Appointment with {doctor_name} on {appointment.date} at {appointment.time:%H:%M}"
        session = await self.gateway.create_checkout(payment.amount, payment.currency, reference, description)

        payment.transaction_id = reference
        payment.session_id = session.session_id
        payment.checkout_url = session.url
        payment.status = PaymentStatus.PROCESSING
        appointment.payment_status = PaymentStatus.PROCESSING
        self._commit()

        logger.info(f"✅ {self.gateway.method.value} checkout issued for appointment {appointment_id}")
        return session.url

    async def verify(self, payload) -> Optional[ReconciliationResult]:
        """Apply a gateway callback; None when the callback carries no outcome"""
        outcome = self.gateway.verify_callback(payload)
        if outcome is None:
            return None
        return await self._apply(outcome)

    async def poll(self, patient_id: str, appointment_id: str) -> ReconciliationResult:
        """Ask the gateway about the stored reference and apply a final answer"""
        appointment = self._load_for_patient(patient_id, appointment_id)
        payment = appointment.payment

        # Nothing to ask about: never initiated, or already settled
        if not payment.transaction_id or payment.status not in (
            PaymentStatus.PENDING,
            PaymentStatus.PROCESSING,
        ):
            return ReconciliationResult.of(appointment, payment)

        outcome = await self.gateway.poll_status(
            payment.transaction_id, payment.amount, session_id=payment.session_id
        )
        if outcome.status == OutcomeStatus.PENDING:
            logger.info(f"🔍 Payment for {appointment_id} still pending at the gateway")
            return ReconciliationResult.of(appointment, payment)

        if outcome.reference != payment.transaction_id:
            logger.warning(
                f"⚠️ Gateway answered for {outcome.reference}, expected {payment.transaction_id}"
            )
            raise PaymentStateConflictError("Gateway returned a different transaction")
        return await self._apply(outcome)

    def _matches(self, payment: Payment, outcome: GatewayOutcome) -> bool:
        if outcome.amount is None or outcome.currency != payment.currency:
            return False
        return to_minor_unit(outcome.amount) == to_minor_unit(payment.amount)

    async def _apply(self, outcome: GatewayOutcome) -> ReconciliationResult:
        if not outcome.reference:
            logger.warning(f"⚠️ {self.gateway.method.value} outcome without a transaction reference")
            raise NotFoundError("Payment not found for this transaction")

        payment = self.payments.get_by_reference_for_update(self.db, outcome.reference, self.gateway.method)
        if not payment:
            raise NotFoundError("Payment not found for this transaction")

        if payment.status == PaymentStatus.PAID:
            self.db.rollback()
            raise PaymentStateConflictError("Payment already verified")
        if payment.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            self.db.rollback()
            raise PaymentStateConflictError(f"Payment is already {payment.status.value}")

        appointment = self.appointments.get_for_update(self.db, payment.appointment_id)
        if appointment.status != AppointmentStatus.PENDING:
            self.db.rollback()
            raise PaymentStateConflictError(f"Appointment is {appointment.status.value}")

        if outcome.status == OutcomeStatus.PENDING:
            result = ReconciliationResult.of(appointment, payment)
            self.db.rollback()
            return result

        if outcome.status != OutcomeStatus.SUCCESS or not self._matches(payment, outcome):
            payment.status = PaymentStatus.FAILED
            appointment.payment_status = PaymentStatus.FAILED
            self._commit()
            if outcome.status == OutcomeStatus.SUCCESS:
                logger.error(
                    f"❌ Amount mismatch for {appointment.id}: expected {payment.amount} "
                    f"{payment.currency.value}, got {outcome.amount} "
                    f"{outcome.currency.value if outcome.currency else '?'}"
                )
                raise PaymentStateConflictError("Paid amount does not match the appointment price")
            logger.warning(f"⚠️ Gateway reported {outcome.status.value} for appointment {appointment.id}")
            raise PaymentStateConflictError("Payment was not completed")

        payment.status = PaymentStatus.PAID
        payment.transaction_code = outcome.transaction_code
        payment.checkout_url = None
        self.lifecycle.mark_paid(appointment)
        self._commit()
        logger.info(f"✅ Payment verified for appointment {appointment.id} ({payment.transaction_code})")

        await notify_confirmation(self.scheduler, appointment.id)
        return ReconciliationResult.of(appointment, payment)
