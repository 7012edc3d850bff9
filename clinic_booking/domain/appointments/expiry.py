"""Deferred expiry of unpaid pending appointments"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import Settings, get_settings
from ...models import AppointmentStatus, PaymentStatus
from ...tasks import EXPIRE_APPOINTMENT_TASK, TaskScheduler
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)


class ExpiryScheduler:
    """Schedules and runs the one-shot timeout that cancels unpaid bookings"""

    def __init__(self, db: Session, scheduler: TaskScheduler, settings: Optional[Settings] = None):
        self.db = db
        self.scheduler = scheduler
        self.settings = settings or get_settings()
        self.repo = AppointmentRepository()

    async def schedule_expiry(self, appointment_id: str, delay: Optional[timedelta] = None) -> Optional[str]:
        delay = delay or timedelta(minutes=self.settings.appointment_expiry_minutes)
        job_id = await self.scheduler.schedule(EXPIRE_APPOINTMENT_TASK, appointment_id, delay=delay)
        logger.info(f"⏳ Expiry scheduled for appointment {appointment_id} in {delay}")
        return job_id

    def run_expiry(self, appointment_id: str) -> bool:
        """
        Cancel the appointment if it is still PENDING.

        Safe to run any number of times: once the appointment has left PENDING
        (paid, cancelled, completed) this is a no-op. Returns True when it
        cancelled something.
        """
        appointment = self.repo.get_for_update(self.db, appointment_id)
        if not appointment:
            logger.info(f"🔍 Expiry: appointment {appointment_id} no longer exists")
            return False

        if appointment.status != AppointmentStatus.PENDING:
            logger.info(
                f"✅ Expiry: appointment {appointment_id} is {appointment.status.value}, nothing to do"
            )
            self.db.rollback()
            return False

        appointment.status = AppointmentStatus.CANCELLED
        appointment.payment_status = PaymentStatus.FAILED

        payment = self.repo.get_payment_for_update(self.db, appointment_id)
        if payment:
            payment.status = PaymentStatus.FAILED
            payment.checkout_url = None
            payment.session_id = None
            payment.transaction_id = None

        self.db.commit()
        logger.info(f"⌛ Appointment {appointment_id} expired unpaid and was cancelled")
        return True
