"""
ARQ Background Worker for Async Jobs
Handles appointment expiry and confirmation documents/emails
"""

import logging
import os

from sqlalchemy.orm import joinedload

from .database import SessionLocal
from .domain.appointments.expiry import ExpiryScheduler
from .email_service import send_appointment_confirmation
from .models import Appointment
from .services.confirmation_pdf import generate_confirmation_pdf, save_confirmation_pdf
from .tasks import ArqTaskScheduler, get_redis_settings

logger = logging.getLogger(__name__)


async def expire_appointment_task(ctx, appointment_id: str):
    """
    Cancel an appointment that is still unpaid when its timeout fires

    Args:
        ctx: ARQ context
        appointment_id: Appointment ID

    Returns:
        dict with whether the appointment was cancelled
    """
    logger.info(f"⌛ ARQ Worker: expiry check for appointment {appointment_id} (job {ctx.get('job_id', 'unknown')})")

    db = SessionLocal()
    try:
        expired = ExpiryScheduler(db, ArqTaskScheduler(ctx.get("redis"))).run_expiry(appointment_id)
        return {"appointment_id": appointment_id, "expired": expired}
    except Exception as e:
        logger.error(f"❌ Expiry failed for appointment {appointment_id}: {e}")
        db.rollback()
        raise
    finally:
        db.close()


async def send_appointment_confirmation_task(ctx, appointment_id: str):
    """
    Render the confirmation PDF, store its URL on the appointment and email it

    Args:
        ctx: ARQ context
        appointment_id: Appointment ID

    Returns:
        dict with the stored file URL
    """
    logger.info(f"🚀 ARQ Worker: confirmation for appointment {appointment_id}")

    db = SessionLocal()
    try:
        appointment = (
            db.query(Appointment)
            .options(
                joinedload(Appointment.patient),
                joinedload(Appointment.doctor),
                joinedload(Appointment.payment),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )
        if not appointment:
            logger.error(f"❌ Appointment not found: {appointment_id}")
            return {"appointment_id": appointment_id, "file_url": None}

        pdf_bytes = generate_confirmation_pdf(appointment)
        if not appointment.file_url:
            appointment.file_url = save_confirmation_pdf(appointment, pdf_bytes)
            db.commit()

        await send_appointment_confirmation(appointment, pdf_bytes)
        logger.info(f"✅ Confirmation sent for appointment {appointment_id}")
        return {"appointment_id": appointment_id, "file_url": appointment.file_url}
    except Exception as e:
        logger.error(f"❌ Confirmation failed for appointment {appointment_id}: {e}")
        db.rollback()
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [expire_appointment_task, send_appointment_confirmation_task]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "120"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60

    # Expiry is idempotent, so retries are safe
    max_tries = 3

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
