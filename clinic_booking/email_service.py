"""
Email Service using Resend
"""

import base64
import logging
from typing import Optional, Union

import resend

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .models import Appointment

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    from_address: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        html_content: Rendered HTML body
        from_address: Optional custom from address
        attachments: Optional list of {"filename", "content"} dicts, content as bytes

    Returns:
        Send response dict
    """
    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise RuntimeError("Email service not configured")

    email_data = {
        "from": sender,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if attachments:
        email_data["attachments"] = [
            {
                "filename": attachment["filename"],
                "content": base64.b64encode(attachment["content"]).decode("utf-8"),
            }
            for attachment in attachments
        ]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise RuntimeError(f"Failed to send email: {str(e)}") from e


def appointment_confirmation_html(appointment: Appointment) -> str:
    patient = appointment.patient
    doctor = appointment.doctor
    name = (patient.name or "there") if patient else "there"
    doctor_name = doctor.display_name if doctor else "your doctor"
    return f"""
    <div style="font-family: Helvetica, Arial, sans-serif; color: #1F2937; max-width: 560px;">
      <h2 style="color: #0E7490;">Your appointment is confirmed</h2>
      <p>Hi {name},</p>
      <p>Your appointment with <strong>{doctor_name}</strong> is booked for
         <strong>{appointment.date:%A, %B %d, %Y}</strong> at
         <strong>{appointment.time:%H:%M}</strong>.</p>
      <p>Fee: {appointment.currency.value} {appointment.price}
         ({appointment.payment_method.value}, {appointment.payment_status.value.lower()})</p>
      <p>Your confirmation slip is attached. Please arrive 10 minutes early.</p>
    </div>
    """


async def send_appointment_confirmation(appointment: Appointment, pdf_bytes: bytes) -> dict:
    """Email the booking confirmation with the PDF attached"""
    return await send_email(
        to=appointment.patient.email,
        subject="Appointment Confirmation",
        html_content=appointment_confirmation_html(appointment),
        attachments=[{"filename": f"appointment-{appointment.id}.pdf", "content": pdf_bytes}],
    )
