"""
Appointment Confirmation PDF Generator
Renders the confirmation slip attached to booking emails
"""

import io
import logging
import os
from datetime import datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..config import BACKEND_URL, UPLOADS_DIR
from ..models import Appointment

logger = logging.getLogger(__name__)

BRAND_COLOR = colors.HexColor("#0E7490")
DARK_GRAY = colors.HexColor("#1F2937")


def generate_confirmation_pdf(appointment: Appointment) -> bytes:
    """Build the confirmation PDF for a booked appointment"""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"Appointment Confirmation - {appointment.id}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ConfirmationTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=BRAND_COLOR,
        spaceAfter=12,
        alignment=1,  # Center
    )
    body_style = ParagraphStyle(
        "ConfirmationBody",
        parent=styles["Normal"],
        fontSize=10,
        textColor=DARK_GRAY,
        spaceAfter=6,
    )

    patient = appointment.patient
    doctor = appointment.doctor
    payment = appointment.payment

    story = [
        Paragraph("APPOINTMENT CONFIRMATION", title_style),
        Paragraph(f"Reference: {appointment.id}", body_style),
        Spacer(1, 0.3 * inch),
    ]

    details = [
        ["Patient:", (patient.name or patient.email) if patient else "N/A"],
        ["Doctor:", doctor.display_name if doctor else "N/A"],
        ["Specialization:", (doctor.specialization or "General") if doctor else "N/A"],
        ["Date:", appointment.date.strftime("%A, %B %d, %Y")],
        ["Time:", appointment.time.strftime("%H:%M")],
        ["Age / Gender:", f"{appointment.age} / {appointment.gender.value.title()}"],
        ["Phone:", appointment.phone_number],
        ["Fee:", f"{appointment.currency.value} {appointment.price}"],
        ["Payment:", f"{appointment.payment_method.value} ({appointment.payment_status.value})"],
    ]
    if payment and payment.transaction_code:
        details.append(["Transaction:", payment.transaction_code])

    table = Table(details, colWidths=[1.6 * inch, 4.4 * inch])
    table.setStyle(
        TableStyle(
            [
                ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                ("TEXTCOLOR", (0, 0), (-1, -1), DARK_GRAY),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
                ("LINEBELOW", (0, -1), (-1, -1), 0.5, BRAND_COLOR),
            ]
        )
    )
    story.append(table)
    story.append(Spacer(1, 0.4 * inch))
    story.append(
        Paragraph("Please arrive 10 minutes before your appointment time.", body_style)
    )
    story.append(
        Paragraph(f"Generated {datetime.utcnow().strftime('%B %d, %Y %H:%M')} UTC", body_style)
    )

    doc.build(story)
    return buffer.getvalue()


def save_confirmation_pdf(appointment: Appointment, pdf_bytes: bytes) -> str:
    """Write the PDF under the uploads directory and return its public URL"""
    directory = os.path.join(UPLOADS_DIR, "confirmations")
    os.makedirs(directory, exist_ok=True)

    filename = f"appointment-{appointment.id}.pdf"
    with open(os.path.join(directory, filename), "wb") as f:
        f.write(pdf_bytes)

    logger.info(f"📄 Confirmation PDF saved: {filename} ({len(pdf_bytes)} bytes)")
    return f"{BACKEND_URL}/uploads/confirmations/{filename}"
