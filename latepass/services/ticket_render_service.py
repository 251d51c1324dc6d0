from __future__ import annotations

import io
from datetime import datetime, timezone

import qrcode
from qrcode.constants import ERROR_CORRECT_H
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from latepass.core.clock import as_utc


def render_qr_png(data: str, box_size: int = 10, border: int = 2) -> bytes:
    """PNG bytes of a QR code for ``data``. High error correction so a crumpled print still scans."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _fmt(dt: datetime | None) -> str:
    return as_utc(dt).strftime("%Y-%m-%d %H:%M UTC") if dt else "-"


def render_ticket_pdf_bytes(ticket, timetable=None) -> bytes:
    """Return an A4 PDF for a finalized ticket. Pure function of its inputs."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4

    # Header
    c.setFont("Helvetica-Bold", 18)
    c.drawString(40, h - 60, "Late Pass Ticket")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 80, f"Ticket No: {ticket.ticket_number}")
    c.drawString(40, h - 96, f"Status: {ticket.status}")

    # Student block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 130, "Student")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 148, ticket.student_id)

    # Session block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 185, "Session")
    c.setFont("Helvetica", 11)
    if timetable is not None:
        c.drawString(40, h - 203, timetable.title or "(untitled session)")
        c.drawString(40, h - 219, f"Starts: {_fmt(timetable.start_at)}")
    else:
        c.drawString(40, h - 203, ticket.timetable_id)

    # Validity
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 257, "Validity")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 275, f"Issued:  {_fmt(ticket.issued_at)}")
    c.drawString(40, h - 291, f"Valid until: {_fmt(ticket.expires_at)}")

    # QR
    qr_size = 220
    qr = ImageReader(io.BytesIO(render_qr_png(ticket.qr_code_data)))
    c.drawImage(qr, (w - qr_size) / 2, h - 340 - qr_size, width=qr_size, height=qr_size)

    # Footer
    c.setFont("Helvetica", 9)
    c.drawString(40, 40, "Present this code at the classroom door. Single use; void after the time above.")
    c.drawString(40, 26, f"Generated: {datetime.now(timezone.utc).isoformat()}")

    c.showPage()
    c.save()
    return buf.getvalue()
