from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from latepass.db.session import Base

TICKET_ISSUED = "ISSUED"
TICKET_USED = "USED"
TICKET_EXPIRED = "EXPIRED"
TICKET_CANCELED = "CANCELED"
TICKET_STATUSES = (TICKET_ISSUED, TICKET_USED, TICKET_EXPIRED, TICKET_CANCELED)


class LatePassTicket(Base):
    __tablename__ = "late_pass_tickets"
    __table_args__ = (
        Index("ix_late_pass_tickets_student_status_expires", "student_id", "status", "expires_at"),
        Index("ix_late_pass_tickets_timetable_status", "timetable_id", "status"),
        Index("ix_late_pass_tickets_org_issued_at", "org_id", "issued_at"),
        Index("ix_late_pass_tickets_status_expires", "status", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # LPT-YYYY-NNNNNN, unique across all organizations
    ticket_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    student_id: Mapped[str] = mapped_column(String(36))
    timetable_id: Mapped[str] = mapped_column(String(36))
    org_id: Mapped[str] = mapped_column(String(36))

    status: Mapped[str] = mapped_column(String(12), default=TICKET_ISSUED)  # ISSUED | USED | EXPIRED | CANCELED
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))  # timetable start + acceptance delay, fixed at issue
    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    attendance_status: Mapped[str] = mapped_column(String(12), nullable=True)  # LATE | PRESENT, set on redemption

    qr_code_data: Mapped[str] = mapped_column(Text)

    issued_by_user_id: Mapped[str] = mapped_column(String(36))
    canceled_by_user_id: Mapped[str] = mapped_column(String(36), nullable=True)
    canceled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
