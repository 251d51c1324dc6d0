from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from latepass.db.session import Base

class TicketEvent(Base):
    """Append-only transition log; rows are never updated or deleted."""
    __tablename__ = "late_pass_ticket_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(String(36), index=True)
    from_status: Mapped[str] = mapped_column(String(12), nullable=True)  # null for the issue event
    to_status: Mapped[str] = mapped_column(String(12))
    actor_user_id: Mapped[str] = mapped_column(String(36), index=True)  # "system" for sweeps and lazy expiry
    details_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
