from sqlalchemy import String, Integer, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from latepass.db.session import Base

DEFAULT_MAX_GENERATION_DELAY_MINUTES = 10
DEFAULT_MAX_ACCEPTANCE_DELAY_MINUTES = 15
DEFAULT_TICKET_VALIDITY_DAYS = 7


class LatePassConfig(Base):
    """Per-organization late-pass policy.

    ``ticket_validity_days`` is stored and validated for compatibility with
    existing admin clients only; no ticket operation reads it, and a
    ticket's ``expires_at`` always comes from the acceptance delay.
    """
    __tablename__ = "late_pass_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)

    max_generation_delay_minutes: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_GENERATION_DELAY_MINUTES)
    max_acceptance_delay_minutes: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_ACCEPTANCE_DELAY_MINUTES)
    ticket_validity_days: Mapped[int] = mapped_column(Integer, default=DEFAULT_TICKET_VALIDITY_DAYS)
    allow_multiple_active_tickets: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_expire_tickets: Mapped[bool] = mapped_column(Boolean, default=True)

    updated_by_user_id: Mapped[str] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
