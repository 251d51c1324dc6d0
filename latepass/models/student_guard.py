from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from latepass.db.session import Base

class StudentTicketGuard(Base):
    """One row per student; bumped by every issuance to serialize them."""
    __tablename__ = "late_pass_student_guards"

    student_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0)
