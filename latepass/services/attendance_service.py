import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from latepass.models.attendance import AttendanceRecord


@dataclass(frozen=True)
class AttendanceEvent:
    org_id: str
    student_id: str
    timetable_id: str
    arrived_at: datetime
    status: str = "LATE"
    ticket_id: str | None = None


def record_attendance(db: Session, event: AttendanceEvent) -> str:
    """Default attendance sink: a row in the caller's transaction. Returns its id."""
    rec = AttendanceRecord(
        id=str(uuid.uuid4()),
        org_id=event.org_id,
        student_id=event.student_id,
        timetable_id=event.timetable_id,
        status=event.status,
        arrived_at=event.arrived_at,
        source="late_pass",
        ticket_id=event.ticket_id,
    )
    db.add(rec)
    db.flush()
    return rec.id
