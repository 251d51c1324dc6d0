from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from latepass.core.errors import StudentAlreadyHasActiveTicket
from latepass.models.student_guard import StudentTicketGuard
from latepass.models.ticket import LatePassTicket, TICKET_ISSUED


def lock_student(db: Session, student_id: str) -> None:
    """Take the per-student issuance lock for the rest of the transaction.

    Bumping the guard row write-locks it (Postgres row lock, SQLite database
    write lock), so a second issuance for the same student waits here until
    the first commits and then sees its ticket in ``check_unique``.
    """
    if db.get(StudentTicketGuard, student_id) is None:
        try:
            with db.begin_nested():
                db.add(StudentTicketGuard(student_id=student_id, version=0))
        except IntegrityError:
            pass
    db.execute(
        update(StudentTicketGuard)
        .where(StudentTicketGuard.student_id == student_id)
        .values(version=StudentTicketGuard.version + 1)
        .execution_options(synchronize_session=False)
    )


def find_active_ticket(db: Session, student_id: str, now: datetime, timetable_id: str | None = None):
    q = select(LatePassTicket).where(
        LatePassTicket.student_id == student_id,
        LatePassTicket.status == TICKET_ISSUED,
        LatePassTicket.expires_at >= now,
    )
    if timetable_id:
        q = q.where(LatePassTicket.timetable_id == timetable_id)
    return db.execute(q.order_by(LatePassTicket.expires_at.desc()).limit(1)).scalar_one_or_none()


def check_unique(db: Session, student_id: str, *, now: datetime, config, timetable_id: str) -> None:
    if config.allow_multiple_active_tickets:
        # Several sessions may be covered at once, but never the same session twice.
        existing = find_active_ticket(db, student_id, now, timetable_id=timetable_id)
    else:
        existing = find_active_ticket(db, student_id, now)
    if existing:
        raise StudentAlreadyHasActiveTicket(existing.id, existing.ticket_number)
