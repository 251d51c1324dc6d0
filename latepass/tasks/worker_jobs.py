from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, ProgrammingError
from latepass.core.clock import utcnow
from latepass.db.session import SessionLocal
from latepass.services.ticket_lifecycle import sweep_expired

def expire_late_pass_tickets(session_factory=SessionLocal) -> dict:
    """Eager expiry for orgs with auto_expire_tickets. Redemption re-checks expiry on its own."""
    db: Session = session_factory()
    try:
        try:
            expired = sweep_expired(db, now=utcnow())
        except (ProgrammingError, OperationalError):
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        return {"expired": expired}
    finally:
        db.close()
