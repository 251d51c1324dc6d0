import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from latepass.core.logging_config import configure_logging
from latepass.db.session import SessionLocal
from latepass.core.security import hash_password
from latepass.models.user import User
from latepass.models.timetable import Timetable
from latepass.services.config_service import get_config

log = logging.getLogger(__name__)

DEMO_ORG_ID = "00000000-0000-0000-0000-000000000001"


def ensure_user(db: Session, email: str, password: str, role: str, name: str, org_id: str = DEMO_ORG_ID) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        org_id=org_id,
        email=email,
        full_name=name,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def ensure_timetable(db: Session, title: str, start_at: datetime, minutes: int = 60, org_id: str = DEMO_ORG_ID) -> Timetable:
    tt = db.query(Timetable).filter(Timetable.org_id == org_id, Timetable.title == title).first()
    if tt:
        return tt
    tt = Timetable(
        id=str(uuid.uuid4()),
        org_id=org_id,
        title=title,
        start_at=start_at,
        end_at=start_at + timedelta(minutes=minutes),
    )
    db.add(tt)
    db.commit()
    return tt


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            log.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@school.local", "admin12345", "admin", "Admin")
        ensure_user(db, "staff@school.local", "staff12345", "staff", "Front desk")
        ensure_user(db, "student@school.local", "student12345", "student", "Demo student")

        get_config(db, DEMO_ORG_ID)
        db.commit()

        # A session that started a few minutes ago, so a ticket can be issued right away.
        now = datetime.now(timezone.utc).replace(second=0, microsecond=0)
        ensure_timetable(db, f"Demo session {now:%Y-%m-%d %H:%M}", now - timedelta(minutes=2))
        log.info("seed complete org=%s", DEMO_ORG_ID)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run()
