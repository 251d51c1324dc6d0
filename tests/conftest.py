import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from latepass.db.session import Base, make_engine

# Register every table on Base.metadata
from latepass.models.user import User  # noqa: F401
from latepass.models.timetable import Timetable
from latepass.models.late_pass_config import LatePassConfig  # noqa: F401
from latepass.models.ticket import LatePassTicket  # noqa: F401
from latepass.models.ticket_event import TicketEvent  # noqa: F401
from latepass.models.ticket_sequence import TicketSequence  # noqa: F401
from latepass.models.student_guard import StudentTicketGuard  # noqa: F401
from latepass.models.attendance import AttendanceRecord  # noqa: F401

ORG = "org-a"
OTHER_ORG = "org-b"


def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    """A fixed school morning, 2 March 2026, in UTC."""
    return datetime(2026, 3, 2, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'latepass_test.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def make_timetable(db):
    def _make(start_at: datetime, org_id: str = ORG, title: str = "Maths") -> Timetable:
        tt = Timetable(id=str(uuid.uuid4()), org_id=org_id, title=title, start_at=start_at)
        db.add(tt)
        db.commit()
        return tt
    return _make


@pytest.fixture()
def timetable(make_timetable):
    return make_timetable(at(9))
