from datetime import datetime, timezone

from latepass.models.ticket import LatePassTicket, TICKET_EXPIRED
from latepass.services.ticket_lifecycle import issue_ticket
from latepass.tasks import worker_jobs
from latepass.tasks.celery_app import celery

from conftest import ORG


def test_sweep_job_expires_stale_tickets(db, session_factory, make_timetable):
    start = datetime(2021, 1, 4, 9, 0, tzinfo=timezone.utc)
    tt = make_timetable(start)
    t = issue_ticket(db, student_id="stu-1", timetable_id=tt.id, org_id=ORG, issued_by="admin-1",
                     now=datetime(2021, 1, 4, 9, 5, tzinfo=timezone.utc))

    assert worker_jobs.expire_late_pass_tickets(session_factory=session_factory) == {"expired": 1}
    assert worker_jobs.expire_late_pass_tickets(session_factory=session_factory) == {"expired": 0}
    db.expire_all()
    assert db.get(LatePassTicket, t.id).status == TICKET_EXPIRED


def test_beat_runs_the_sweep():
    entry = celery.conf.beat_schedule["expire-late-pass-tickets"]
    assert entry["task"] == "latepass.tasks.jobs.expire_late_pass_tickets"
