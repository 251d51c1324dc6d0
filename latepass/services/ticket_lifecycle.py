"""Late-pass ticket lifecycle.

ISSUED is the only live state; USED, EXPIRED and CANCELED are terminal.
Every transition is a conditional UPDATE guarded by ``status = 'ISSUED'``
and decided by its rowcount, never by a status read earlier in the request,
so two scans (or a scan racing a cancel or the sweep) cannot both win.
Expiry is applied lazily whenever a ticket is read, redeemed or canceled;
the periodic sweep only keeps reports fresh.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from latepass.core.clock import as_utc
from latepass.core.errors import (
    AlreadyCanceled,
    AlreadyExpired,
    AlreadyUsed,
    InvalidCancellationReason,
    OutsideGenerationWindow,
    TicketConflict,
    TicketNotFound,
    TicketStateError,
    TimetableNotFound,
    WrongTimetable,
)
from latepass.models.late_pass_config import LatePassConfig
from latepass.models.ticket import (
    LatePassTicket,
    TICKET_CANCELED,
    TICKET_EXPIRED,
    TICKET_ISSUED,
    TICKET_USED,
)
from latepass.models.timetable import Timetable
from latepass.services import payload_codec
from latepass.services.active_ticket_guard import check_unique, lock_student
from latepass.services.attendance_service import AttendanceEvent, record_attendance
from latepass.services.audit_service import SYSTEM_ACTOR, list_ticket_events, log_ticket_event
from latepass.services.config_service import get_config
from latepass.services.ticket_numbers import next_ticket_number
from latepass.services.window_policy import (
    acceptance_deadline,
    can_accept,
    can_generate,
    generation_deadline,
)

log = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ("LATE", "PRESENT")
MAX_REASON_LENGTH = 500

AttendanceSink = Callable[[Session, AttendanceEvent], str]


@dataclass(frozen=True)
class RedemptionResult:
    ticket: LatePassTicket
    attendance_id: str
    arrived_at: datetime


_STATE_ERRORS = {
    TICKET_USED: (AlreadyUsed, "Ticket has already been used"),
    TICKET_CANCELED: (AlreadyCanceled, "Ticket has been canceled"),
    TICKET_EXPIRED: (AlreadyExpired, "Ticket has expired"),
}


def _state_error(ticket: LatePassTicket) -> TicketStateError:
    if ticket.status not in _STATE_ERRORS:
        # Conditional update matched nothing yet the row still reads ISSUED.
        return TicketConflict(ticket.id, ticket.status, "Ticket changed while processing, retry", ticket=ticket)
    exc, msg = _STATE_ERRORS[ticket.status]
    return exc(ticket.id, ticket.status, msg, ticket=ticket)


def _check_scanned(db: Session, payload: str, *, now: datetime, org_id: str | None, timetable_id: str | None,
                   key: str | None, reason: str) -> LatePassTicket:
    """Everything a scan checks before admitting the holder. Returns the live ISSUED ticket."""
    claims = payload_codec.decode(payload, key=key)

    ticket = db.get(LatePassTicket, claims.ticket_id)
    if not ticket or (org_id and ticket.org_id != org_id):
        raise TicketNotFound("Ticket not found")
    payload_codec.verify_against(claims, ticket)
    if timetable_id and ticket.timetable_id != timetable_id:
        raise WrongTimetable("QR code is not valid for this session", ticketId=ticket.id)

    if ticket.status == TICKET_ISSUED and not can_accept(as_utc(ticket.expires_at), now):
        _expire_stale(db, [ticket], now, reason=reason)
        ticket = _reload(db, ticket.id)
    if ticket.status != TICKET_ISSUED:
        raise _state_error(ticket)
    return ticket


def _transition(db: Session, ticket_id: str, to_status: str, now: datetime, *conds, **values) -> bool:
    """ISSUED -> ``to_status`` iff the row is still ISSUED and ``conds`` hold."""
    res = db.execute(
        update(LatePassTicket)
        .where(LatePassTicket.id == ticket_id, LatePassTicket.status == TICKET_ISSUED, *conds)
        .values(status=to_status, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def _reload(db: Session, ticket_id: str) -> Optional[LatePassTicket]:
    return db.execute(
        select(LatePassTicket)
        .where(LatePassTicket.id == ticket_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _get_owned(db: Session, ticket_id: str, org_id: str) -> LatePassTicket:
    ticket = db.get(LatePassTicket, ticket_id)
    if not ticket or ticket.org_id != org_id:
        raise TicketNotFound("Ticket not found")
    return ticket


def _expire_stale(db: Session, tickets: Iterable[LatePassTicket], now: datetime, reason: str = "lazy") -> int:
    """Flip ISSUED tickets past ``expires_at`` to EXPIRED and commit."""
    flipped = []
    for t in tickets:
        if t.status != TICKET_ISSUED or can_accept(as_utc(t.expires_at), now):
            continue
        if _transition(db, t.id, TICKET_EXPIRED, now, LatePassTicket.expires_at < now, expired_at=now):
            log_ticket_event(db, t.id, TICKET_ISSUED, TICKET_EXPIRED, SYSTEM_ACTOR, now, {"reason": reason})
            flipped.append(t)
    expired = len(flipped)
    if expired:
        db.commit()
        for t in flipped:
            db.expire(t)
        log.info("expired %d late-pass ticket(s) (%s)", expired, reason)
    return expired


def issue_ticket(db: Session, *, student_id: str, timetable_id: str, org_id: str, issued_by: str,
                 now: datetime, config: LatePassConfig | None = None) -> LatePassTicket:
    now = as_utc(now)
    try:
        tt = db.get(Timetable, timetable_id)
        if not tt or tt.org_id != org_id:
            raise TimetableNotFound("Timetable not found")
        cfg = config or get_config(db, org_id)

        start_at = as_utc(tt.start_at)
        if not can_generate(start_at, cfg, now):
            deadline = generation_deadline(start_at, cfg)
            raise OutsideGenerationWindow(
                f"Tickets for this session can be generated between {start_at.isoformat()} and {deadline.isoformat()}",
                windowStart=start_at.isoformat(),
                windowEnd=deadline.isoformat(),
            )

        lock_student(db, student_id)
        check_unique(db, student_id, now=now, config=cfg, timetable_id=timetable_id)

        ticket_id = str(uuid.uuid4())
        expires_at = acceptance_deadline(start_at, cfg)
        ticket = LatePassTicket(
            id=ticket_id,
            ticket_number=next_ticket_number(db, now.year),
            student_id=student_id,
            timetable_id=timetable_id,
            org_id=org_id,
            status=TICKET_ISSUED,
            issued_at=now,
            expires_at=expires_at,
            qr_code_data=payload_codec.sign(ticket_id, student_id, timetable_id, expires_at),
            issued_by_user_id=issued_by,
        )
        db.add(ticket)
        log_ticket_event(db, ticket_id, None, TICKET_ISSUED, issued_by, now,
                         {"ticketNumber": ticket.ticket_number, "expiresAt": expires_at.isoformat()})
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    log.info("issued late-pass %s student=%s timetable=%s expires=%s",
             ticket.ticket_number, student_id, timetable_id, expires_at.isoformat())
    return ticket


def validate_ticket(db: Session, payload: str, *, now: datetime, org_id: str | None = None,
                    timetable_id: str | None = None, key: str | None = None) -> LatePassTicket:
    """Check a scanned pass without using it up. Raises what ``redeem_ticket`` would."""
    return _check_scanned(db, payload, now=as_utc(now), org_id=org_id, timetable_id=timetable_id,
                          key=key, reason="validate")


def redeem_ticket(db: Session, payload: str, *, now: datetime, org_id: str | None = None, timetable_id: str | None = None,
                  attendance_status: str = "LATE", scanned_by: str | None = None,
                  sink: AttendanceSink | None = None, key: str | None = None) -> RedemptionResult:
    if attendance_status not in ATTENDANCE_STATUSES:
        raise ValueError(f"attendance_status must be one of {ATTENDANCE_STATUSES}")
    now = as_utc(now)
    ticket = _check_scanned(db, payload, now=now, org_id=org_id, timetable_id=timetable_id, key=key, reason="redeem")

    try:
        won = _transition(db, ticket.id, TICKET_USED, now, LatePassTicket.expires_at >= now,
                          used_at=now, attendance_status=attendance_status)
        if not won:
            db.rollback()
            current = _reload(db, ticket.id)
            _expire_stale(db, [current], now, reason="redeem")
            raise _state_error(_reload(db, ticket.id))

        attendance_id = (sink or record_attendance)(db, AttendanceEvent(
            org_id=ticket.org_id,
            student_id=ticket.student_id,
            timetable_id=ticket.timetable_id,
            arrived_at=now,
            status=attendance_status,
            ticket_id=ticket.id,
        ))
        log_ticket_event(db, ticket.id, TICKET_ISSUED, TICKET_USED, scanned_by or ticket.student_id, now,
                         {"attendanceId": attendance_id, "attendanceStatus": attendance_status})
        db.commit()
    except Exception:
        db.rollback()
        raise

    ticket = _reload(db, ticket.id)
    log.info("redeemed late-pass %s student=%s", ticket.ticket_number, ticket.student_id)
    return RedemptionResult(ticket=ticket, attendance_id=attendance_id, arrived_at=now)


def cancel_ticket(db: Session, ticket_id: str, *, org_id: str, canceled_by: str, reason: str,
                  now: datetime) -> LatePassTicket:
    reason = (reason or "").strip()
    if not reason:
        raise InvalidCancellationReason("Cancellation reason is required")
    if len(reason) > MAX_REASON_LENGTH:
        raise InvalidCancellationReason(f"Cancellation reason must be at most {MAX_REASON_LENGTH} characters")
    now = as_utc(now)

    ticket = _get_owned(db, ticket_id, org_id)
    _expire_stale(db, [ticket], now, reason="cancel")
    if ticket.status != TICKET_ISSUED:
        raise _state_error(ticket)

    try:
        won = _transition(db, ticket.id, TICKET_CANCELED, now, LatePassTicket.expires_at >= now,
                          canceled_at=now, canceled_by_user_id=canceled_by, cancellation_reason=reason)
        if not won:
            db.rollback()
            current = _reload(db, ticket.id)
            _expire_stale(db, [current], now, reason="cancel")
            raise _state_error(_reload(db, ticket.id))
        log_ticket_event(db, ticket.id, TICKET_ISSUED, TICKET_CANCELED, canceled_by, now, {"reason": reason})
        db.commit()
    except Exception:
        db.rollback()
        raise

    log.info("canceled late-pass %s by=%s", ticket.ticket_number, canceled_by)
    return _reload(db, ticket.id)


def sweep_expired(db: Session, *, now: datetime, org_id: str | None = None,
                  respect_auto_expire: bool = True) -> int:
    """Expire every ISSUED ticket whose ``expires_at`` has passed.

    Orgs that turned ``auto_expire_tickets`` off are skipped unless an admin
    runs the sweep by hand (``respect_auto_expire=False``).
    """
    now = as_utc(now)
    q = select(LatePassTicket.id, LatePassTicket.org_id).where(
        LatePassTicket.status == TICKET_ISSUED,
        LatePassTicket.expires_at < now,
    )
    if org_id:
        q = q.where(LatePassTicket.org_id == org_id)
    rows = db.execute(q).all()

    skip: set[str] = set()
    if respect_auto_expire:
        skip = set(db.execute(
            select(LatePassConfig.org_id).where(LatePassConfig.auto_expire_tickets.is_(False))
        ).scalars())

    expired = 0
    try:
        for tid, oid in rows:
            if oid in skip:
                continue
            if _transition(db, tid, TICKET_EXPIRED, now, LatePassTicket.expires_at < now, expired_at=now):
                log_ticket_event(db, tid, TICKET_ISSUED, TICKET_EXPIRED, SYSTEM_ACTOR, now, {"reason": "sweep"})
                expired += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    if expired:
        db.expire_all()
        log.info("sweep expired %d late-pass ticket(s) org=%s", expired, org_id or "*")
    return expired


def get_ticket(db: Session, ticket_id: str, *, org_id: str, now: datetime) -> LatePassTicket:
    ticket = _get_owned(db, ticket_id, org_id)
    _expire_stale(db, [ticket], as_utc(now))
    return ticket


def get_active_ticket(db: Session, student_id: str, *, now: datetime,
                      org_id: str | None = None) -> Optional[LatePassTicket]:
    now = as_utc(now)
    q = select(LatePassTicket).where(
        LatePassTicket.student_id == student_id,
        LatePassTicket.status == TICKET_ISSUED,
        LatePassTicket.expires_at >= now,
    )
    if org_id:
        q = q.where(LatePassTicket.org_id == org_id)
    return db.execute(q.order_by(LatePassTicket.expires_at.desc()).limit(1)).scalar_one_or_none()


def list_tickets(db: Session, org_id: str, *, now: datetime, student_id: str | None = None,
                 timetable_id: str | None = None, status: str | None = None,
                 issued_from: datetime | None = None, issued_to: datetime | None = None,
                 issued_by_user_id: str | None = None, limit: int = 50, offset: int = 0) -> list[LatePassTicket]:
    now = as_utc(now)
    # Bring stale rows up to date first so a status filter sees the truth.
    stale = db.execute(select(LatePassTicket).where(
        LatePassTicket.org_id == org_id,
        LatePassTicket.status == TICKET_ISSUED,
        LatePassTicket.expires_at < now,
    )).scalars().all()
    _expire_stale(db, stale, now)

    q = select(LatePassTicket).where(LatePassTicket.org_id == org_id)
    if student_id:
        q = q.where(LatePassTicket.student_id == student_id)
    if timetable_id:
        q = q.where(LatePassTicket.timetable_id == timetable_id)
    if status:
        q = q.where(LatePassTicket.status == status)
    if issued_from:
        q = q.where(LatePassTicket.issued_at >= as_utc(issued_from))
    if issued_to:
        q = q.where(LatePassTicket.issued_at <= as_utc(issued_to))
    if issued_by_user_id:
        q = q.where(LatePassTicket.issued_by_user_id == issued_by_user_id)
    q = q.order_by(LatePassTicket.issued_at.desc()).limit(min(limit, 200)).offset(max(offset, 0))
    return list(db.execute(q).scalars())


def ticket_history(db: Session, ticket_id: str, *, org_id: str):
    _get_owned(db, ticket_id, org_id)
    return list_ticket_events(db, ticket_id)
