import json
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from latepass.api.deps import get_current_user, require_roles
from latepass.core.clock import as_utc, utcnow
from latepass.core.errors import LatePassError
from latepass.db.session import get_db
from latepass.models.ticket import LatePassTicket
from latepass.models.timetable import Timetable
from latepass.models.user import User
from latepass.schemas.late_pass import (
    CancelTicketIn,
    IssueTicketIn,
    LatePassConfigOut,
    LatePassConfigUpdate,
    RedeemTicketIn,
    RedemptionOut,
    SweepOut,
    TicketEventOut,
    TicketListOut,
    TicketOut,
    TicketStatus,
    ValidateTicketIn,
    ValidationOut,
)
from latepass.services import ticket_lifecycle
from latepass.services.config_service import get_config, update_config
from latepass.services.ticket_render_service import render_ticket_pdf_bytes

router = APIRouter(tags=["late-pass"])

ADMIN = ("admin",)
SCANNERS = ("admin", "staff")


def _iso(dt: datetime | None) -> str | None:
    return as_utc(dt).isoformat() if dt else None


def ticket_out(t: LatePassTicket) -> TicketOut:
    return TicketOut(
        id=t.id,
        ticketNumber=t.ticket_number,
        studentId=t.student_id,
        timetableId=t.timetable_id,
        orgId=t.org_id,
        status=t.status,
        issuedAt=_iso(t.issued_at),
        expiresAt=_iso(t.expires_at),
        usedAt=_iso(t.used_at),
        expiredAt=_iso(t.expired_at),
        attendanceStatus=t.attendance_status,
        qrCodeData=t.qr_code_data,
        issuedByUserId=t.issued_by_user_id,
        canceledByUserId=t.canceled_by_user_id,
        canceledAt=_iso(t.canceled_at),
        cancellationReason=t.cancellation_reason,
    )


def config_out(c) -> LatePassConfigOut:
    return LatePassConfigOut(
        orgId=c.org_id,
        maxGenerationDelayMinutes=c.max_generation_delay_minutes,
        maxAcceptanceDelayMinutes=c.max_acceptance_delay_minutes,
        ticketValidityDays=c.ticket_validity_days,
        allowMultipleActiveTickets=c.allow_multiple_active_tickets,
        autoExpireTickets=c.auto_expire_tickets,
        updatedByUserId=c.updated_by_user_id,
    )


# Configuration

@router.get("/late-pass/config", response_model=LatePassConfigOut)
def read_config(db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    cfg = get_config(db, me.org_id)
    db.commit()
    return config_out(cfg)


@router.put("/late-pass/config", response_model=LatePassConfigOut)
def write_config(body: LatePassConfigUpdate, db: Session = Depends(get_db),
                 me: User = Depends(require_roles(*ADMIN))):
    return config_out(update_config(db, me.org_id, body.to_changes(), updated_by=me.id))


# Tickets

@router.post("/late-pass/tickets", response_model=TicketOut)
def issue(body: IssueTicketIn, db: Session = Depends(get_db), me: User = Depends(require_roles(*ADMIN))):
    ticket = ticket_lifecycle.issue_ticket(
        db,
        student_id=body.studentId,
        timetable_id=body.timetableId,
        org_id=me.org_id,
        issued_by=me.id,
        now=utcnow(),
    )
    return ticket_out(ticket)


@router.get("/late-pass/tickets", response_model=TicketListOut)
def list_tickets(studentId: Optional[str] = None, timetableId: Optional[str] = None,
                 status: Optional[TicketStatus] = None, startDate: Optional[datetime] = None,
                 endDate: Optional[datetime] = None, issuedByUserId: Optional[str] = None,
                 limit: int = 50, offset: int = 0,
                 db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    items = ticket_lifecycle.list_tickets(
        db, me.org_id, now=utcnow(),
        student_id=studentId, timetable_id=timetableId, status=status,
        issued_from=startDate, issued_to=endDate, issued_by_user_id=issuedByUserId,
        limit=limit, offset=offset,
    )
    return TicketListOut(items=[ticket_out(t) for t in items])


@router.get("/late-pass/tickets/{ticket_id}", response_model=TicketOut)
def read_ticket(ticket_id: str, db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    return ticket_out(ticket_lifecycle.get_ticket(db, ticket_id, org_id=me.org_id, now=utcnow()))


@router.get("/late-pass/tickets/{ticket_id}/history", response_model=list[TicketEventOut])
def read_history(ticket_id: str, db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    return [
        TicketEventOut(
            fromStatus=e.from_status,
            toStatus=e.to_status,
            actorUserId=e.actor_user_id,
            details=json.loads(e.details_json or "{}"),
            createdAt=_iso(e.created_at),
        )
        for e in ticket_lifecycle.ticket_history(db, ticket_id, org_id=me.org_id)
    ]


@router.get("/late-pass/tickets/{ticket_id}/pdf")
def download_pdf(ticket_id: str, db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    ticket = ticket_lifecycle.get_ticket(db, ticket_id, org_id=me.org_id, now=utcnow())
    tt = db.get(Timetable, ticket.timetable_id)
    pdf = render_ticket_pdf_bytes(ticket, tt)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{ticket.ticket_number}.pdf"'},
    )


@router.post("/late-pass/tickets/{ticket_id}/cancel", response_model=TicketOut)
def cancel(ticket_id: str, body: CancelTicketIn, db: Session = Depends(get_db),
           me: User = Depends(require_roles(*ADMIN))):
    ticket = ticket_lifecycle.cancel_ticket(
        db, ticket_id, org_id=me.org_id, canceled_by=me.id, reason=body.reason, now=utcnow(),
    )
    return ticket_out(ticket)


@router.post("/late-pass/tickets/expire", response_model=SweepOut)
def expire_now(db: Session = Depends(get_db), me: User = Depends(require_roles(*ADMIN))):
    """Manual sweep for the caller's organization, regardless of auto-expiry."""
    count = ticket_lifecycle.sweep_expired(db, now=utcnow(), org_id=me.org_id, respect_auto_expire=False)
    return SweepOut(expiredCount=count)


# Scanning

@router.post("/late-pass/validate", response_model=ValidationOut)
def validate(body: ValidateTicketIn, db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    """Check a pass at the door without using it up."""
    try:
        ticket = ticket_lifecycle.validate_ticket(
            db, body.qrData, now=utcnow(), org_id=me.org_id, timetable_id=body.timetableId,
        )
    except LatePassError as e:
        ticket = getattr(e, "ticket", None)
        return ValidationOut(
            valid=False,
            errorCode=e.code,
            detail=e.detail,
            ticket=ticket_out(ticket) if ticket is not None else None,
        )
    return ValidationOut(valid=True, ticket=ticket_out(ticket))


@router.post("/late-pass/redeem", response_model=RedemptionOut)
def redeem(body: RedeemTicketIn, db: Session = Depends(get_db), me: User = Depends(require_roles(*SCANNERS))):
    try:
        result = ticket_lifecycle.redeem_ticket(
            db, body.qrData,
            now=utcnow(),
            org_id=me.org_id,
            timetable_id=body.timetableId,
            attendance_status=body.attendanceStatus,
            scanned_by=me.id,
        )
    except LatePassError as e:
        ticket = getattr(e, "ticket", None)
        return RedemptionOut(
            valid=False,
            errorCode=e.code,
            detail=e.detail,
            ticket=ticket_out(ticket) if ticket is not None else None,
        )
    return RedemptionOut(
        valid=True,
        ticket=ticket_out(result.ticket),
        attendanceId=result.attendance_id,
        arrivedAt=_iso(result.arrived_at),
    )


@router.get("/late-pass/students/{student_id}/active-ticket", response_model=Optional[TicketOut])
def active_ticket(student_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    if me.role == "student" and me.id != student_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    if me.role not in ("admin", "staff", "student"):
        raise HTTPException(status_code=403, detail="Forbidden")
    ticket = ticket_lifecycle.get_active_ticket(db, student_id, now=utcnow(), org_id=me.org_id)
    return ticket_out(ticket) if ticket else None
