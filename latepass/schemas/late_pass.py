from pydantic import BaseModel, Field
from typing import List, Literal, Optional

TicketStatus = Literal["ISSUED", "USED", "EXPIRED", "CANCELED"]


class IssueTicketIn(BaseModel):
    studentId: str = Field(min_length=1)
    timetableId: str = Field(min_length=1)


class CancelTicketIn(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class RedeemTicketIn(BaseModel):
    qrData: str = Field(min_length=1)
    # Session the scanner is running for; a ticket for another session is refused.
    timetableId: Optional[str] = None
    attendanceStatus: Literal["LATE", "PRESENT"] = "LATE"


class ValidateTicketIn(BaseModel):
    qrData: str = Field(min_length=1)
    timetableId: Optional[str] = None


class TicketOut(BaseModel):
    id: str
    ticketNumber: str
    studentId: str
    timetableId: str
    orgId: str
    status: TicketStatus
    issuedAt: str
    expiresAt: str
    usedAt: Optional[str] = None
    expiredAt: Optional[str] = None
    attendanceStatus: Optional[str] = None
    qrCodeData: str
    issuedByUserId: str
    canceledByUserId: Optional[str] = None
    canceledAt: Optional[str] = None
    cancellationReason: Optional[str] = None


class TicketListOut(BaseModel):
    items: List[TicketOut]


class TicketEventOut(BaseModel):
    fromStatus: Optional[str] = None
    toStatus: str
    actorUserId: str
    details: dict = {}
    createdAt: str


class RedemptionOut(BaseModel):
    valid: bool
    errorCode: Optional[str] = None
    detail: Optional[str] = None
    ticket: Optional[TicketOut] = None
    attendanceId: Optional[str] = None
    arrivedAt: Optional[str] = None


class ValidationOut(BaseModel):
    valid: bool
    errorCode: Optional[str] = None
    detail: Optional[str] = None
    ticket: Optional[TicketOut] = None


class LatePassConfigOut(BaseModel):
    orgId: str
    maxGenerationDelayMinutes: int
    maxAcceptanceDelayMinutes: int
    ticketValidityDays: int
    allowMultipleActiveTickets: bool
    autoExpireTickets: bool
    updatedByUserId: Optional[str] = None


class LatePassConfigUpdate(BaseModel):
    maxGenerationDelayMinutes: Optional[int] = Field(default=None, ge=0, le=60)
    maxAcceptanceDelayMinutes: Optional[int] = Field(default=None, ge=0, le=120)
    ticketValidityDays: Optional[int] = Field(default=None, ge=1, le=30)
    allowMultipleActiveTickets: Optional[bool] = None
    autoExpireTickets: Optional[bool] = None

    def to_changes(self) -> dict:
        mapping = {
            "maxGenerationDelayMinutes": "max_generation_delay_minutes",
            "maxAcceptanceDelayMinutes": "max_acceptance_delay_minutes",
            "ticketValidityDays": "ticket_validity_days",
            "allowMultipleActiveTickets": "allow_multiple_active_tickets",
            "autoExpireTickets": "auto_expire_tickets",
        }
        return {mapping[k]: v for k, v in self.model_dump(exclude_none=True).items()}


class SweepOut(BaseModel):
    expiredCount: int
