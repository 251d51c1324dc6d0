"""Business errors for the late-pass ticket core.

Each error carries a stable ``code`` for clients and the HTTP status the API
layer answers with. Storage failures are not part of this hierarchy; they
propagate unchanged.
"""
from typing import Any, Optional


class LatePassError(Exception):
    code = "LATE_PASS_ERROR"
    status_code = 400

    def __init__(self, detail: str = "", **extra: Any):
        super().__init__(detail or self.code)
        self.detail = detail or self.code
        self.extra = extra

    def to_dict(self) -> dict:
        out = {"errorCode": self.code, "detail": self.detail}
        out.update(self.extra)
        return out


# Issuance

class TimetableNotFound(LatePassError):
    code = "TIMETABLE_NOT_FOUND"
    status_code = 404


class OutsideGenerationWindow(LatePassError):
    code = "OUTSIDE_GENERATION_WINDOW"
    status_code = 409


class StudentAlreadyHasActiveTicket(LatePassError):
    code = "STUDENT_ALREADY_HAS_ACTIVE_TICKET"
    status_code = 409

    def __init__(self, ticket_id: str, ticket_number: str, detail: str = ""):
        super().__init__(
            detail or f"Student already has an active ticket ({ticket_number})",
            existingTicketId=ticket_id,
            existingTicketNumber=ticket_number,
        )
        self.ticket_id = ticket_id
        self.ticket_number = ticket_number


class TicketNumberExhausted(LatePassError):
    code = "TICKET_NUMBER_EXHAUSTED"
    status_code = 503


# Payload

class InvalidSignature(LatePassError):
    code = "INVALID_SIGNATURE"
    status_code = 400


class MalformedPayload(LatePassError):
    code = "MALFORMED_PAYLOAD"
    status_code = 400


# Ticket state

class TicketNotFound(LatePassError):
    code = "TICKET_NOT_FOUND"
    status_code = 404


class WrongTimetable(LatePassError):
    code = "WRONG_TIMETABLE"
    status_code = 409


class TicketStateError(LatePassError):
    """A ticket is in a terminal state; ``status`` is that state."""

    status_code = 409

    def __init__(self, ticket_id: str, status: str, detail: str = "", ticket: Optional[Any] = None):
        super().__init__(detail, ticketId=ticket_id, ticketStatus=status)
        self.ticket_id = ticket_id
        self.status = status
        self.ticket = ticket


class AlreadyUsed(TicketStateError):
    code = "TICKET_ALREADY_USED"


class AlreadyCanceled(TicketStateError):
    code = "TICKET_CANCELED"


class AlreadyExpired(TicketStateError):
    code = "TICKET_EXPIRED"


class TicketConflict(TicketStateError):
    """A transition lost to a concurrent writer that left the ticket ISSUED."""

    code = "TICKET_CONFLICT"


# Admin input

class InvalidConfiguration(LatePassError):
    code = "INVALID_CONFIGURATION"
    status_code = 422


class InvalidCancellationReason(LatePassError):
    code = "INVALID_CANCELLATION_REASON"
    status_code = 422