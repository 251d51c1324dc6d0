"""Signed QR payloads for late-pass tickets.

The payload is a compact JWS (HS256) carrying the ticket id, holder, session
and expiry. The signature is checked without touching the database; the
ticket row stays the source of truth and ``verify_against`` ties the two
together. The standard ``exp`` claim is not used: a scan after expiry must
still reach the ticket so the scanner can say *why* it is refused.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from jose import JWTError, jwt

from latepass.core.clock import as_utc
from latepass.core.config import settings
from latepass.core.errors import InvalidSignature, MalformedPayload

ALGO = "HS256"
PAYLOAD_TYPE = "late_pass_ticket"

security_log = logging.getLogger("latepass.security")


@dataclass(frozen=True)
class TicketClaims:
    ticket_id: str
    student_id: str
    timetable_id: str
    expires_at: datetime


def _epoch(dt: datetime) -> int:
    return int(as_utc(dt).timestamp())


def sign(ticket_id: str, student_id: str, timetable_id: str, expires_at: datetime, key: str | None = None) -> str:
    claims = {
        "typ": PAYLOAD_TYPE,
        "tid": ticket_id,
        "sid": student_id,
        "ttid": timetable_id,
        "exp_at": _epoch(expires_at),
    }
    return jwt.encode(claims, key or settings.signing_key, algorithm=ALGO)


def decode(payload: str, key: str | None = None) -> TicketClaims:
    if not isinstance(payload, str) or not payload.strip():
        raise MalformedPayload("Empty QR payload")
    token = payload.strip()
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        security_log.warning("late-pass payload rejected: not a signed token")
        raise MalformedPayload("QR payload is not a signed ticket")
    if header.get("alg") != ALGO:
        security_log.warning("late-pass payload rejected: unexpected alg %r", header.get("alg"))
        raise MalformedPayload("Unsupported payload algorithm")
    try:
        claims = jwt.decode(token, key or settings.signing_key, algorithms=[ALGO], options={"verify_exp": False})
    except JWTError:
        security_log.warning("late-pass payload rejected: signature does not verify")
        raise InvalidSignature("QR payload signature is invalid")

    if claims.get("typ") != PAYLOAD_TYPE:
        security_log.warning("late-pass payload rejected: wrong type %r", claims.get("typ"))
        raise MalformedPayload("QR payload is not a late-pass ticket")
    ids = [claims.get(k) for k in ("tid", "sid", "ttid")]
    exp_at = claims.get("exp_at")
    if not all(isinstance(v, str) and v for v in ids) or not isinstance(exp_at, int) or isinstance(exp_at, bool):
        security_log.warning("late-pass payload rejected: missing or mistyped claims")
        raise MalformedPayload("QR payload is missing ticket fields")
    return TicketClaims(
        ticket_id=ids[0],
        student_id=ids[1],
        timetable_id=ids[2],
        expires_at=datetime.fromtimestamp(exp_at, tz=timezone.utc),
    )


def verify_against(claims: TicketClaims, ticket) -> None:
    """Reject a validly signed payload that does not describe ``ticket``."""
    mismatched = [
        name for name, ok in (
            ("ticket", claims.ticket_id == ticket.id),
            ("student", claims.student_id == ticket.student_id),
            ("timetable", claims.timetable_id == ticket.timetable_id),
            ("expiresAt", _epoch(claims.expires_at) == _epoch(ticket.expires_at)),
        ) if not ok
    ]
    if mismatched:
        security_log.warning(
            "late-pass payload rejected: claims do not match ticket %s (%s)",
            ticket.ticket_number, ",".join(mismatched),
        )
        raise InvalidSignature("QR payload does not match the ticket on record")
