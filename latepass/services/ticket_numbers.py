import re
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from latepass.core.errors import TicketNumberExhausted
from latepass.models.ticket_sequence import TicketSequence

TICKET_PREFIX = "LPT"
MAX_PER_YEAR = 999999
TICKET_NUMBER_RE = re.compile(r"^LPT-(\d{4})-(\d{6})$")


def format_ticket_number(year: int, counter: int) -> str:
    return f"{TICKET_PREFIX}-{year:04d}-{counter:06d}"


def parse_ticket_number(value: str) -> tuple[int, int]:
    m = TICKET_NUMBER_RE.match(value or "")
    if not m:
        raise ValueError(f"not a ticket number: {value!r}")
    return int(m.group(1)), int(m.group(2))


def _ensure_year_row(db: Session, year: int) -> None:
    if db.get(TicketSequence, year) is not None:
        return
    # Two first-of-the-year issuances may race on this insert; the loser just uses the winner's row.
    try:
        with db.begin_nested():
            db.add(TicketSequence(year=year, last_number=0))
    except IntegrityError:
        pass


def next_ticket_number(db: Session, year: int) -> str:
    """Allocate the next number for ``year`` inside the caller's transaction.

    The increment is a single conditional UPDATE, so concurrent allocators
    queue on the sequence row instead of reading a max and colliding. Numbers
    taken by a transaction that later rolls back are given back with it.
    """
    _ensure_year_row(db, year)
    res = db.execute(
        update(TicketSequence)
        .where(TicketSequence.year == year, TicketSequence.last_number < MAX_PER_YEAR)
        .values(last_number=TicketSequence.last_number + 1, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise TicketNumberExhausted(f"Ticket number limit reached for {year} ({MAX_PER_YEAR})")
    counter = db.execute(
        select(TicketSequence.last_number).where(TicketSequence.year == year)
    ).scalar_one()
    return format_ticket_number(year, counter)
