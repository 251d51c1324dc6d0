import json
import uuid
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.orm import Session
from latepass.models.ticket_event import TicketEvent

SYSTEM_ACTOR = "system"

def log_ticket_event(db: Session, ticket_id: str, from_status: str | None, to_status: str,
                     actor_user_id: str, at: datetime, details: dict | None = None):
    db.add(TicketEvent(
        id=str(uuid.uuid4()),
        ticket_id=ticket_id,
        from_status=from_status,
        to_status=to_status,
        actor_user_id=actor_user_id or SYSTEM_ACTOR,
        details_json=json.dumps(details or {}, ensure_ascii=False, default=str),
        created_at=at,
    ))

def list_ticket_events(db: Session, ticket_id: str) -> list[TicketEvent]:
    return list(db.execute(
        select(TicketEvent).where(TicketEvent.ticket_id == ticket_id).order_by(TicketEvent.created_at.asc(), TicketEvent.id.asc())
    ).scalars())
