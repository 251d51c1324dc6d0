import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from latepass.core.errors import InvalidConfiguration
from latepass.models.late_pass_config import LatePassConfig

log = logging.getLogger(__name__)

# (min, max) per field, as exposed to admins
LIMITS = {
    "max_generation_delay_minutes": (0, 60),
    "max_acceptance_delay_minutes": (0, 120),
    "ticket_validity_days": (1, 30),
}
FLAGS = ("allow_multiple_active_tickets", "auto_expire_tickets")


def _find(db: Session, org_id: str) -> LatePassConfig | None:
    return db.execute(select(LatePassConfig).where(LatePassConfig.org_id == org_id)).scalar_one_or_none()


def get_config(db: Session, org_id: str) -> LatePassConfig:
    """Return the org's config, creating the defaults on first use."""
    cfg = _find(db, org_id)
    if cfg:
        return cfg
    try:
        with db.begin_nested():
            cfg = LatePassConfig(
                id=str(uuid.uuid4()),
                org_id=org_id,
                max_generation_delay_minutes=10,
                max_acceptance_delay_minutes=15,
                ticket_validity_days=7,
                allow_multiple_active_tickets=False,
                auto_expire_tickets=True,
            )
            db.add(cfg)
    except IntegrityError:
        cfg = _find(db, org_id)
    return cfg


def validate_config(values: dict) -> None:
    for field, (lo, hi) in LIMITS.items():
        v = values.get(field)
        if v is None:
            continue
        if isinstance(v, bool) or not isinstance(v, int) or not lo <= v <= hi:
            raise InvalidConfiguration(f"{field} must be an integer between {lo} and {hi}", field=field)
    if values["max_acceptance_delay_minutes"] < values["max_generation_delay_minutes"]:
        raise InvalidConfiguration(
            "max_acceptance_delay_minutes must be >= max_generation_delay_minutes",
            field="max_acceptance_delay_minutes",
        )


def update_config(db: Session, org_id: str, changes: dict, updated_by: str) -> LatePassConfig:
    """Apply a partial update. Issued tickets keep the expiry they were issued with."""
    cfg = get_config(db, org_id)
    unknown = set(changes) - set(LIMITS) - set(FLAGS)
    if unknown:
        raise InvalidConfiguration(f"unknown settings: {', '.join(sorted(unknown))}")
    merged = {f: getattr(cfg, f) for f in (*LIMITS, *FLAGS)}
    merged.update({k: v for k, v in changes.items() if v is not None})
    validate_config(merged)
    for k, v in merged.items():
        setattr(cfg, k, v)
    cfg.updated_by_user_id = updated_by
    db.commit()
    db.refresh(cfg)
    log.info("late-pass config updated org=%s by=%s changes=%s", org_id, updated_by, sorted(changes))
    return cfg
