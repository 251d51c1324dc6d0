"""Time windows for late-pass tickets.

A ticket is proof of lateness, so it can only be generated once the session
has started and until ``max_generation_delay_minutes`` after that. It can be
redeemed until ``max_acceptance_delay_minutes`` after the start, which is the
ticket's ``expires_at``. Both ends of every window are inclusive.
"""
from datetime import datetime, timedelta


def generation_deadline(start_at: datetime, config) -> datetime:
    return start_at + timedelta(minutes=config.max_generation_delay_minutes)


def acceptance_deadline(start_at: datetime, config) -> datetime:
    return start_at + timedelta(minutes=config.max_acceptance_delay_minutes)


def can_generate(start_at: datetime, config, now: datetime) -> bool:
    return start_at <= now <= generation_deadline(start_at, config)


def can_accept(expires_at: datetime, now: datetime) -> bool:
    return now <= expires_at
