import pytest

from latepass.core.errors import InvalidConfiguration
from latepass.services.config_service import get_config, update_config

from conftest import ORG


def test_defaults_created_on_first_read(db):
    cfg = get_config(db, ORG)
    db.commit()
    assert cfg.max_generation_delay_minutes == 10
    assert cfg.max_acceptance_delay_minutes == 15
    assert cfg.ticket_validity_days == 7
    assert cfg.allow_multiple_active_tickets is False
    assert cfg.auto_expire_tickets is True
    assert get_config(db, ORG).id == cfg.id


def test_partial_update_keeps_other_fields(db):
    cfg = update_config(db, ORG, {"max_acceptance_delay_minutes": 30}, updated_by="admin-1")
    assert cfg.max_acceptance_delay_minutes == 30
    assert cfg.max_generation_delay_minutes == 10
    assert cfg.updated_by_user_id == "admin-1"


def test_acceptance_shorter_than_generation_is_rejected(db):
    with pytest.raises(InvalidConfiguration):
        update_config(db, ORG, {"max_generation_delay_minutes": 20, "max_acceptance_delay_minutes": 15},
                      updated_by="admin-1")
    db.rollback()
    assert get_config(db, ORG).max_generation_delay_minutes == 10


@pytest.mark.parametrize("changes", [
    {"max_generation_delay_minutes": 61},
    {"max_acceptance_delay_minutes": 121},
    {"ticket_validity_days": 0},
    {"ticket_validity_days": 31},
    {"max_generation_delay_minutes": -1},
])
def test_out_of_range_values_are_rejected(db, changes):
    with pytest.raises(InvalidConfiguration):
        update_config(db, ORG, changes, updated_by="admin-1")


def test_unknown_setting_is_rejected(db):
    with pytest.raises(InvalidConfiguration):
        update_config(db, ORG, {"max_tickets": 3}, updated_by="admin-1")
