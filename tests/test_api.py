import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import latepass.main as main
from latepass.db.session import get_db
from latepass.models.timetable import Timetable
from latepass.seed import ensure_user

from conftest import ORG, OTHER_ORG

PASSWORD = "secret12345"


@pytest.fixture()
def client(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = _get_db
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture()
def users(session_factory):
    db = session_factory()
    try:
        out = {
            "admin": ensure_user(db, "admin@a.local", PASSWORD, "admin", "Admin", org_id=ORG).id,
            "staff": ensure_user(db, "staff@a.local", PASSWORD, "staff", "Staff", org_id=ORG).id,
            "student": ensure_user(db, "student@a.local", PASSWORD, "student", "Student", org_id=ORG).id,
            "other_admin": ensure_user(db, "admin@b.local", PASSWORD, "admin", "Admin B", org_id=OTHER_ORG).id,
        }
    finally:
        db.close()
    return out


def _headers(client, email):
    res = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture()
def admin(client, users):
    return _headers(client, "admin@a.local")


@pytest.fixture()
def staff(client, users):
    return _headers(client, "staff@a.local")


def _timetable(session_factory, started_minutes_ago: int, org_id: str = ORG) -> str:
    db = session_factory()
    try:
        tt = Timetable(
            id=str(uuid.uuid4()),
            org_id=org_id,
            title="Period 1",
            start_at=datetime.now(timezone.utc) - timedelta(minutes=started_minutes_ago),
        )
        db.add(tt)
        db.commit()
        return tt.id
    finally:
        db.close()


def _issue(client, headers, student_id, timetable_id):
    return client.post("/api/v1/late-pass/tickets", json={"studentId": student_id, "timetableId": timetable_id},
                       headers=headers)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_login_rejects_wrong_password(client, users):
    res = client.post("/api/v1/auth/login", json={"email": "admin@a.local", "password": "nope"})
    assert res.status_code == 401


def test_me_includes_org(client, admin):
    res = client.get("/api/v1/auth/me", headers=admin)
    assert res.status_code == 200
    assert res.json()["orgId"] == ORG
    assert res.json()["role"] == "admin"


def test_issue_then_scan_once(client, session_factory, users, admin, staff):
    tt = _timetable(session_factory, started_minutes_ago=2)
    res = _issue(client, admin, users["student"], tt)
    assert res.status_code == 200
    ticket = res.json()
    assert re.match(r"^LPT-\d{4}-\d{6}$", ticket["ticketNumber"])
    assert ticket["status"] == "ISSUED"

    res = client.post("/api/v1/late-pass/redeem", json={"qrData": ticket["qrCodeData"], "timetableId": tt},
                      headers=staff)
    assert res.status_code == 200
    body = res.json()
    assert body["valid"] is True
    assert body["ticket"]["status"] == "USED"
    assert body["attendanceId"]

    res = client.post("/api/v1/late-pass/redeem", json={"qrData": ticket["qrCodeData"]}, headers=staff)
    body = res.json()
    assert body["valid"] is False
    assert body["errorCode"] == "TICKET_ALREADY_USED"
    assert body["ticket"]["status"] == "USED"

    res = client.get(f"/api/v1/late-pass/tickets/{ticket['id']}/history", headers=admin)
    assert [e["toStatus"] for e in res.json()] == ["ISSUED", "USED"]


def test_garbage_scan_is_reported_not_raised(client, staff):
    res = client.post("/api/v1/late-pass/redeem", json={"qrData": "hello"}, headers=staff)
    assert res.status_code == 200
    assert res.json()["valid"] is False
    assert res.json()["errorCode"] == "MALFORMED_PAYLOAD"


def test_issue_outside_window_maps_to_409(client, session_factory, users, admin):
    tt = _timetable(session_factory, started_minutes_ago=120)
    res = _issue(client, admin, users["student"], tt)
    assert res.status_code == 409
    assert res.json()["errorCode"] == "OUTSIDE_GENERATION_WINDOW"


def test_second_active_ticket_is_refused(client, session_factory, users, admin):
    first = _issue(client, admin, users["student"], _timetable(session_factory, 2)).json()
    res = _issue(client, admin, users["student"], _timetable(session_factory, 1))
    assert res.status_code == 409
    assert res.json()["errorCode"] == "STUDENT_ALREADY_HAS_ACTIVE_TICKET"
    assert res.json()["existingTicketId"] == first["id"]


def test_staff_cannot_issue(client, session_factory, users, staff):
    res = _issue(client, staff, users["student"], _timetable(session_factory, 2))
    assert res.status_code == 403


def test_cancel_with_blank_reason_is_rejected(client, session_factory, users, admin):
    ticket = _issue(client, admin, users["student"], _timetable(session_factory, 2)).json()
    res = client.post(f"/api/v1/late-pass/tickets/{ticket['id']}/cancel", json={"reason": "   "}, headers=admin)
    assert res.status_code == 422
    assert res.json()["errorCode"] == "INVALID_CANCELLATION_REASON"

    res = client.post(f"/api/v1/late-pass/tickets/{ticket['id']}/cancel", json={"reason": "wrong student"},
                      headers=admin)
    assert res.status_code == 200
    assert res.json()["status"] == "CANCELED"


def test_other_org_cannot_see_ticket(client, session_factory, users, admin):
    ticket = _issue(client, admin, users["student"], _timetable(session_factory, 2)).json()
    other = _headers(client, "admin@b.local")
    res = client.get(f"/api/v1/late-pass/tickets/{ticket['id']}", headers=other)
    assert res.status_code == 404
    assert res.json()["errorCode"] == "TICKET_NOT_FOUND"


def test_student_sees_only_own_active_ticket(client, session_factory, users, admin):
    ticket = _issue(client, admin, users["student"], _timetable(session_factory, 2)).json()
    student = _headers(client, "student@a.local")

    res = client.get(f"/api/v1/late-pass/students/{users['student']}/active-ticket", headers=student)
    assert res.status_code == 200
    assert res.json()["id"] == ticket["id"]

    res = client.get(f"/api/v1/late-pass/students/{users['staff']}/active-ticket", headers=student)
    assert res.status_code == 403


def test_config_roundtrip_and_validation(client, admin, staff):
    res = client.get("/api/v1/late-pass/config", headers=staff)
    assert res.status_code == 200
    assert res.json()["maxGenerationDelayMinutes"] == 10

    res = client.put("/api/v1/late-pass/config",
                     json={"maxGenerationDelayMinutes": 30, "maxAcceptanceDelayMinutes": 20}, headers=admin)
    assert res.status_code == 422
    assert res.json()["errorCode"] == "INVALID_CONFIGURATION"

    res = client.put("/api/v1/late-pass/config", json={"maxAcceptanceDelayMinutes": 25}, headers=admin)
    assert res.status_code == 200
    assert res.json()["maxAcceptanceDelayMinutes"] == 25

    res = client.put("/api/v1/late-pass/config", json={"maxAcceptanceDelayMinutes": 25}, headers=staff)
    assert res.status_code == 403


def test_list_and_pdf(client, session_factory, users, admin):
    ticket = _issue(client, admin, users["student"], _timetable(session_factory, 2)).json()

    res = client.get("/api/v1/late-pass/tickets", params={"status": "ISSUED"}, headers=admin)
    assert [t["id"] for t in res.json()["items"]] == [ticket["id"]]

    res = client.get(f"/api/v1/late-pass/tickets/{ticket['id']}/pdf", headers=admin)
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")


def test_manual_expire(client, admin):
    res = client.post("/api/v1/late-pass/tickets/expire", headers=admin)
    assert res.status_code == 200
    assert res.json() == {"expiredCount": 0}


def test_validate_then_redeem(client, session_factory, users, admin, staff):
    tt = _timetable(session_factory, started_minutes_ago=2)
    ticket = _issue(client, admin, users["student"], tt).json()

    for _ in range(2):
        res = client.post("/api/v1/late-pass/validate", json={"qrData": ticket["qrCodeData"], "timetableId": tt},
                          headers=staff)
        assert res.status_code == 200
        assert res.json()["valid"] is True
        assert res.json()["ticket"]["status"] == "ISSUED"

    res = client.post("/api/v1/late-pass/redeem", json={"qrData": ticket["qrCodeData"]}, headers=staff)
    assert res.json()["valid"] is True

    res = client.post("/api/v1/late-pass/validate", json={"qrData": ticket["qrCodeData"]}, headers=staff)
    assert res.json()["valid"] is False
    assert res.json()["errorCode"] == "TICKET_ALREADY_USED"
    assert res.json()["ticket"]["status"] == "USED"


def test_validate_for_other_session_is_refused(client, session_factory, users, admin, staff):
    ticket = _issue(client, admin, users["student"], _timetable(session_factory, 2)).json()
    other = _timetable(session_factory, 1)
    res = client.post("/api/v1/late-pass/validate", json={"qrData": ticket["qrCodeData"], "timetableId": other},
                      headers=staff)
    assert res.json()["valid"] is False
    assert res.json()["errorCode"] == "WRONG_TIMETABLE"
