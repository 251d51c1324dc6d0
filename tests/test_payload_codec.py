import base64
import json
from types import SimpleNamespace

import pytest
from jose import jwt

from latepass.core.errors import InvalidSignature, MalformedPayload
from latepass.services import payload_codec

from conftest import at

KEY = "test-signing-key"


def _signed(**over):
    args = dict(ticket_id="t-1", student_id="s-1", timetable_id="tt-1", expires_at=at(9, 15))
    args.update(over)
    return payload_codec.sign(key=KEY, **args)


def _b64(obj) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def test_decode_returns_signed_claims():
    claims = payload_codec.decode(_signed(), key=KEY)
    assert claims.ticket_id == "t-1"
    assert claims.student_id == "s-1"
    assert claims.timetable_id == "tt-1"
    assert claims.expires_at == at(9, 15)


def test_wrong_key_is_invalid_signature():
    with pytest.raises(InvalidSignature):
        payload_codec.decode(_signed(), key="another-key")


def test_edited_claims_keep_old_signature_and_fail():
    header, _, sig = _signed().split(".")
    forged = _b64({"typ": payload_codec.PAYLOAD_TYPE, "tid": "t-2", "sid": "s-1", "ttid": "tt-1",
                   "exp_at": int(at(9, 15).timestamp())})
    with pytest.raises(InvalidSignature):
        payload_codec.decode(f"{header}.{forged}.{sig}", key=KEY)


@pytest.mark.parametrize("payload", ["", "   ", "not-a-token", "a.b"])
def test_garbage_is_malformed(payload):
    with pytest.raises(MalformedPayload):
        payload_codec.decode(payload, key=KEY)


def test_other_algorithm_is_malformed():
    token = jwt.encode({"typ": payload_codec.PAYLOAD_TYPE}, KEY, algorithm="HS512")
    with pytest.raises(MalformedPayload):
        payload_codec.decode(token, key=KEY)


def test_token_of_another_type_is_malformed():
    token = jwt.encode({"sub": "user-1", "type": "access"}, KEY, algorithm="HS256")
    with pytest.raises(MalformedPayload):
        payload_codec.decode(token, key=KEY)


def test_missing_claims_are_malformed():
    token = jwt.encode({"typ": payload_codec.PAYLOAD_TYPE, "tid": "t-1"}, KEY, algorithm="HS256")
    with pytest.raises(MalformedPayload):
        payload_codec.decode(token, key=KEY)


def test_verify_against_matching_ticket_passes():
    claims = payload_codec.decode(_signed(), key=KEY)
    ticket = SimpleNamespace(id="t-1", student_id="s-1", timetable_id="tt-1",
                             expires_at=at(9, 15), ticket_number="LPT-2026-000001")
    payload_codec.verify_against(claims, ticket)


def test_verify_against_other_holder_fails():
    claims = payload_codec.decode(_signed(), key=KEY)
    ticket = SimpleNamespace(id="t-1", student_id="s-2", timetable_id="tt-1",
                             expires_at=at(9, 15), ticket_number="LPT-2026-000001")
    with pytest.raises(InvalidSignature):
        payload_codec.verify_against(claims, ticket)
