from __future__ import annotations

import json

import pytest

from app.schemas import common
from app.schemas.common import ApiError, deprecated_notice, encrypted_json, fail, ok
from app.security.crypto import DecryptionError, decode_body, decrypt_json, is_envelope


class _RecordingLogger:
    def __init__(self):
        self.events = []

    def _record(self, level, event, **kw):
        self.events.append((level, event, kw))

    def error(self, event, **kw):
        self._record("error", event, **kw)

    def warning(self, event, **kw):
        self._record("warning", event, **kw)


@pytest.fixture
def envelope_log(monkeypatch):
    recorder = _RecordingLogger()
    monkeypatch.setattr(common, "logger", recorder)
    return recorder


def test_ada_scenario():
    data = {"success": True, "boardMembers": [{"name": "Ada"}]}
    resp = encrypted_json(data, status_code=200)

    assert resp.status_code == 200
    body = json.loads(resp.body)
    assert is_envelope(body)
    assert decode_body(resp.body) == data

    with pytest.raises(DecryptionError):
        decode_body(resp.body, key="not-the-server-key")


def test_circular_payload_fails_closed(envelope_log):
    loop: dict = {"success": True}
    loop["self"] = loop
    resp = encrypted_json(loop)

    assert resp.status_code == 500
    assert decode_body(resp.body) == common.GENERIC_FAILURE
    assert envelope_log.events[0][1] == "envelope.serialize_failed"


@pytest.mark.parametrize("bad", [{"x": object()}, {"x": float("nan")}, {"x": float("inf")}])
def test_unserializable_payload_fails_closed(bad, envelope_log):
    resp = encrypted_json(bad, status_code=201)
    assert resp.status_code == 500
    decoded = decode_body(resp.body)
    assert decoded == {"success": False, "message": "Operation failed", "errorType": "server_error"}


def test_failure_body_does_not_leak_exception_detail(envelope_log):
    class Boom:
        __slots__ = ()

        def __iter__(self):
            raise TypeError("SECRET-STACK-DETAIL")

    resp = encrypted_json({"success": True, "x": Boom()})
    assert resp.status_code == 500
    assert "SECRET-STACK-DETAIL" not in json.dumps(decode_body(resp.body))
    assert "SECRET-STACK-DETAIL" not in json.dumps(envelope_log.events[0][2])


def test_pydantic_and_datetime_values_are_encoded():
    import datetime as dt
    from app.schemas.content import SupporterOut

    supporter = SupporterOut(id=1, name="Grace", title="Rear Admiral", photo=None, order=0)
    resp = ok(supporter=supporter, at=dt.datetime(2024, 1, 2, 3, 4, 5, tzinfo=dt.timezone.utc))
    decoded = decode_body(resp.body)
    assert decoded["supporter"]["name"] == "Grace"
    assert decoded["at"].startswith("2024-01-02T03:04:05")


def test_ok_and_fail_set_success_consistently(envelope_log):
    good = ok({"items": [1]}, status_code=201, message="created")
    assert good.status_code == 201
    assert decode_body(good.body) == {"success": True, "items": [1], "message": "created"}

    bad = fail("Nope", 404, "not_found", requireSetup=True)
    assert bad.status_code == 404
    assert decode_body(bad.body) == {
        "success": False,
        "message": "Nope",
        "errorType": "not_found",
        "requireSetup": True,
    }
    assert envelope_log.events == []


def test_status_mismatch_is_logged(envelope_log):
    resp = encrypted_json({"success": True}, status_code=500)
    assert resp.status_code == 500
    assert envelope_log.events == [
        ("warning", "envelope.status_mismatch", {"status_code": 500, "success": True})
    ]


def test_api_error_body():
    err = ApiError(403, "Denied", "permission_denied", requireVerification=True)
    assert err.status_code == 403
    assert err.body() == {
        "success": False,
        "message": "Denied",
        "errorType": "permission_denied",
        "requireVerification": True,
    }


def test_deprecated_notice_is_plain_json():
    resp = deprecated_notice("moved")
    assert resp.status_code == 410
    assert resp.headers["Deprecation"] == "true"
    body = json.loads(resp.body)
    assert body == {"success": False, "message": "moved"}
    assert not is_envelope(body)


def test_non_dict_payloads_roundtrip():
    resp = encrypted_json([{"name": "Ada"}, {"name": "Grace"}])
    assert decrypt_json(json.loads(resp.body)) == [{"name": "Ada"}, {"name": "Grace"}]
