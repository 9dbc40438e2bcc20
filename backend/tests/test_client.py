from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from app.client import ApiClient, ApiRequestFailed, EndpointGone, GENERIC_MESSAGE
from app.events import ApiErrorEvent, EventChannel
from app.main import app
from app.models.board import BoardMember
from app.security.crypto import encrypt_json


@pytest.fixture
def errors():
    return EventChannel(ApiErrorEvent)


@pytest.fixture
def seen(errors):
    events = []
    errors.subscribe(events.append)
    return events


def _api(errors, **kwargs) -> ApiClient:
    return ApiClient(http=TestClient(app), errors=errors, **kwargs)


def test_decodes_board_members(db, errors, seen):
    db.add(BoardMember(name="Ada", designation="Chair", quote="q", src="s"))
    db.commit()
    with _api(errors) as api:
        data = api.get("/api/board")
    assert data["success"] is True
    assert data["boardMembers"][0]["name"] == "Ada"
    assert seen == []


def test_wrong_key_surfaces_generic_failure(errors, seen):
    with _api(errors, key="some-other-key") as api:
        with pytest.raises(ApiRequestFailed) as info:
            api.get("/api/health")
    assert info.value.message == GENERIC_MESSAGE
    assert info.value.error_type == "decryption_failed"
    assert info.value.status_code == 200
    assert len(seen) == 1 and seen[0].path == "/api/health"


def test_deprecated_endpoint_raises_gone(errors, seen):
    with _api(errors) as api:
        with pytest.raises(EndpointGone) as info:
            api.get("/api/comments")
    assert info.value.status_code == 410
    assert "/api/admin/comments" in info.value.message
    assert seen[0].error_type == "gone"


def test_error_envelope_is_raised_with_server_message(errors, seen):
    with _api(errors) as api:
        with pytest.raises(ApiRequestFailed) as info:
            api.get("/api/auth/me")
    assert info.value.status_code == 401
    assert info.value.message == "Authentication required"
    assert info.value.error_type == "auth_required"


def test_login_then_admin_flow(errors, make_user):
    make_user()
    with _api(errors) as api:
        tokens = api.post("/api/auth/login", json={"email": "demo@example.com", "password": "demo123"})
        api.set_token(tokens["access_token"])
        assert api.get("/api/auth/me")["user"]["email"] == "demo@example.com"


def _mock(handler, errors) -> ApiClient:
    return ApiClient("https://api.test", transport=httpx.MockTransport(handler), errors=errors)


def test_plaintext_json_is_not_accepted(errors, seen):
    api = _mock(lambda request: httpx.Response(200, json={"success": True, "boardMembers": []}), errors)
    with pytest.raises(ApiRequestFailed) as info:
        api.get("/api/board")
    assert info.value.error_type == "malformed_response"


def test_non_json_body(errors, seen):
    api = _mock(lambda request: httpx.Response(502, text="<html>bad gateway</html>"), errors)
    with pytest.raises(ApiRequestFailed) as info:
        api.get("/api/board")
    assert info.value.status_code == 502
    assert info.value.message == GENERIC_MESSAGE


def test_tampered_envelope_never_returns_data(errors, seen):
    def handler(request):
        envelope = encrypt_json({"success": True, "boardMembers": [{"name": "Ada"}]})
        payload = envelope["payload"]
        envelope["payload"] = ("B" if payload[0] == "A" else "A") + payload[1:]
        return httpx.Response(200, json=envelope)

    api = _mock(handler, errors)
    with pytest.raises(ApiRequestFailed) as info:
        api.get("/api/board")
    assert info.value.error_type == "decryption_failed"
    assert len(seen) == 1


def test_success_false_with_200_is_a_failure(errors):
    api = _mock(lambda request: httpx.Response(200, json=encrypt_json({"success": False, "message": "nope"})), errors)
    with pytest.raises(ApiRequestFailed) as info:
        api.get("/api/x")
    assert info.value.message == "nope"


def test_non_dict_payload_is_wrapped(errors):
    api = _mock(lambda request: httpx.Response(200, json=encrypt_json([1, 2, 3])), errors)
    assert api.get("/api/x") == {"success": True, "data": [1, 2, 3]}


def test_network_error(errors, seen):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    api = _mock(handler, errors)
    with pytest.raises(ApiRequestFailed) as info:
        api.get("/api/board")
    assert info.value.status_code is None
    assert info.value.error_type == "network_error"
    assert seen[0].status_code is None
