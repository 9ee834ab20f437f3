"""
Tests for admin login and bearer token checks.
"""
import json
import time
from unittest import mock

import pytest

from zera_oracle.errors import Unauthenticated
from zera_oracle.systems.auth_system import authenticate, get_serializer, issue_token, TOKEN_SALT

from conftest import TEST_PASSWORD


def test_login_returns_usable_token(client):
    """A correct secret yields a token that authorizes writes."""
    response = client.post("/api/v1/admin/login", json={"user": "carol", "password": TEST_PASSWORD})
    assert response.status_code == 200
    token = json.loads(response.data)["token"]

    response = client.post(
        "/api/v1/symbols",
        json={"symbol": "ZERA", "mint": "zera-mint"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 201


@pytest.mark.parametrize("body", [
    {"user": "carol", "password": "wrong"},
    {"user": "carol"},
    {"password": 12345},
    ["not", "an", "object"],
    {"password": ""},
])
def test_login_failures_are_indistinguishable(client, body):
    """Wrong secret and malformed body produce the exact same response."""
    response = client.post("/api/v1/admin/login", json=body)
    assert response.status_code == 401
    assert json.loads(response.data) == {"error": "unauthorized", "code": 401}


def test_login_with_non_json_body(client):
    response = client.post("/api/v1/admin/login", data="password=x", content_type="text/plain")
    assert response.status_code == 401
    assert json.loads(response.data) == {"error": "unauthorized", "code": 401}


def test_empty_configured_secret_never_matches(app, client):
    app.config["ADMIN_UI_PASSWORD"] = ""
    response = client.post("/api/v1/admin/login", json={"password": ""})
    assert response.status_code == 401


def test_default_subject_is_ops(app_ctx):
    from zera_oracle.systems.auth_system import login
    principal = authenticate(login({"password": TEST_PASSWORD}))
    assert principal.subject == "ops"
    assert principal.updated_by == "admin:ops"
    assert not principal.is_system


def test_write_without_token_is_rejected(client):
    response = client.post("/api/v1/prices", json={"mint": "m", "usd_mantissa": "1", "usd_scale": 0})
    assert response.status_code == 401


def test_malformed_authorization_header(client, admin_token):
    response = client.delete("/api/v1/prices/m", headers={"Authorization": f"Token {admin_token}"})
    assert response.status_code == 401


def test_tampered_token_is_rejected(client, admin_token):
    tampered = admin_token[:-2] + ("AA" if not admin_token.endswith("AA") else "BB")
    response = client.delete("/api/v1/prices/m", headers={"Authorization": f"Bearer {tampered}"})
    assert response.status_code == 401


def test_token_signed_with_other_secret_is_rejected(app_ctx):
    forged = get_serializer("some-other-secret").dumps(
        {"sub": "mallory", "role": "admin", "exp": int(time.time()) + 60}, salt=TOKEN_SALT
    )
    with pytest.raises(Unauthenticated):
        authenticate(forged)


def test_expired_token_is_rejected(app_ctx):
    token = issue_token("alice")
    with mock.patch("zera_oracle.systems.auth_system.time.time", return_value=time.time() + 3601):
        with pytest.raises(Unauthenticated):
            authenticate(token)


def test_wrong_role_is_rejected(app_ctx):
    token = get_serializer().dumps({"sub": "alice", "role": "viewer", "exp": int(time.time()) + 60}, salt=TOKEN_SALT)
    with pytest.raises(Unauthenticated):
        authenticate(token)


def test_reads_need_no_token(client):
    assert client.get("/api/v1/prices").status_code == 200
    assert client.get("/api/v1/config").status_code == 200
    assert client.get("/api/v1/audit").status_code == 200
