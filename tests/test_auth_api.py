# tests/test_auth_api.py
# PURPOSE: password registration/login, OTP login, and the current-user endpoint.

import re

from todo_alert.api.deps import get_channels
from todo_alert.config import settings
from todo_alert.main import app

from conftest import PASSWORD, PHONE


def _code_from(text: str) -> str:
    return re.search(r"code is: (\d{6})", text).group(1)


def test_register_and_login(client):
    r = client.post("/auth/register", json={"phone_number": PHONE, "name": "Ada", "password": PASSWORD})
    assert r.status_code == 201
    body = r.json()
    assert body["phone_number"] == PHONE
    assert body["name"] == "Ada"
    assert "password" not in body and "password_hash" not in body

    r = client.post("/auth/login", data={"username": PHONE, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"
    assert r.json()["access_token"]


def test_register_duplicate_phone(client):
    payload = {"phone_number": PHONE, "password": PASSWORD}
    assert client.post("/auth/register", json=payload).status_code == 201
    r = client.post("/auth/register", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == "Phone number already registered"


def test_register_rejects_bad_phone(client):
    r = client.post("/auth/register", json={"phone_number": "call me", "password": PASSWORD})
    assert r.status_code == 422


def test_login_wrong_password(client):
    client.post("/auth/register", json={"phone_number": PHONE, "password": PASSWORD})
    r = client.post("/auth/login", data={"username": PHONE, "password": "nope"})
    assert r.status_code == 401
    assert r.json()["error"] == "Incorrect phone number or password"


def test_me_returns_current_user(auth_client):
    r = auth_client.get("/auth/me")
    assert r.status_code == 200
    assert r.json()["phone_number"] == PHONE
    assert r.json()["name"] == "Tester"


def test_me_rejects_garbage_token(client):
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


def test_otp_login_creates_user(client, channels):
    phone = "+15550009999"
    r = client.post("/auth/otp/request", json={"phone_number": phone})
    assert r.status_code == 200
    assert r.json()["message"] == "OTP sent successfully"
    assert r.json()["otp"] is None

    sms = channels[2]
    [(destination, text)] = sms.texts
    assert destination == phone
    code = _code_from(text)

    r = client.post("/auth/otp/verify", json={"phone_number": phone, "code": code, "name": "Grace"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["phone_number"] == phone
    assert me["name"] == "Grace"


def test_otp_cannot_be_reused(client, channels):
    phone = "+15550009998"
    client.post("/auth/otp/request", json={"phone_number": phone})
    code = _code_from(channels[2].texts[0][1])

    assert client.post("/auth/otp/verify", json={"phone_number": phone, "code": code}).status_code == 200
    r = client.post("/auth/otp/verify", json={"phone_number": phone, "code": code})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid or expired OTP"


def test_otp_wrong_code(client):
    client.post("/auth/otp/request", json={"phone_number": PHONE})
    r = client.post("/auth/otp/verify", json={"phone_number": PHONE, "code": "000000x"})
    assert r.status_code == 400


def test_otp_without_sms_channel_returns_code_when_enabled(client, monkeypatch):
    monkeypatch.setattr(settings, "OTP_RETURN_CODE_IN_RESPONSE", True)
    app.dependency_overrides[get_channels] = lambda: []
    r = client.post("/auth/otp/request", json={"phone_number": PHONE})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "OTP generated (SMS not configured)"
    assert re.fullmatch(r"\d{6}", body["otp"])

    r = client.post("/auth/otp/verify", json={"phone_number": PHONE, "code": body["otp"]})
    assert r.status_code == 200


def test_otp_without_sms_channel_is_unavailable(client):
    app.dependency_overrides[get_channels] = lambda: []
    r = client.post("/auth/otp/request", json={"phone_number": PHONE})
    assert r.status_code == 503
    assert r.json()["error"] == "OTP could not be delivered"
    assert "otp" not in r.json()


def test_failed_sms_send_does_not_leak_code(client, channels):
    channels[2].fail = True
    r = client.post("/auth/otp/request", json={"phone_number": PHONE})
    assert r.status_code == 503
    [(_, text)] = channels[2].texts
    assert _code_from(text) not in r.text
    body = r.json()
    assert body["message"] == "OTP generated (SMS not configured)"
    assert re.fullmatch(r"\d{6}", body["otp"])

    r = client.post("/auth/otp/verify", json={"phone_number": PHONE, "code": body["otp"]})
    assert r.status_code == 200


def test_otp_login_for_existing_password_user(auth_client, channels):
    auth_client.post("/auth/otp/request", json={"phone_number": PHONE})
    code = _code_from(channels[2].texts[0][1])
    r = auth_client.post("/auth/otp/verify", json={"phone_number": PHONE, "code": code, "name": "Renamed"})
    assert r.status_code == 200
    # existing account is reused, not renamed
    assert auth_client.get("/auth/me").json()["name"] == "Tester"
