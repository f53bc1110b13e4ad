import string
from http import HTTPStatus

from sqlalchemy import func, select

from cms_backend import models


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_register_login_me_logout_flow(client):
    resp = client.post(
        "/auth/register",
        json={"nome": "A", "email": "a@x.com", "password": "123456"},
    )
    assert resp.status_code == HTTPStatus.CREATED
    body = resp.json()
    assert body["user"]["is_valid"] is True
    assert body["user"]["email"] == "a@x.com"
    assert body["token"]

    login_resp = client.post("/auth/login", json={"email": "a@x.com", "password": "123456"})
    assert login_resp.status_code == HTTPStatus.OK
    token = login_resp.json()["token"]

    me_resp = client.get("/auth/me", headers=_bearer(token))
    assert me_resp.status_code == HTTPStatus.OK
    assert me_resp.json()["data"]["email"] == "a@x.com"

    logout_resp = client.post("/auth/logout", headers=_bearer(token))
    assert logout_resp.status_code == HTTPStatus.OK

    after_resp = client.get("/auth/me", headers=_bearer(token))
    assert after_resp.status_code == HTTPStatus.UNAUTHORIZED
    assert after_resp.json()["message"] == "Token invalid."


def test_register_duplicate_email_is_rejected(client, db_session, register):
    register(email="dup@example.com")

    resp = client.post(
        "/auth/register",
        json={"nome": "Again", "email": "dup@example.com", "password": "another1"},
    )
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert "email" in resp.json()["errors"]
    assert "token" not in resp.json()

    count = db_session.scalar(
        select(func.count(models.User.id)).where(models.User.email == "dup@example.com")
    )
    assert count == 1


def test_register_email_is_case_insensitive(client, register):
    register(email="case@example.com")

    resp = client.post(
        "/auth/register",
        json={"nome": "Upper", "email": "CASE@example.com", "password": "another1"},
    )
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_register_validation_errors_are_field_level(client):
    resp = client.post("/auth/register", json={"nome": "", "email": "not-an-email", "password": "123"})

    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    errors = resp.json()["errors"]
    assert {"nome", "email", "password"} <= set(errors)


def test_login_with_wrong_password_returns_401_without_token(client, register):
    register(email="user@example.com", password="right-pass")

    resp = client.post("/auth/login", json={"email": "user@example.com", "password": "wrong-pass"})

    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "token" not in resp.json()


def test_login_with_unknown_email_returns_401(client):
    resp = client.post("/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_protected_route_without_token(client):
    resp = client.get("/auth/me")

    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert resp.json()["message"] == "Token not provided."


def test_protected_route_with_garbage_token(client):
    resp = client.get("/auth/me", headers=_bearer("not.a.jwt"))

    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert resp.json()["message"] == "Token invalid."


def test_logout_only_revokes_the_presented_token(client, register):
    register(email="multi@example.com", password="secret123")
    first = client.post("/auth/login", json={"email": "multi@example.com", "password": "secret123"}).json()["token"]
    second = client.post("/auth/login", json={"email": "multi@example.com", "password": "secret123"}).json()["token"]
    assert first != second

    assert client.post("/auth/logout", headers=_bearer(first)).status_code == HTTPStatus.OK

    assert client.get("/auth/me", headers=_bearer(first)).status_code == HTTPStatus.UNAUTHORIZED
    assert client.get("/auth/me", headers=_bearer(second)).status_code == HTTPStatus.OK


def test_refresh_issues_new_token_and_retires_old_one(client, register):
    old_token = register()["token"]

    resp = client.post("/auth/refresh", headers=_bearer(old_token))
    assert resp.status_code == HTTPStatus.OK
    new_token = resp.json()["data"]["token"]
    assert new_token != old_token

    assert client.get("/auth/me", headers=_bearer(old_token)).status_code == HTTPStatus.UNAUTHORIZED
    me = client.get("/auth/me", headers=_bearer(new_token))
    assert me.status_code == HTTPStatus.OK
    assert me.json()["data"]["email"] == "author@example.com"


def test_refresh_without_token(client):
    resp = client.post("/auth/refresh")
    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert resp.json()["message"] == "Token not provided."


_B64URL = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_"


def _respell_signature(token: str) -> str:
    """Flip a padding bit in the last signature character.

    The result decodes to the same signature bytes as ``token``.
    """
    head, signature = token.rsplit(".", 1)
    last = _B64URL.index(signature[-1])
    return f"{head}.{signature[:-1]}{_B64URL[last ^ 1]}"


def test_logged_out_token_stays_revoked_under_another_spelling(client, register):
    token = register()["token"]
    respelled = _respell_signature(token)
    assert respelled != token

    assert client.post("/auth/logout", headers=_bearer(token)).status_code == HTTPStatus.OK

    assert client.get("/auth/me", headers=_bearer(respelled)).status_code == HTTPStatus.UNAUTHORIZED
    assert client.post("/auth/refresh", headers=_bearer(respelled)).status_code == HTTPStatus.UNAUTHORIZED


def test_refresh_is_one_time_under_another_spelling(client, register):
    token = register()["token"]

    assert client.post("/auth/refresh", headers=_bearer(token)).status_code == HTTPStatus.OK

    replay = client.post("/auth/refresh", headers=_bearer(_respell_signature(token)))
    assert replay.status_code == HTTPStatus.UNAUTHORIZED
    assert "data" not in replay.json()
