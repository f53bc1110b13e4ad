import os
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

# Point the app at an in-memory database before importing it.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from cms_backend import models  # noqa: E402
from cms_backend.database import Base, SessionLocal, engine, get_db  # noqa: E402
from cms_backend.main import app  # noqa: E402
from cms_backend.security import hash_password  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    """Reset schema for each test for isolation."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db_session(clean_db):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db_session) -> Generator[TestClient, None, None]:
    """FastAPI test client whose requests share the test's session.

    Sharing the session lets tests inspect rows right after a request
    without a second connection to the in-memory database.
    """

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def register(client) -> Callable[..., dict]:
    """Register a user through the API and return the response body."""

    def _register(email: str = "author@example.com", password: str = "secret123", nome: str = "Author"):
        resp = client.post(
            "/auth/register",
            json={"nome": nome, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture()
def auth_headers(register) -> dict:
    body = register()
    return {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture()
def user_factory(db_session):
    """Create users directly in the database, bypassing the API."""

    def _create_user(email: str, nome: str = "Someone", password: str = "secret123", **fields) -> models.User:
        user = models.User(email=email, nome=nome, password_hash=hash_password(password), **fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture()
def create_post(client, auth_headers):
    def _create_post(title: str = "Hello", content: str = "World", tags=None, **extra) -> dict:
        payload = {"title": title, "content": content, "tags": tags or [], **extra}
        resp = client.post("/posts", json=payload, headers=auth_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create_post
