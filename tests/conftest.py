import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        admin_name="Site Admin",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def database():
    return mongomock.MongoClient()["catalog_test"]


@pytest.fixture
def client(settings, database):
    with TestClient(create_app(settings, database)) as c:
        yield c


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/users/auth", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"x-auth-token": response.json()["token"]}


@pytest.fixture
def user_headers(client):
    response = client.post(
        "/api/users/create",
        json={"name": "Regular Joe", "email": "joe@example.com", "password": "joe-pass"},
    )
    assert response.status_code == 200
    return {"x-auth-token": response.json()["token"]}
