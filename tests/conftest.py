import mongomock
import pytest
from fastapi.testclient import TestClient

from planhaus.api.server import create_app


@pytest.fixture()
def db():
    """In-memory MongoDB standing in for the real server."""
    return mongomock.MongoClient()["planhaus_test"]


@pytest.fixture()
def app(db):
    return create_app(db=db)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers(client):
    session = client.post("/api/auth/demo-login").json()
    return {"Authorization": f"Bearer {session['sessionId']}"}


@pytest.fixture()
def project(client, auth_headers):
    response = client.post("/api/projects", headers=auth_headers, json={
        "name": "Our Wedding",
        "date": "2099-06-01",
        "budget": 10000,
        "guestCount": 120,
    })
    assert response.status_code == 201
    return response.json()
