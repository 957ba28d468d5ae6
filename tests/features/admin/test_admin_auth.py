from datetime import timedelta

import pytest

from cwv_auditor.features.admin.utils.security import create_access_token, decode_access_token

CREDENTIALS = {"email": "admin@example.com", "password": "securepassword123"}


def login(client):
    response = client.post("/api/v1/admin/login", json=CREDENTIALS)
    assert response.status_code == 200
    return response.json()["data"]["access_token"]


def test_login_returns_bearer_token(client):
    response = client.post("/api/v1/admin/login", json=CREDENTIALS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token_type"] == "bearer"
    payload = decode_access_token(data["access_token"])
    assert payload["is_admin"] is True
    assert payload["email"] == "admin@example.com"


def test_login_is_case_insensitive_on_email(client):
    response = client.post(
        "/api/v1/admin/login", json={**CREDENTIALS, "email": "Admin@Example.com"}
    )

    assert response.status_code == 200


def test_login_wrong_password(client):
    response = client.post("/api/v1/admin/login", json={**CREDENTIALS, "password": "nope"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_stats_requires_token(client):
    response = client.get("/api/v1/admin/stats")

    assert response.status_code in (401, 403)


def test_stats_rejects_garbage_token(client):
    response = client.get("/api/v1/admin/stats", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_stats_rejects_expired_token(client):
    token = create_access_token(
        {"sub": "admin@example.com", "email": "admin@example.com", "is_admin": True},
        expires_delta=timedelta(seconds=-1),
    )

    response = client.get("/api/v1/admin/stats", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired"


def test_stats_rejects_non_admin_token(client):
    token = create_access_token({"sub": "someone", "email": "admin@example.com"})

    response = client.get("/api/v1/admin/stats", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_stats_after_recording_audits(client):
    client.post(
        "/api/v1/audits/record",
        json={"domain": "stats.example.com", "email": "stats@example.com", "pages_analyzed": 9},
    )
    token = login(client)

    response = client.get("/api/v1/admin/stats", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_audits"] >= 1
    assert data["total_pages_analyzed"] >= 9
    assert "stats@example.com" in data["emails"]


@pytest.mark.parametrize("token", ["", "Basic abc"])
def test_stats_malformed_header(client, token):
    response = client.get("/api/v1/admin/stats", headers={"Authorization": token})

    assert response.status_code in (401, 403)
