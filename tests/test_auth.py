"""
Signup, login and token handling
"""
from datetime import timedelta

import pytest

from auth import create_access_token, hash_password, verify_password, verify_password_policy
from errors import ValidationError

SIGNUP = {"username": "newshopper", "email": "new@example.com", "password": "secret123"}


def test_signup_login_profile(client, db):
    response = client.post("/api/users", json=SIGNUP)
    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "customer"
    assert "password_hash" not in body["user"]
    assert db["user"].find_one({"email": "new@example.com"})["password_hash"] != "secret123"

    login = client.post("/api/users/auth", json={"email": "new@example.com", "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    profile = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.json()["username"] == "newshopper"
    assert "password_hash" not in profile.json()


def test_signup_as_distributor(client):
    response = client.post("/api/users", json={**SIGNUP, "role": "distributor"})
    assert response.json()["user"]["role"] == "distributor"


def test_signup_cannot_claim_admin(client):
    response = client.post("/api/users", json={**SIGNUP, "role": "admin"})
    assert response.status_code == 400


def test_duplicate_email(client):
    client.post("/api/users", json=SIGNUP)
    response = client.post("/api/users", json=SIGNUP)
    assert response.status_code == 409
    assert response.json() == {"error": "Email already registered"}


def test_weak_password(client):
    response = client.post("/api/users", json={**SIGNUP, "password": "short"})
    assert response.status_code == 400
    assert "8-64" in response.json()["error"]


def test_wrong_password(client):
    client.post("/api/users", json=SIGNUP)
    response = client.post("/api/users/auth", json={"email": "new@example.com", "password": "wrong1234"})
    assert response.status_code == 401


def test_garbage_token(client):
    response = client.get("/api/users/profile", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json() == {"error": "Could not validate credentials"}


def test_expired_token(client, customer):
    token = create_access_token({"sub": customer["id"]}, expires_delta=timedelta(minutes=-5))
    response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_token_for_deleted_user(client, db, customer):
    token = create_access_token({"sub": customer["id"]})
    db["user"].delete_many({})
    response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.parametrize("password", ["short1", "lettersonly", "12345678", "a1" * 40])
def test_password_policy(password):
    with pytest.raises(ValidationError):
        verify_password_policy(password)


def test_hash_roundtrip():
    hashed = hash_password("secret123")
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
