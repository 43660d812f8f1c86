"""
Authentication API tests

Registration, email verification, login lockout, token rotation and password reset
"""
import pytest
from httpx import AsyncClient

from mockmate.crud import email_token_crud, password_reset_crud, user_crud
from mockmate.models.user import User
from tests.conftest import DataFactory, PASSWORD


@pytest.mark.asyncio
async def test_register_verify_login_flow(client: AsyncClient, factory: DataFactory):
    """Register -> blocked login -> verify email -> login -> me"""

    # 1. Register
    response = await client.post("/api/auth/register", json={
        "email": "Jane.Doe@Example.com",
        "password": PASSWORD,
        "first_name": "Jane",
        "last_name": "Doe",
    })
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["code"] == 201
    user = body["data"]["user"]
    assert user["email"] == "jane.doe@example.com"
    assert user["is_verified"] is False
    assert body["data"]["requires_email_verification"] is True
    assert body["data"]["verification_email_sent"] is False  # SMTP is not configured

    # 2. Login is refused until the email is verified
    response = await client.post("/api/auth/login", json={"email": "jane.doe@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "EMAIL_NOT_VERIFIED"
    assert response.json()["data"]["can_resend_verification"] is True

    # 3. Verify with the stored token
    record = await email_token_crud.get_by(factory.db, user_id=user["id"])
    response = await client.post("/api/email-verification/verify", json={"token": record.token})
    assert response.status_code == 200
    assert response.json()["data"]["already_verified"] is False
    assert response.json()["data"]["user"]["is_verified"] is True

    # 4. Login
    response = await client.post("/api/auth/login", json={"email": "jane.doe@example.com", "password": PASSWORD})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert data["user"]["last_login"] is not None

    # 5. Current user
    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert response.status_code == 200
    assert response.json()["data"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, factory: DataFactory):
    existing = await factory.create_user()
    response = await client.post("/api/auth/register", json={
        "email": existing.email,
        "password": PASSWORD,
        "first_name": "Jane",
        "last_name": "Doe",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "USER_EXISTS"


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    response = await client.post("/api/auth/register", json={
        "email": "weak@example.com",
        "password": "password",
        "first_name": "Weak",
        "last_name": "Password",
    })
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["data"]["errors"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_login_lockout_after_failed_attempts(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user()

    for _ in range(5):
        response = await client.post("/api/auth/login", json={"email": user.email, "password": "Wrong-pass1"})
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    # The correct password no longer works while the account is locked
    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 423
    assert response.json()["code"] == "ACCOUNT_LOCKED"
    assert "locked_until" in response.json()["data"]

    stored = await factory.get(User, user.id)
    assert stored.failed_login_attempts == 5
    assert stored.locked_until is not None


@pytest.mark.asyncio
async def test_login_unknown_and_disabled(client: AsyncClient, factory: DataFactory):
    response = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"

    disabled = await factory.create_user(is_active=False)
    response = await client.post("/api/auth/login", json={"email": disabled.email, "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "ACCOUNT_DISABLED"


@pytest.mark.asyncio
async def test_refresh_rotation_and_logout(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user()
    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    tokens = response.json()["data"]

    # 1. Rotate
    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    rotated = response.json()["data"]
    assert rotated["refresh_token"] != tokens["refresh_token"]

    # 2. The replaced refresh token is rejected
    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_REFRESH_TOKEN"

    # 3. Missing token
    response = await client.post("/api/auth/refresh", json={})
    assert response.status_code == 401
    assert response.json()["code"] == "REFRESH_TOKEN_REQUIRED"

    # 4. Logout revokes the access token and the refresh token
    headers = {"Authorization": f"Bearer {rotated['access_token']}"}
    response = await client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200

    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_BLACKLISTED"

    response = await client.post("/api/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_protected_route_token_errors(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_REQUIRED"

    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user()

    # 1. Unknown emails get the same answer
    unknown = await client.post("/api/auth/password-reset-request", json={"email": "ghost@example.com"})
    known = await client.post("/api/auth/password-reset-request", json={"email": user.email})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json()["message"] == known.json()["message"]

    # 2. Reset with the stored token
    record = await password_reset_crud.get_by(factory.db, user_id=user.id)
    assert record is not None
    response = await client.post("/api/auth/password-reset", json={"token": record.token, "password": "N3wPassword"})
    assert response.status_code == 200

    # 3. The token is single use
    response = await client.post("/api/auth/password-reset", json={"token": record.token, "password": "N3wPassword"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_RESET_TOKEN"

    # 4. Old password fails, new one works
    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 401
    response = await client.post("/api/auth/login", json={"email": user.email, "password": "N3wPassword"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_registration_grants_starting_credits(client: AsyncClient, factory: DataFactory):
    from mockmate.services.config_service import config_service

    await config_service.set(factory.db, "new_user_starting_credits", 3)
    await factory.db.commit()

    response = await client.post("/api/auth/register", json={
        "email": "credits@example.com",
        "password": PASSWORD,
        "first_name": "Credit",
        "last_name": "Holder",
    })
    assert response.status_code == 201
    assert response.json()["data"]["user"]["credits"] == 3

    stored = await user_crud.get_by_email(factory.db, "credits@example.com")
    assert stored.credits == 3
