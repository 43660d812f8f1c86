"""
Email verification API tests
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from mockmate.crud import email_token_crud
from mockmate.models.base import utc_now
from mockmate.models.user import User
from mockmate.services.verification_service import verification_service
from tests.conftest import DataFactory


@pytest.mark.asyncio
async def test_verify_invalid_token(client: AsyncClient):
    response = await client.post("/api/email-verification/verify", json={"token": "does-not-exist"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_verify_expired_token(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user(is_verified=False)
    await email_token_crud.replace_for_user(
        factory.db, user.id, "expired-token", utc_now() - timedelta(minutes=1)
    )
    await factory.db.commit()

    response = await client.post("/api/email-verification/verify", json={"token": "expired-token"})
    assert response.status_code == 400
    assert response.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
async def test_verify_marks_token_used(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user(is_verified=False)
    issued = await verification_service.issue(factory.db, user)
    await factory.db.commit()

    response = await client.post("/api/email-verification/verify", json={"token": issued["token"]})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["is_verified"] is True

    stored = await factory.get(User, user.id)
    assert stored.is_verified is True

    # A used token cannot be replayed
    response = await client.post("/api/email-verification/verify", json={"token": issued["token"]})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_resend_same_answer_for_unknown_email(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user(is_verified=False)

    unknown = await client.post("/api/email-verification/resend", json={"email": "ghost@example.com"})
    known = await client.post("/api/email-verification/resend", json={"email": user.email})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json()["message"] == known.json()["message"]
    assert known.json()["data"]["already_verified"] is False

    record = await email_token_crud.get_by(factory.db, user_id=user.id)
    assert record is not None


@pytest.mark.asyncio
async def test_resend_for_verified_account(client: AsyncClient, user: User):
    response = await client.post("/api/email-verification/resend", json={"email": user.email})
    assert response.status_code == 200
    assert response.json()["data"]["already_verified"] is True


@pytest.mark.asyncio
async def test_status(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user(is_verified=False)
    await verification_service.issue(factory.db, user)
    await factory.db.commit()

    response = await client.get("/api/email-verification/status", headers=factory.headers(user))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == user.email
    assert data["is_verified"] is False
    assert data["pending_token_expires_at"] is not None


@pytest.mark.asyncio
async def test_admin_endpoints(client: AsyncClient, user_headers: dict, admin_headers: dict):
    response = await client.get("/api/email-verification/stats", headers=user_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "ADMIN_REQUIRED"

    response = await client.get("/api/email-verification/stats", headers=admin_headers)
    assert response.status_code == 200

    response = await client.post("/api/email-verification/cleanup", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["removed"] >= 0
