"""
OTP API tests
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from mockmate.crud import otp_crud
from mockmate.models.base import utc_now
from mockmate.models.user import User
from tests.conftest import PASSWORD, DataFactory


async def active_code(factory: DataFactory, user: User, otp_type: str) -> str:
    otp = await otp_crud.get_active(factory.db, user.id, otp_type)
    assert otp is not None
    return otp.otp_code


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


@pytest.mark.asyncio
async def test_generate_and_verify(client: AsyncClient, factory: DataFactory, user: User, user_headers: dict):
    response = await client.post("/api/otp/generate", headers=user_headers, json={"otp_type": "password_change"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["otp_type"] == "password_change"
    assert data["expires_in_minutes"] == 15
    assert data["email_sent"] is False

    code = await active_code(factory, user, "password_change")
    assert len(code) == 6 and code.isdigit()

    response = await client.post("/api/otp/verify", headers=user_headers, json={
        "otp_code": code, "otp_type": "password_change",
    })
    assert response.status_code == 200
    assert response.json()["data"] == {"verified": True, "otp_type": "password_change"}

    # Used codes cannot be replayed
    response = await client.post("/api/otp/verify", headers=user_headers, json={
        "otp_code": code, "otp_type": "password_change",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "OTP_NOT_FOUND"


@pytest.mark.asyncio
async def test_email_verification_codes_last_thirty_minutes(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/otp/generate", headers=user_headers, json={"otp_type": "email_verification"})
    assert response.json()["data"]["expires_in_minutes"] == 30


@pytest.mark.asyncio
async def test_wrong_code_counts_attempts(client: AsyncClient, factory: DataFactory, user: User, user_headers: dict):
    await client.post("/api/otp/generate", headers=user_headers, json={"otp_type": "login_2fa"})
    code = await active_code(factory, user, "login_2fa")

    for remaining in (4, 3, 2, 1, 0):
        response = await client.post("/api/otp/verify", headers=user_headers, json={
            "otp_code": wrong_code(code), "otp_type": "login_2fa",
        })
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OTP"
        assert response.json()["data"]["attempts_remaining"] == remaining

    # Even the right code is refused once attempts run out
    response = await client.post("/api/otp/verify", headers=user_headers, json={
        "otp_code": code, "otp_type": "login_2fa",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "MAX_ATTEMPTS_EXCEEDED"


@pytest.mark.asyncio
async def test_expired_code(client: AsyncClient, factory: DataFactory, user: User, user_headers: dict):
    await otp_crud.replace(
        factory.db,
        user_id=user.id,
        email=user.email,
        otp_type="password_reset",
        code="123456",
        expires_at=utc_now() - timedelta(minutes=1),
        max_attempts=5,
    )
    await factory.db.commit()

    response = await client.post("/api/otp/verify", headers=user_headers, json={
        "otp_code": "123456", "otp_type": "password_reset",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "OTP_EXPIRED"


@pytest.mark.asyncio
async def test_resend_replaces_previous_code(
    client: AsyncClient, factory: DataFactory, user: User, user_headers: dict
):
    await client.post("/api/otp/generate", headers=user_headers, json={"otp_type": "login_2fa"})
    await client.post("/api/otp/resend", headers=user_headers, json={"otp_type": "login_2fa"})

    from sqlalchemy import func, select
    from mockmate.models.verification import OTPCode
    count = await factory.db.scalar(
        select(func.count()).select_from(OTPCode).where(OTPCode.user_id == user.id)
    )
    assert count == 1


@pytest.mark.asyncio
async def test_status(client: AsyncClient, user_headers: dict):
    response = await client.get("/api/otp/status/login_2fa", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["data"]["has_active_otp"] is False

    await client.post("/api/otp/generate", headers=user_headers, json={"otp_type": "login_2fa"})
    response = await client.get("/api/otp/status/login_2fa", headers=user_headers)
    data = response.json()["data"]
    assert data["has_active_otp"] is True
    assert data["attempts_remaining"] == 5

    response = await client.get("/api/otp/status/sms", headers=user_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_OTP_TYPE"


@pytest.mark.asyncio
async def test_invalid_type_is_rejected(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/otp/generate", headers=user_headers, json={"otp_type": "sms"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_admin_endpoints(client: AsyncClient, user_headers: dict, admin_headers: dict):
    response = await client.get("/api/otp/admin/stats", headers=user_headers)
    assert response.status_code == 403

    response = await client.get("/api/otp/admin/stats", headers=admin_headers)
    assert response.status_code == 200
    assert "by_type" in response.json()["data"]

    response = await client.post("/api/otp/admin/cleanup", headers=admin_headers)
    assert response.status_code == 200


# ==================== Email-keyed flows ====================

@pytest.mark.asyncio
async def test_verify_email_with_code(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user(is_verified=False)

    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.json()["code"] == "EMAIL_NOT_VERIFIED"

    response = await client.post("/api/otp/send-email-verification", json={"email": user.email.upper()})
    assert response.status_code == 200
    assert response.json()["data"] == {"already_verified": False}
    code = await active_code(factory, user, "email_verification")

    response = await client.post("/api/otp/verify-email", json={"email": user.email, "otp_code": wrong_code(code)})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_OTP"
    assert response.json()["data"]["attempts_remaining"] == 4

    response = await client.post("/api/otp/verify-email", json={"email": user.email, "otp_code": code})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["is_verified"] is True
    assert (await factory.get(User, user.id)).is_verified is True

    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 200

    response = await client.post("/api/otp/verify-email", json={"email": user.email, "otp_code": code})
    assert response.status_code == 400
    assert response.json()["code"] == "EMAIL_ALREADY_VERIFIED"


@pytest.mark.asyncio
async def test_verify_email_unknown_account(client: AsyncClient):
    response = await client.post("/api/otp/send-email-verification", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert response.json()["data"] == {"already_verified": False}

    response = await client.post("/api/otp/verify-email", json={"email": "ghost@example.com", "otp_code": "123456"})
    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_reset_password_with_code(client: AsyncClient, factory: DataFactory):
    user = await factory.create_user()
    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    refresh_token = response.json()["data"]["refresh_token"]

    locked = await factory.get(User, user.id)
    locked.failed_login_attempts = 5
    locked.locked_until = utc_now() + timedelta(minutes=30)
    await factory.db.commit()

    response = await client.post("/api/otp/send-password-reset", json={"email": user.email})
    assert response.status_code == 200
    assert response.json()["message"] == "If the email exists, a reset code has been sent"
    code = await active_code(factory, user, "password_reset")

    response = await client.post("/api/otp/reset-password", json={
        "email": user.email, "otp_code": code, "new_password": "weak",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await client.post("/api/otp/reset-password", json={
        "email": user.email, "otp_code": code, "new_password": "N3w-Passw0rd",
    })
    assert response.status_code == 200

    stored = await factory.get(User, user.id)
    assert stored.failed_login_attempts == 0
    assert stored.locked_until is None

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 401

    response = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 401
    response = await client.post("/api/auth/login", json={"email": user.email, "password": "N3w-Passw0rd"})
    assert response.status_code == 200

    # The code is single use
    response = await client.post("/api/otp/reset-password", json={
        "email": user.email, "otp_code": code, "new_password": "An0ther-Pass",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "OTP_NOT_FOUND"


@pytest.mark.asyncio
async def test_send_password_reset_hides_unknown_accounts(client: AsyncClient):
    response = await client.post("/api/otp/send-password-reset", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert response.json()["message"] == "If the email exists, a reset code has been sent"
