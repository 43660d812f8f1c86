"""
Admin API tests

Dashboard, user management, sessions, alerts, email templates and analytics
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from mockmate.models.base import utc_now
from mockmate.models.user import User
from tests.conftest import DataFactory


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client: AsyncClient, user_headers: dict):
    for path in ("/api/admin/dashboard", "/api/admin/users", "/api/admin/sessions", "/api/admin/alerts"):
        response = await client.get(path, headers=user_headers)
        assert response.status_code == 403, path
        assert response.json()["code"] == "ADMIN_REQUIRED"

    response = await client.get("/api/admin/dashboard")
    assert response.status_code == 401


# ==================== Dashboard ====================

@pytest.mark.asyncio
async def test_dashboard(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    await factory.create_session(user)
    await factory.create_session(user, status="completed")
    await factory.create_payment(user, status="completed")

    response = await client.get("/api/admin/dashboard", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["users"]["total"] == 2
    assert data["sessions"]["total"] == 2
    assert data["sessions"]["by_status"]["completed"] == 1
    assert data["revenue"]["total_cents"] == 49900
    assert data["sockets"]["total_connections"] == 0


@pytest.mark.asyncio
async def test_system_status(client: AsyncClient, admin_headers: dict):
    response = await client.get("/api/admin/system/status", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["database"] == "connected"
    assert data["redis"] == "not_configured"
    assert data["email_configured"] is False
    assert data["environment"] == "testing"


@pytest.mark.asyncio
async def test_dashboard_activity(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    from mockmate.services.analytics_service import analytics_service

    await analytics_service.track_user_activity(factory.db, user.id, "page_view", {"page": "/pricing"})
    await factory.db.commit()

    response = await client.get("/api/admin/dashboard/activity", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"][0]["action_type"] == "page_view"


# ==================== Users ====================

@pytest.mark.asyncio
async def test_list_and_search_users(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    await factory.create_user(first_name="Grace", last_name="Hopper")
    await factory.create_user(is_active=False)

    response = await client.get("/api/admin/users", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["total"] == 3

    response = await client.get("/api/admin/users", headers=admin_headers, params={"search": "hopper"})
    items = response.json()["data"]["items"]
    assert [u["first_name"] for u in items] == ["Grace"]

    response = await client.get("/api/admin/users", headers=admin_headers, params={"status": "inactive"})
    assert response.json()["data"]["total"] == 1


@pytest.mark.asyncio
async def test_user_detail(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    await factory.create_session(user)

    response = await client.get(f"/api/admin/users/{user.id}", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["email"] == user.email
    assert data["session_count"] == 1
    assert data["payment_count"] == 0

    response = await client.get(f"/api/admin/users/{user.id}/sessions", headers=admin_headers)
    assert response.json()["data"]["total"] == 1

    response = await client.get("/api/admin/users/missing", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_user(client: AsyncClient, factory: DataFactory, user: User, admin: User, admin_headers: dict):
    response = await client.put(f"/api/admin/users/{user.id}", headers=admin_headers, json={
        "role": "admin", "first_name": "Promoted",
    })
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "admin"

    response = await client.put(f"/api/admin/users/{user.id}", headers=admin_headers, json={"role": "root"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await client.put(f"/api/admin/users/{admin.id}", headers=admin_headers, json={"is_active": False})
    assert response.status_code == 400
    assert response.json()["code"] == "CANNOT_MODIFY_SELF"

    response = await client.put(f"/api/admin/users/{admin.id}", headers=admin_headers, json={"role": "user"})
    assert response.json()["code"] == "CANNOT_MODIFY_SELF"


@pytest.mark.asyncio
async def test_adjust_credits(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    response = await client.post(f"/api/admin/users/{user.id}/credits", headers=admin_headers, json={
        "amount": 10, "reason": "Conference giveaway",
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["previous_credits"] == 5
    assert data["credits"] == 15
    assert data["amount"] == 10
    assert data["transaction_id"]

    response = await client.post(f"/api/admin/users/{user.id}/credits", headers=admin_headers, json={
        "amount": -20, "reason": "Too much",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CREDIT_AMOUNT"

    response = await client.post(f"/api/admin/users/{user.id}/credits", headers=admin_headers, json={
        "amount": 0, "reason": "Nothing",
    })
    assert response.json()["code"] == "INVALID_CREDIT_AMOUNT"

    assert (await factory.get(User, user.id)).credits == 15


@pytest.mark.asyncio
async def test_unlock_user(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    locked = await factory.create_user(failed_login_attempts=5, locked_until=utc_now() + timedelta(minutes=30))

    response = await client.post(f"/api/admin/users/{locked.id}/unlock", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["failed_login_attempts"] == 0

    response = await client.post("/api/auth/login", json={"email": locked.email, "password": "Passw0rd!"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, factory: DataFactory, user: User, admin: User, admin_headers: dict):
    response = await client.delete(f"/api/admin/users/{admin.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "CANNOT_DELETE_SELF"

    response = await client.delete(f"/api/admin/users/{user.id}", headers=admin_headers)
    assert response.status_code == 200
    stored = await factory.get(User, user.id)
    assert stored.is_active is False
    assert stored.deleted_at is not None


# ==================== Sessions ====================

@pytest.mark.asyncio
async def test_admin_sessions(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    other = await factory.create_user()
    session = await factory.create_session(user, status="active")
    await factory.create_session(other)

    response = await client.get("/api/admin/sessions", headers=admin_headers)
    assert response.json()["data"]["total"] == 2

    response = await client.get("/api/admin/sessions", headers=admin_headers, params={"user_id": user.id})
    assert response.json()["data"]["total"] == 1

    response = await client.get("/api/admin/sessions/stats", headers=admin_headers)
    assert response.json()["data"]["by_status"]["active"] == 1

    response = await client.get(f"/api/admin/sessions/{session.id}", headers=admin_headers)
    assert response.json()["data"]["messages"] == []

    response = await client.delete(f"/api/admin/sessions/{session.id}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get(f"/api/admin/sessions/{session.id}", headers=admin_headers)
    assert response.status_code == 404


# ==================== Alerts ====================

@pytest.mark.asyncio
async def test_admin_alert_crud(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    response = await client.post("/api/admin/alerts", headers=admin_headers, json={
        "title": "Maintenance",
        "message": "Down for upgrades at midnight",
        "alert_type": "warning",
        "priority": "high",
    })
    assert response.status_code == 201
    alert = response.json()["data"]
    assert alert["created_by"] is not None

    response = await client.put(f"/api/admin/alerts/{alert['id']}", headers=admin_headers, json={"priority": "critical"})
    assert response.json()["data"]["priority"] == "critical"

    await client.put(f"/api/alerts/{alert['id']}/read", headers=factory.headers(user))
    response = await client.get(f"/api/admin/alerts/{alert['id']}/analytics", headers=admin_headers)
    data = response.json()["data"]
    assert data["targeted_users"] == 2
    assert data["read"] == 1

    response = await client.get("/api/admin/alerts", headers=admin_headers, params={"status": "active"})
    assert response.json()["data"]["total"] == 1

    response = await client.delete(f"/api/admin/alerts/{alert['id']}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get("/api/alerts", headers=factory.headers(user))
    assert response.json()["data"]["alerts"] == []


@pytest.mark.asyncio
async def test_admin_alert_validation(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/alerts", headers=admin_headers, json={
        "title": "Targeted", "message": "Hi", "target_type": "specific",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await client.post("/api/admin/alerts", headers=admin_headers, json={
        "title": "Roles", "message": "Hi", "target_type": "role",
    })
    assert response.status_code == 400

    response = await client.get("/api/admin/alerts/templates", headers=admin_headers)
    ids = [t["id"] for t in response.json()["data"]]
    assert "low_credits" in ids


# ==================== Email templates ====================

@pytest.mark.asyncio
async def test_email_templates(client: AsyncClient, admin_headers: dict):
    response = await client.get("/api/admin/email-templates", headers=admin_headers)
    assert response.status_code == 200
    names = {t["name"] for t in response.json()["data"]}
    assert {"email_verification", "password_reset", "otp_code"} <= names

    response = await client.get("/api/admin/email-templates/otp_code", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["source"] == "file"

    response = await client.get("/api/admin/email-templates/nope", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "TEMPLATE_NOT_FOUND"


@pytest.mark.asyncio
async def test_email_template_override_and_preview(client: AsyncClient, admin_headers: dict):
    response = await client.put("/api/admin/email-templates/welcome", headers=admin_headers, json={
        "subject": "Hello {{FIRST_NAME}}",
        "html_body": "<p>Welcome aboard, {{FIRST_NAME}}!</p>",
    })
    assert response.status_code == 200

    response = await client.post(
        "/api/admin/email-templates/welcome/preview",
        headers=admin_headers,
        json={"variables": {"FIRST_NAME": "Ada"}},
    )
    data = response.json()["data"]
    assert data["source"] == "database"
    assert data["subject"] == "Hello Ada"
    assert data["text"] == "Welcome aboard, Ada!"
    assert data["variables"] == ["FIRST_NAME"]

    response = await client.delete("/api/admin/email-templates/welcome", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get("/api/admin/email-templates/welcome", headers=admin_headers)
    assert response.json()["data"]["source"] == "file"


@pytest.mark.asyncio
async def test_test_email_without_smtp(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/email-templates/test", headers=admin_headers, json={
        "to": "qa@example.com", "template_name": "welcome",
    })
    assert response.status_code == 200
    assert response.json()["data"]["success"] is False

    response = await client.get("/api/admin/email-templates/logs", headers=admin_headers)
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["status"] == "skipped"
    assert data["by_status"]["skipped"] == 1


# ==================== Analytics ====================

@pytest.mark.asyncio
async def test_analytics(client: AsyncClient, user_headers: dict, admin_headers: dict):
    response = await client.post("/api/analytics/track", headers=user_headers, json={
        "action_type": "page_view", "details": {"page": "/dashboard"},
    })
    assert response.status_code == 200
    assert response.json()["data"]["tracked"] is True

    response = await client.get("/api/admin/analytics/activities", headers=admin_headers)
    assert response.json()["data"]["total"] == 1

    response = await client.get("/api/admin/analytics/dashboard", headers=admin_headers, params={"days": 7})
    assert response.status_code == 200

    response = await client.get("/api/admin/analytics/realtime", headers=admin_headers)
    assert response.status_code == 200

    response = await client.post("/api/admin/analytics/cleanup", headers=admin_headers)
    assert response.status_code == 200
