"""
Auth provider and security rules admin API tests
"""
import pytest
from httpx import AsyncClient


# ==================== Auth providers ====================

@pytest.mark.asyncio
async def test_seeded_providers(client: AsyncClient, admin_headers: dict):
    response = await client.get("/api/admin/auth-providers", headers=admin_headers)
    assert response.status_code == 200
    ids = {p["provider_id"] for p in response.json()["data"]}
    assert {"google.com", "github.com", "email"} <= ids

    response = await client.get("/api/admin/auth-providers/enabled", headers=admin_headers)
    assert [p["provider_id"] for p in response.json()["data"]] == ["email"]

    response = await client.get("/api/admin/auth-providers/stats", headers=admin_headers)
    stats = response.json()["data"]
    assert stats["total_providers"] == 3
    assert stats["enabled_providers"] == 1
    assert stats["provider_types"]["oauth"] == 2


@pytest.mark.asyncio
async def test_providers_require_admin(client: AsyncClient, user_headers: dict):
    response = await client.get("/api/admin/auth-providers", headers=user_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_provider(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/auth-providers", headers=admin_headers, json={
        "provider_id": "okta", "provider_name": "Okta", "provider_type": "kerberos",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PROVIDER_TYPE"

    response = await client.post("/api/admin/auth-providers", headers=admin_headers, json={
        "provider_id": "okta", "provider_name": "Okta", "provider_type": "oidc",
        "scopes": ["openid"],
    })
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["is_enabled"] is False
    assert data["has_secrets"] is False

    response = await client.post("/api/admin/auth-providers", headers=admin_headers, json={
        "provider_id": "okta", "provider_name": "Okta again", "provider_type": "oidc",
    })
    assert response.status_code == 409
    assert response.json()["code"] == "PROVIDER_EXISTS"

    response = await client.put("/api/admin/auth-providers/okta", headers=admin_headers, json={
        "provider_name": "Okta Workforce",
    })
    assert response.json()["data"]["provider_name"] == "Okta Workforce"

    response = await client.delete("/api/admin/auth-providers/okta", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get("/api/admin/auth-providers/okta", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "PROVIDER_NOT_FOUND"


@pytest.mark.asyncio
async def test_provider_secrets_and_self_test(client: AsyncClient, admin_headers: dict):
    base = "/api/admin/auth-providers/google.com"

    response = await client.post(f"{base}/test", headers=admin_headers)
    result = response.json()["data"]
    assert result["provider_id"] == "google.com"
    assert result["passed"] is False

    response = await client.put(f"{base}/secrets", headers=admin_headers, json={
        "secrets": {"client_id": "google-client", "client_secret": "shh"},
    })
    assert response.status_code == 200
    assert response.json()["data"]["has_secrets"] is True
    assert response.json()["data"]["keys"] == ["client_id", "client_secret"]

    response = await client.get(base, headers=admin_headers)
    provider = response.json()["data"]
    assert provider["has_secrets"] is True
    assert "shh" not in response.text

    response = await client.post(f"{base}/test", headers=admin_headers)
    assert response.json()["data"]["passed"] is True

    response = await client.get(f"{base}/client-config", headers=admin_headers)
    config = response.json()["data"]
    assert config["config"]["client_id"] == "google-client"
    assert "token_url" not in config["config"]
    assert "shh" not in response.text


@pytest.mark.asyncio
async def test_enable_and_disable_provider(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/auth-providers/github.com/enable", headers=admin_headers)
    assert response.json()["data"]["is_enabled"] is True

    response = await client.get("/api/admin/auth-providers/enabled", headers=admin_headers)
    assert {p["provider_id"] for p in response.json()["data"]} == {"email", "github.com"}

    response = await client.post("/api/admin/auth-providers/github.com/disable", headers=admin_headers)
    assert response.json()["data"]["is_enabled"] is False


def test_secrets_round_trip_with_other_key():
    from mockmate.services.auth_provider_service import AuthProviderService, build_fernet

    writer = AuthProviderService(build_fernet("key-one"))
    token = writer.encrypt_secrets({"client_secret": "abc"})
    assert writer.decrypt_secrets(token) == {"client_secret": "abc"}
    # A rotated key cannot read old secrets
    assert AuthProviderService(build_fernet("key-two")).decrypt_secrets(token) == {}


# ==================== Security rules ====================

async def template_id(client: AsyncClient, headers: dict, name: str) -> str:
    response = await client.get("/api/admin/firebase-rules/templates", headers=headers)
    return next(t["id"] for t in response.json()["data"] if t["name"] == name)


@pytest.mark.asyncio
async def test_generate_rules(client: AsyncClient, admin_headers: dict):
    tid = await template_id(client, admin_headers, "Tenant Isolation")

    response = await client.post(
        f"/api/admin/firebase-rules/templates/{tid}/generate",
        headers=admin_headers,
        json={"variables": {"TENANT_ID": "acme"}},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert "match /tenants/acme/" in data["rules"]
    assert "'admin'" in data["rules"]
    assert "${" not in data["rules"]
    assert data["variables"] == {"TENANT_ID": "acme", "ADMIN_ROLE": "admin"}


@pytest.mark.asyncio
async def test_validate_rules(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/firebase-rules/validate", headers=admin_headers, json={
        "rules_content": "service cloud.firestore {\n  allow read: if isOwner()\n}",
    })
    data = response.json()["data"]
    assert data["is_valid"] is False
    assert data["lines_checked"] == 3
    assert any("rules_version" in e for e in data["errors"])
    assert any("semicolon" in w for w in data["warnings"])
    assert any("isOwner" in w for w in data["warnings"])


@pytest.mark.asyncio
async def test_deploy_rules(client: AsyncClient, admin_headers: dict, admin):
    response = await client.post("/api/admin/firebase-rules/deploy", headers=admin_headers, json={})
    assert response.status_code == 400
    assert response.json()["code"] == "RULES_REQUIRED"

    response = await client.post("/api/admin/firebase-rules/deploy", headers=admin_headers, json={
        "rules_content": "allow read;",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_RULES"

    tid = await template_id(client, admin_headers, "Basic Authentication Rules")
    response = await client.post("/api/admin/firebase-rules/deploy", headers=admin_headers, json={
        "template_id": tid,
    })
    assert response.status_code == 200
    deployment = response.json()["data"]
    assert deployment["dry_run"] is True
    assert deployment["status"] == "validated"
    assert deployment["deployed_by"] == admin.id

    response = await client.get("/api/admin/firebase-rules/deployments", headers=admin_headers)
    assert [d["id"] for d in response.json()["data"]] == [deployment["id"]]


@pytest.mark.asyncio
async def test_template_crud(client: AsyncClient, admin_headers: dict):
    payload = {
        "name": "Read only",
        "category": "custom",
        "rules_content": "rules_version = '2';\nservice cloud.firestore {}",
    }
    response = await client.post("/api/admin/firebase-rules/templates", headers=admin_headers, json=payload)
    assert response.status_code == 201
    tid = response.json()["data"]["id"]

    response = await client.post("/api/admin/firebase-rules/templates", headers=admin_headers, json=payload)
    assert response.status_code == 409
    assert response.json()["code"] == "TEMPLATE_EXISTS"

    response = await client.get(
        "/api/admin/firebase-rules/templates", headers=admin_headers, params={"category": "custom"}
    )
    assert [t["name"] for t in response.json()["data"]] == ["Read only"]

    response = await client.put(
        f"/api/admin/firebase-rules/templates/{tid}", headers=admin_headers, json={"description": "No writes"}
    )
    assert response.json()["data"]["description"] == "No writes"

    response = await client.delete(f"/api/admin/firebase-rules/templates/{tid}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get(f"/api/admin/firebase-rules/templates/{tid}", headers=admin_headers)
    assert response.json()["code"] == "TEMPLATE_NOT_FOUND"
