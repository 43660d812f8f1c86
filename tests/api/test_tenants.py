"""
Tenant API tests

Tenants, memberships, limits and API keys
"""
import pytest
from httpx import AsyncClient

from mockmate.models.user import User
from tests.conftest import DataFactory


@pytest.mark.asyncio
async def test_create_tenant(client: AsyncClient, admin_headers: dict):
    response = await client.post("/api/admin/tenants", headers=admin_headers, json={
        "tenant_id": "Acme-Corp",
        "name": "Acme Corporation",
        "domain": "interviews.acme.com",
        "limits": {"maxUsers": 2},
    })
    assert response.status_code == 201, response.text
    tenant = response.json()["data"]
    assert tenant["tenant_id"] == "acme-corp"
    assert tenant["limits"]["maxUsers"] == 2
    assert tenant["limits"]["maxApiKeys"] == 5
    assert tenant["features"]["aiInterviews"] is True

    response = await client.post("/api/admin/tenants", headers=admin_headers, json={
        "tenant_id": "acme-corp", "name": "Duplicate",
    })
    assert response.status_code == 409
    assert response.json()["code"] == "TENANT_EXISTS"


@pytest.mark.asyncio
async def test_tenant_slug_validation(client: AsyncClient, admin_headers: dict):
    for slug in ("ab", "-leading", "has space", "x" * 51):
        response = await client.post("/api/admin/tenants", headers=admin_headers, json={
            "tenant_id": slug, "name": "Bad slug",
        })
        assert response.status_code == 400, slug
        assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_get_update_and_lookup(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    tenant = await factory.create_tenant(domain="jobs.globex.com", subdomain="globex")

    # by slug and by id
    response = await client.get(f"/api/admin/tenants/{tenant.tenant_id}", headers=admin_headers)
    assert response.json()["data"]["id"] == tenant.id
    response = await client.get(f"/api/admin/tenants/{tenant.id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/admin/tenants/by-domain/jobs.globex.com", headers=admin_headers)
    assert response.json()["data"]["id"] == tenant.id
    response = await client.get("/api/admin/tenants/by-domain/globex.mockmate.app", headers=admin_headers)
    assert response.json()["data"]["id"] == tenant.id
    response = await client.get("/api/admin/tenants/by-domain/unknown.example.com", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "TENANT_NOT_FOUND"

    response = await client.put(f"/api/admin/tenants/{tenant.id}", headers=admin_headers, json={
        "status": "suspended", "limits": {"maxUsers": 10},
    })
    data = response.json()["data"]
    assert data["status"] == "suspended"
    assert data["limits"]["maxUsers"] == 10
    assert data["limits"]["maxApiKeys"] == 5

    response = await client.get("/api/admin/tenants", headers=admin_headers, params={"status": "suspended"})
    assert response.json()["data"]["total"] == 1


@pytest.mark.asyncio
async def test_memberships_and_limits(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    tenant = await factory.create_tenant(limits={"maxUsers": 1, "maxApiKeys": 5})
    first = await factory.create_user()
    second = await factory.create_user()
    base = f"/api/admin/tenants/{tenant.tenant_id}"

    response = await client.post(f"{base}/users", headers=admin_headers, json={"user_id": first.id, "role": "owner"})
    assert response.status_code == 201
    assert response.json()["data"]["role"] == "owner"
    assert (await factory.get(User, first.id)).tenant_id == tenant.id

    response = await client.post(f"{base}/users", headers=admin_headers, json={"user_id": first.id})
    assert response.status_code == 409
    assert response.json()["code"] == "TENANT_USER_EXISTS"

    response = await client.post(f"{base}/users", headers=admin_headers, json={"user_id": second.id})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "TENANT_LIMIT_EXCEEDED"
    assert body["data"]["limit"] == 1

    response = await client.get(f"{base}/users", headers=admin_headers)
    assert [m["email"] for m in response.json()["data"]] == [first.email]

    response = await client.get(f"/api/admin/tenants/users/{first.id}/tenants", headers=admin_headers)
    assert response.json()["data"][0]["tenant_id"] == tenant.tenant_id

    response = await client.get(f"{base}/limits", headers=admin_headers)
    limits = response.json()["data"]["limits"]
    assert limits["maxUsers"]["allowed"] is False
    assert limits["maxApiKeys"]["remaining"] == 5

    response = await client.get(f"{base}/stats", headers=admin_headers)
    assert response.json()["data"]["users"] == 1
    assert response.json()["data"]["user_limit_usage"] == 100.0

    # Tenants with members cannot be deleted
    response = await client.delete(base, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "TENANT_HAS_USERS"

    response = await client.delete(f"{base}/users/{first.id}", headers=admin_headers)
    assert response.status_code == 200
    assert (await factory.get(User, first.id)).tenant_id is None

    response = await client.delete(base, headers=admin_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_api_keys(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    tenant = await factory.create_tenant()
    base = f"/api/admin/tenants/{tenant.tenant_id}/api-keys"

    response = await client.post(base, headers=admin_headers, json={"name": "CI", "permissions": ["sessions:read"]})
    assert response.status_code == 201
    created = response.json()["data"]
    raw_key = created["api_key"]
    assert raw_key.startswith(tenant.tenant_id[:4] + "_")
    assert created["key_prefix"] == raw_key[:8]

    # The raw key is never listed again
    response = await client.get(base, headers=admin_headers)
    keys = response.json()["data"]
    assert len(keys) == 1
    assert "api_key" not in keys[0]
    assert "key_hash" not in keys[0]

    response = await client.post("/api/admin/tenants/api-keys/validate", headers=admin_headers, json={"api_key": raw_key})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["valid"] is True
    assert data["tenant"]["id"] == tenant.id
    assert data["key"]["last_used_at"] is not None

    response = await client.delete(f"{base}/{created['id']}", headers=admin_headers)
    assert response.json()["data"]["is_active"] is False

    response = await client.post("/api/admin/tenants/api-keys/validate", headers=admin_headers, json={"api_key": raw_key})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_API_KEY"


@pytest.mark.asyncio
async def test_api_key_limit(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    tenant = await factory.create_tenant(limits={"maxUsers": 100, "maxApiKeys": 1})
    base = f"/api/admin/tenants/{tenant.tenant_id}/api-keys"

    response = await client.post(base, headers=admin_headers, json={"name": "first"})
    assert response.status_code == 201
    response = await client.post(base, headers=admin_headers, json={"name": "second"})
    assert response.status_code == 400
    assert response.json()["code"] == "TENANT_LIMIT_EXCEEDED"


@pytest.mark.asyncio
async def test_suspended_tenant_keys_are_rejected(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    tenant = await factory.create_tenant()
    response = await client.post(
        f"/api/admin/tenants/{tenant.tenant_id}/api-keys", headers=admin_headers, json={"name": "ops"}
    )
    raw_key = response.json()["data"]["api_key"]
    await client.put(f"/api/admin/tenants/{tenant.id}", headers=admin_headers, json={"status": "suspended"})

    response = await client.post("/api/admin/tenants/api-keys/validate", headers=admin_headers, json={"api_key": raw_key})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_global_stats(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    await factory.create_tenant()
    await factory.create_tenant(status="inactive")

    response = await client.get("/api/admin/tenants/stats", headers=admin_headers)
    data = response.json()["data"]
    assert data["total_tenants"] == 2
    assert data["by_status"]["inactive"] == 1
