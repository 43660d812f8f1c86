"""
Tenant limit and API key helper tests
"""
from mockmate.models.tenant import Tenant
from mockmate.core.security import hash_token
from mockmate.services.tenant_service import generate_api_key, tenant_service


def make_tenant(**limits) -> Tenant:
    return Tenant(tenant_id="acme", name="Acme", limits=limits)


def test_usage_below_limit_is_allowed():
    result = tenant_service.check_tenant_limits(make_tenant(maxUsers=3), "maxUsers", 2)
    assert result == {"allowed": True, "limit": 3, "usage": 2, "remaining": 1}


def test_usage_at_limit_is_rejected():
    result = tenant_service.check_tenant_limits(make_tenant(maxUsers=3), "maxUsers", 3)
    assert result["allowed"] is False
    assert result["remaining"] == 0


def test_missing_limit_uses_default():
    result = tenant_service.check_tenant_limits(make_tenant(), "maxApiKeys", 4)
    assert result["limit"] == 5
    assert result["allowed"] is True


def test_unset_limit_always_allows():
    result = tenant_service.check_tenant_limits(make_tenant(maxUsers=0), "maxUsers", 10_000)
    assert result["allowed"] is True
    assert result["limit"] is None

    result = tenant_service.check_tenant_limits(make_tenant(), "maxWidgets", 10_000)
    assert result["allowed"] is True


def test_api_key_format():
    key = generate_api_key("globex")
    prefix, secret = key.split("_", 1)
    assert prefix == "glob"
    assert len(secret) == 64
    assert generate_api_key("globex") != key
    assert hash_token(key) == hash_token(key)
    assert len(hash_token(key)) == 64
