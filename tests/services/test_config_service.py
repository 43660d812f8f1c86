"""
Dynamic configuration service tests
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.cache import cache
from mockmate.core.exceptions import BadRequestException
from mockmate.services.config_service import (
    ConfigNotFound,
    DynamicConfigService,
    coerce_value,
    config_service,
)


class TestCoerceValue:

    def test_numbers(self):
        assert coerce_value("3", "number") == 3
        assert coerce_value("2.5", "number") == 2.5
        assert coerce_value(4.0, "number") == 4
        assert coerce_value(True, "number") == 1

    def test_booleans(self):
        assert coerce_value("yes", "boolean") is True
        assert coerce_value("Off", "boolean") is False
        assert coerce_value(0, "boolean") is False

    def test_json_and_strings(self):
        assert coerce_value('{"a": 1}', "json") == {"a": 1}
        assert coerce_value([1, 2], "json") == [1, 2]
        assert coerce_value(42, "string") == "42"
        assert coerce_value(None, "number") is None

    def test_invalid_number(self):
        with pytest.raises(ValueError):
            coerce_value("lots", "number")


@pytest.mark.asyncio
async def test_reads_go_through_the_cache(db_session: AsyncSession):
    service = DynamicConfigService(ttl=60)

    assert await service.get(db_session, "session_credit_cost") == 1
    assert service.misses == 1
    assert await service.get(db_session, "session_credit_cost") == 1
    assert service.hits == 1

    # A fresh in-process map still finds the shared cache entry
    service.reload()
    assert await service.get(db_session, "session_credit_cost") == 1
    assert service.hits == 2
    assert await cache.get(service.cache_key("session_credit_cost")) == {"value": 1}


@pytest.mark.asyncio
async def test_set_invalidates_cached_value(db_session: AsyncSession):
    assert await config_service.get(db_session, "session_credit_cost") == 1

    entry = await config_service.set(db_session, "session_credit_cost", "2", updated_by="admin-1")
    assert entry["value"] == 2
    assert entry["updated_by"] == "admin-1"
    assert await config_service.get(db_session, "session_credit_cost") == 2


@pytest.mark.asyncio
async def test_set_rejects_bad_values_and_unknown_keys(db_session: AsyncSession):
    with pytest.raises(BadRequestException) as excinfo:
        await config_service.set(db_session, "session_credit_cost", "lots")
    assert excinfo.value.code == "INVALID_CONFIG_VALUE"

    with pytest.raises(ConfigNotFound):
        await config_service.set(db_session, "no_such_key", 1)


@pytest.mark.asyncio
async def test_missing_keys_and_int_reads(db_session: AsyncSession):
    assert await config_service.get(db_session, "no_such_key") is None
    assert await config_service.get(db_session, "no_such_key", "fallback") == "fallback"
    assert await config_service.get_int(db_session, "no_such_key", 7) == 7
    assert await config_service.get_int(db_session, "new_user_starting_credits", 0) >= 0


@pytest.mark.asyncio
async def test_seed_defaults_is_idempotent(db_session: AsyncSession):
    assert await config_service.seed_defaults(db_session) == 0
