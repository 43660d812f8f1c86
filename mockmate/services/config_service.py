"""
Dynamic configuration service

Runtime settings stored in `system_config`, read through an in-process map
and the shared cache (`config:<key>`, CONFIG_CACHE_TTL seconds). Writes go to
the database and invalidate both layers.
"""
import json
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.cache import MemoryStore, cache
from mockmate.core.config import settings
from mockmate.core.exceptions import BadRequestException, ConflictException, NotFoundException
from mockmate.crud import config_crud
from mockmate.models.config import SystemConfig, ConfigCreate

MASK = "••••••••••••"

DEFAULT_CONFIGS: List[Dict[str, Any]] = [
    {
        "config_key": "new_user_starting_credits",
        "config_value": 0,
        "config_type": "number",
        "category": "credits",
        "description": "Credits granted to a newly registered user",
    },
    {
        "config_key": "low_credits_threshold",
        "config_value": 2,
        "config_type": "number",
        "category": "credits",
        "description": "Remaining credits at which a low-credit alert is sent",
    },
    {
        "config_key": "session_credit_cost",
        "config_value": 1,
        "config_type": "number",
        "category": "credits",
        "description": "Credits charged when an interview session starts",
        "is_public": True,
    },
    {
        "config_key": "maintenance_mode",
        "config_value": False,
        "config_type": "boolean",
        "category": "system",
        "description": "Show the maintenance banner",
        "is_public": True,
    },
    {
        "config_key": "feature_flags",
        "config_value": {"aiInterviewer": True, "payments": True, "alerts": True, "resumes": True},
        "config_type": "json",
        "category": "features",
        "description": "Client feature switches",
        "is_public": True,
    },
    {
        "config_key": "app_name",
        "config_value": "MockMate",
        "config_type": "string",
        "category": "general",
        "description": "Product name shown in emails and the client",
        "is_public": True,
    },
    {
        "config_key": "support_email",
        "config_value": "support@mockmate.app",
        "config_type": "string",
        "category": "general",
        "description": "Support contact address",
        "is_public": True,
    },
    {
        "config_key": "payment_currency",
        "config_value": "INR",
        "config_type": "string",
        "category": "payments",
        "description": "Currency used for credit packages",
        "is_public": True,
    },
    {
        "config_key": "otp_expiry_minutes",
        "config_value": 15,
        "config_type": "number",
        "category": "security",
        "description": "Default OTP lifetime in minutes",
    },
    {
        "config_key": "max_otp_attempts",
        "config_value": 5,
        "config_type": "number",
        "category": "security",
        "description": "Wrong guesses allowed before an OTP is locked",
    },
]


class ConfigNotFound(NotFoundException):
    """Unknown configuration key"""
    default_code = "CONFIG_NOT_FOUND"
    default_message = "Configuration key not found"


def coerce_value(value: Any, config_type: str) -> Any:
    """Convert a submitted value to the declared config type"""
    if value is None:
        return None
    if config_type == "number":
        if isinstance(value, bool):
            return int(value)
        number = float(value)
        return int(number) if number.is_integer() else number
    if config_type == "boolean":
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)
    if config_type == "json":
        if isinstance(value, str):
            return json.loads(value)
        return value
    return value if isinstance(value, str) else str(value)


class DynamicConfigService:
    """Read-through cache over `system_config`"""

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl or settings.config_cache_ttl
        self.memory = MemoryStore()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(key: str) -> str:
        return f"config:{key}"

    # ==================== Reads ====================

    async def get(self, db: AsyncSession, key: str, default: Any = None) -> Any:
        """Value for key: memory, then cache, then database; default when missing"""
        cache_key = self.cache_key(key)
        try:
            entry = self.memory.get(cache_key)
            if entry is None:
                entry = await cache.get(cache_key)
                if entry is not None:
                    self.memory.set(cache_key, entry, self.ttl)
            if entry is not None:
                self.hits += 1
                value = entry.get("value")
                return default if value is None else value

            self.misses += 1
            row = await config_crud.get_by_key(db, key)
            if row is None:
                return default
            entry = {"value": row.config_value}
            self.memory.set(cache_key, entry, self.ttl)
            await cache.set(cache_key, entry, self.ttl)
            return default if row.config_value is None else row.config_value
        except Exception as exc:
            logger.error("Failed to read configuration '{}': {}", key, exc)
            return default

    async def get_int(self, db: AsyncSession, key: str, default: int) -> int:
        value = await self.get(db, key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    async def get_many(self, db: AsyncSession, keys: Iterable[str]) -> Dict[str, Any]:
        return {key: await self.get(db, key) for key in keys}

    async def get_public(self, db: AsyncSession) -> Dict[str, Any]:
        """Public, non-sensitive values keyed by config key"""
        rows = await config_crud.list_all(db, public_only=True)
        return {row.config_key: row.config_value for row in rows if not row.is_sensitive}

    async def get_by_category(
        self, db: AsyncSession, category: Optional[str] = None, include_sensitive: bool = False
    ) -> List[Dict[str, Any]]:
        """Entries of a category (all when None); sensitive values masked unless requested"""
        rows = await config_crud.list_all(db, category=category)
        return [self.serialize(row, include_sensitive) for row in rows]

    async def get_entry(
        self, db: AsyncSession, key: str, include_sensitive: bool = False
    ) -> Dict[str, Any]:
        row = await config_crud.get_by_key(db, key)
        if row is None:
            raise ConfigNotFound(f"Configuration key '{key}' not found")
        return self.serialize(row, include_sensitive)

    async def get_categories(self, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(SystemConfig.category, func.count())
            .group_by(SystemConfig.category)
            .order_by(SystemConfig.category)
        )
        return [{"name": name, "config_count": count} for name, count in result.all()]

    async def get_stats(self, db: AsyncSession) -> Dict[str, Any]:
        total = await config_crud.count(db)
        public = await config_crud.count(db, SystemConfig.is_public == True)
        sensitive = await config_crud.count(db, SystemConfig.is_sensitive == True)
        categories = await config_crud.categories(db)
        return {
            "total_keys": total,
            "public_keys": public,
            "sensitive_keys": sensitive,
            "categories": categories,
            "cache_size": len(self.memory),
            "cache_backend": cache.backend,
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.ttl,
        }

    @staticmethod
    def serialize(row: SystemConfig, include_sensitive: bool = False) -> Dict[str, Any]:
        value = row.config_value
        if row.is_sensitive and not include_sensitive and value not in (None, ""):
            value = MASK
        return {
            "key": row.config_key,
            "value": value,
            "type": row.config_type,
            "category": row.category,
            "description": row.description,
            "is_sensitive": row.is_sensitive,
            "is_public": row.is_public,
            "updated_by": row.updated_by,
            "updated_at": row.updated_at,
        }

    # ==================== Writes ====================

    async def set(
        self, db: AsyncSession, key: str, value: Any, updated_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Update an existing key; raises ConfigNotFound for unknown keys"""
        row = await config_crud.get_by_key(db, key)
        if row is None:
            raise ConfigNotFound(f"Configuration key '{key}' not found")
        try:
            coerced = coerce_value(value, row.config_type)
        except (TypeError, ValueError) as exc:
            raise BadRequestException(
                f"Value is not a valid {row.config_type}", code="INVALID_CONFIG_VALUE"
            ) from exc

        await config_crud.update(
            db, db_obj=row, obj_in={"config_value": coerced, "updated_by": updated_by},
            skip_none=False,
        )
        await self.invalidate(key)
        logger.info("Configuration '{}' updated by {}", key, updated_by or "system")
        return self.serialize(row, include_sensitive=True)

    async def create(
        self, db: AsyncSession, data: ConfigCreate, updated_by: Optional[str] = None
    ) -> Dict[str, Any]:
        if await config_crud.get_by_key(db, data.config_key) is not None:
            raise ConflictException(
                f"Configuration key '{data.config_key}' already exists", code="CONFIG_EXISTS"
            )
        payload = data.model_dump()
        payload["config_value"] = coerce_value(payload["config_value"], data.config_type)
        row = await config_crud.create(db, obj_in={**payload, "updated_by": updated_by})
        await self.invalidate(data.config_key)
        logger.info("Configuration '{}' created", data.config_key)
        return self.serialize(row, include_sensitive=True)

    async def seed_defaults(self, db: AsyncSession) -> int:
        """Insert the default keys that are missing; returns how many were added"""
        added = 0
        for item in DEFAULT_CONFIGS:
            if await config_crud.get_by_key(db, item["config_key"]) is None:
                await config_crud.create(db, obj_in=dict(item))
                added += 1
        if added:
            logger.info("Seeded {} default configuration keys", added)
        return added

    # ==================== Cache maintenance ====================

    async def invalidate(self, key: str) -> None:
        cache_key = self.cache_key(key)
        self.memory.delete(cache_key)
        await cache.delete(cache_key)

    def reload(self) -> None:
        """Drop the in-process map; the next reads go back to the cache/database"""
        self.memory.clear()
        logger.info("Configuration memory cache cleared")

    def cleanup_cache(self) -> int:
        return self.memory.purge_expired()


config_service = DynamicConfigService()
