"""
Auth provider configuration service

Sign-in provider settings managed from the admin console. Provider secrets
are encrypted with Fernet (key derived from ENCRYPTION_KEY) and are never
returned by the API.
"""
import base64
import hashlib
import json
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.config import settings
from mockmate.core.exceptions import BadRequestException, ConflictException, NotFoundException
from mockmate.crud import auth_provider_crud
from mockmate.models.auth_provider import (
    PROVIDER_TYPES,
    AuthProviderConfig,
    AuthProviderCreate,
    AuthProviderResponse,
    AuthProviderUpdate,
)

DEFAULT_PROVIDERS: List[Dict[str, Any]] = [
    {
        "provider_id": "google.com",
        "provider_name": "Google",
        "provider_type": "oauth",
        "config_data": {
            "auth_url": "https://accounts.google.com/o/oauth2/auth",
            "token_url": "https://oauth2.googleapis.com/token",
            "user_info_url": "https://www.googleapis.com/oauth2/v2/userinfo",
            "response_type": "code",
            "grant_type": "authorization_code",
        },
        "scopes": ["email", "profile", "openid"],
        "button_config": {"text": "Sign in with Google", "background_color": "#4285f4",
                          "text_color": "#ffffff", "icon": "google"},
        "rate_limits": {"requests_per_minute": 60, "requests_per_hour": 1000},
        "is_enabled": False,
    },
    {
        "provider_id": "github.com",
        "provider_name": "GitHub",
        "provider_type": "oauth",
        "config_data": {
            "auth_url": "https://github.com/login/oauth/authorize",
            "token_url": "https://github.com/login/oauth/access_token",
            "user_info_url": "https://api.github.com/user",
            "response_type": "code",
            "grant_type": "authorization_code",
        },
        "scopes": ["user:email"],
        "button_config": {"text": "Sign in with GitHub", "background_color": "#333333",
                          "text_color": "#ffffff", "icon": "github"},
        "rate_limits": {"requests_per_minute": 60, "requests_per_hour": 1000},
        "is_enabled": False,
    },
    {
        "provider_id": "email",
        "provider_name": "Email/Password",
        "provider_type": "email",
        "config_data": {"require_email_verification": True, "password_min_length": 8},
        "scopes": [],
        "button_config": {"text": "Sign in with Email", "background_color": "#6c757d",
                          "text_color": "#ffffff", "icon": "email"},
        "rate_limits": {"requests_per_minute": 20, "requests_per_hour": 200},
        "is_enabled": True,
    },
]

# config_data keys that are safe to hand to the browser
CLIENT_CONFIG_KEYS = ("auth_url", "response_type", "client_id", "require_email_verification",
                      "password_min_length")

REQUIRED_SECRETS = {"oauth": ("client_id", "client_secret"), "oidc": ("client_id", "client_secret")}


def build_fernet(secret: Optional[str] = None) -> Fernet:
    """Fernet instance keyed by sha256(secret)"""
    digest = hashlib.sha256((secret or settings.encryption_key).encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class AuthProviderService:
    """Provider configuration with encrypted secrets"""

    def __init__(self, fernet: Optional[Fernet] = None):
        self.fernet = fernet or build_fernet()

    # ==================== Secrets ====================

    def encrypt_secrets(self, secrets: Dict[str, str]) -> bytes:
        return self.fernet.encrypt(json.dumps(secrets).encode("utf-8"))

    def decrypt_secrets(self, token: Optional[bytes]) -> Dict[str, str]:
        if not token:
            return {}
        try:
            return json.loads(self.fernet.decrypt(token).decode("utf-8"))
        except InvalidToken:
            logger.error("Stored provider secrets cannot be decrypted with the current key")
            return {}

    # ==================== Reads ====================

    @staticmethod
    def serialize(provider: AuthProviderConfig) -> Dict[str, Any]:
        data = AuthProviderResponse.model_validate(provider).model_dump()
        data["has_secrets"] = bool(provider.encrypted_secrets)
        return data

    async def get(self, db: AsyncSession, provider_id: str) -> AuthProviderConfig:
        provider = await auth_provider_crud.get_by_provider_id(db, provider_id)
        if provider is None:
            raise NotFoundException("Auth provider not found", code="PROVIDER_NOT_FOUND")
        return provider

    async def list_providers(self, db: AsyncSession, enabled_only: bool = False) -> List[AuthProviderConfig]:
        return await auth_provider_crud.list_all(db, enabled_only=enabled_only)

    async def client_config(self, db: AsyncSession, provider_id: str) -> Dict[str, Any]:
        """Public subset for the sign-in page; no secrets"""
        provider = await self.get(db, provider_id)
        config = {k: v for k, v in (provider.config_data or {}).items() if k in CLIENT_CONFIG_KEYS}
        client_id = self.decrypt_secrets(provider.encrypted_secrets).get("client_id")
        if client_id:
            config["client_id"] = client_id
        return {
            "provider_id": provider.provider_id,
            "provider_name": provider.provider_name,
            "provider_type": provider.provider_type,
            "is_enabled": provider.is_enabled,
            "scopes": provider.scopes or [],
            "button_config": provider.button_config or {},
            "config": config,
        }

    async def stats(self, db: AsyncSession) -> Dict[str, Any]:
        providers = await self.list_providers(db)
        by_type: Dict[str, int] = {}
        for provider in providers:
            by_type[provider.provider_type] = by_type.get(provider.provider_type, 0) + 1
        return {
            "total_providers": len(providers),
            "enabled_providers": sum(1 for p in providers if p.is_enabled),
            "with_secrets": sum(1 for p in providers if p.encrypted_secrets),
            "provider_types": by_type,
        }

    def check(self, provider: AuthProviderConfig) -> Dict[str, Any]:
        """Configuration self-test: required secrets and OAuth endpoints"""
        tests = []
        required = REQUIRED_SECRETS.get(provider.provider_type, ())
        present = self.decrypt_secrets(provider.encrypted_secrets)
        missing = [name for name in required if not present.get(name)]
        tests.append({
            "name": "required_secrets",
            "passed": not missing,
            "message": f"Missing secrets: {', '.join(missing)}" if missing else "All required secrets are present",
        })
        if provider.provider_type == "oauth":
            missing_urls = [k for k in ("auth_url", "token_url") if not (provider.config_data or {}).get(k)]
            tests.append({
                "name": "oauth_urls",
                "passed": not missing_urls,
                "message": f"Missing URLs: {', '.join(missing_urls)}" if missing_urls else "OAuth URLs are set",
            })
        return {"provider_id": provider.provider_id, "passed": all(t["passed"] for t in tests), "tests": tests}

    # ==================== Writes ====================

    async def create(
        self, db: AsyncSession, data: AuthProviderCreate, updated_by: Optional[str] = None
    ) -> AuthProviderConfig:
        if data.provider_type not in PROVIDER_TYPES:
            raise BadRequestException(
                f"provider_type must be one of {', '.join(PROVIDER_TYPES)}", code="INVALID_PROVIDER_TYPE"
            )
        if await auth_provider_crud.get_by_provider_id(db, data.provider_id) is not None:
            raise ConflictException(f"Provider '{data.provider_id}' already exists", code="PROVIDER_EXISTS")
        provider = await auth_provider_crud.create(db, obj_in={**data.model_dump(), "updated_by": updated_by})
        logger.info("Auth provider {} created", provider.provider_id)
        return provider

    async def update(
        self, db: AsyncSession, provider_id: str, data: AuthProviderUpdate, updated_by: Optional[str] = None
    ) -> AuthProviderConfig:
        provider = await self.get(db, provider_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        provider = await auth_provider_crud.update(db, db_obj=provider, obj_in={**updates, "updated_by": updated_by})
        logger.info("Auth provider {} updated", provider_id)
        return provider

    async def delete(self, db: AsyncSession, provider_id: str) -> None:
        provider = await self.get(db, provider_id)
        await auth_provider_crud.delete(db, id=provider.id)
        logger.info("Auth provider {} deleted", provider_id)

    async def set_enabled(
        self, db: AsyncSession, provider_id: str, enabled: bool, updated_by: Optional[str] = None
    ) -> AuthProviderConfig:
        provider = await self.get(db, provider_id)
        provider = await auth_provider_crud.update(
            db, db_obj=provider, obj_in={"is_enabled": enabled, "updated_by": updated_by}
        )
        logger.info("Auth provider {} {}", provider_id, "enabled" if enabled else "disabled")
        return provider

    async def set_secrets(
        self, db: AsyncSession, provider_id: str, secrets: Dict[str, str], updated_by: Optional[str] = None
    ) -> AuthProviderConfig:
        provider = await self.get(db, provider_id)
        provider.encrypted_secrets = self.encrypt_secrets(secrets)
        provider.updated_by = updated_by
        await db.flush()
        logger.info("Secrets updated for auth provider {} ({} keys)", provider_id, len(secrets))
        return provider

    async def seed_defaults(self, db: AsyncSession) -> int:
        added = 0
        for item in DEFAULT_PROVIDERS:
            if await auth_provider_crud.get_by_provider_id(db, item["provider_id"]) is None:
                await auth_provider_crud.create(db, obj_in=dict(item))
                added += 1
        if added:
            logger.info("Seeded {} default auth providers", added)
        return added


auth_provider_service = AuthProviderService()
