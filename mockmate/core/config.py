"""
Application settings

Environment variables and .env values managed with pydantic-settings
"""
from functools import lru_cache
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
import json

# Project root (directory holding run.py)
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "MockMate"
    app_env: str = "development"
    debug: bool = True

    # Database
    database_url: str = f"sqlite+aiosqlite:///{BASE_DIR / 'data' / 'mockmate.db'}"

    # Redis (empty string disables it; the process-local cache is used instead)
    redis_url: str = ""

    # CORS
    cors_origins: List[str] = ["*"]

    # URLs used in emails and payment redirects
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:8000"

    # JWT
    jwt_secret: str = "change-me-access-secret"
    jwt_refresh_secret: str = "change-me-refresh-secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7

    # Password hashing
    bcrypt_rounds: int = 12

    # Account lockout
    max_login_attempts: int = 5
    lockout_minutes: int = 30

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "noreply@mockmate.app"
    smtp_from_name: str = "MockMate"
    smtp_use_tls: bool = True
    smtp_timeout: int = 20

    # Cashfree
    cashfree_app_id: str = ""
    cashfree_secret_key: str = ""
    cashfree_environment: str = "sandbox"
    cashfree_api_version: str = "2023-08-01"
    cashfree_timeout: int = 30

    # LLM
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_temperature: float = 0.7
    llm_timeout: int = 60
    llm_max_concurrency: int = 5
    llm_rate_limit: int = 60

    # Secrets encryption (auth provider credentials)
    encryption_key: str = "change-me-encryption-key"

    # Feature switches
    rate_limit_enabled: bool = True
    # Proxy addresses whose X-Forwarded-For header is believed
    trusted_proxies: List[str] = []
    analytics_tracking_enabled: bool = True
    config_cache_ttl: int = 300

    # Background sweep that ends overdue sessions (0 disables it)
    session_sweep_interval_seconds: int = 60
    paused_session_timeout_minutes: int = 60

    # Logging
    log_level: str = "INFO"
    log_dir: str = str(BASE_DIR / "logs")
    log_to_file: bool = True

    @field_validator("cors_origins", "trusted_proxies", mode="before")
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_path(cls, v):
        if isinstance(v, str) and "./data/" in v:
            return v.replace("./data/", str(BASE_DIR / "data") + "/")
        return v

    @property
    def is_development(self) -> bool:
        """Development environment"""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Production environment"""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        return self.app_env == "testing"

    @property
    def cashfree_base_url(self) -> str:
        if self.cashfree_environment == "production":
            return "https://api.cashfree.com/pg"
        return "https://sandbox.cashfree.com/pg"


@lru_cache
def get_settings() -> Settings:
    """Settings singleton"""
    return Settings()


# Global settings instance
settings = get_settings()
