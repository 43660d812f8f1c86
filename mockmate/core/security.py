"""
Security utilities

Password hashing (bcrypt), JWT access/refresh tokens (python-jose), random tokens
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from .config import settings


class TokenExpiredError(Exception):
    """JWT signature has expired"""


class TokenInvalidError(Exception):
    """JWT could not be decoded or verified"""


# ====== Passwords ======

def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt"""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash"""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


# ====== JWT ======

def _encode(claims: Dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    to_encode = claims.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError(str(exc)) from exc
    except JWTError as exc:
        raise TokenInvalidError(str(exc)) from exc


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Short-lived access token carrying the user id"""
    delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    # jti keeps tokens issued within the same second distinct
    return _encode(
        {"user_id": user_id, "jti": secrets.token_hex(8)}, settings.jwt_secret, delta
    )


def create_refresh_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Long-lived refresh token, marked with type=refresh"""
    delta = expires_delta or timedelta(days=settings.refresh_token_expire_days)
    return _encode(
        {"user_id": user_id, "type": "refresh", "jti": secrets.token_hex(8)},
        settings.jwt_refresh_secret,
        delta,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode an access token; raises TokenExpiredError / TokenInvalidError"""
    return _decode(token, settings.jwt_secret)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode a refresh token; raises TokenExpiredError / TokenInvalidError"""
    return _decode(token, settings.jwt_refresh_secret)


# ====== Random tokens ======

def generate_token(nbytes: int = 32) -> str:
    """Hex token for email verification and password reset links"""
    return secrets.token_hex(nbytes)


def generate_numeric_code(length: int = 6) -> str:
    """Numeric one-time code"""
    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_token(token: str) -> str:
    """SHA-256 digest used to store API keys"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
