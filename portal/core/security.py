from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from portal.core.settings import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Hash compared against when the email is unknown, so timing does not leak account existence
_DUMMY_HASH = pwd_context.hash("dummy-password-for-timing")


def get_password_hash(password: str) -> str:
    min_len = settings.default_password_min_length
    if len(password) < min_len:
        raise ValueError(f"Password should be at least {min_len} characters")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def constant_time_verify(hashed_password: str | None, plain_password: str) -> bool:
    if not hashed_password:
        pwd_context.verify(plain_password, _DUMMY_HASH)
        return False
    return verify_password(plain_password, hashed_password)


class JWTKeyError(RuntimeError):
    pass


def _uses_asymmetric_keys() -> bool:
    return settings.jwt_algorithm.upper().startswith(("RS", "ES", "PS"))


@lru_cache(maxsize=1)
def _load_signing_key() -> str:
    if not _uses_asymmetric_keys():
        return settings.secret_key
    if settings.jwt_private_key:
        return settings.jwt_private_key
    if settings.jwt_private_key_path:
        return _read_key(settings.jwt_private_key_path)
    raise JWTKeyError("JWT private key not configured")


@lru_cache(maxsize=1)
def _load_verification_key() -> str:
    if not _uses_asymmetric_keys():
        return settings.secret_key
    if settings.jwt_public_key:
        return settings.jwt_public_key
    if settings.jwt_public_key_path:
        return _read_key(settings.jwt_public_key_path)
    raise JWTKeyError("JWT public key not configured")


def _read_key(path: str) -> str:
    with open(path, "r", encoding="utf-8") as key_file:
        return key_file.read()


def _encode(subject: str, token_type: str, lifetime: timedelta, token_version: int | None, **claims: Any) -> str:
    expire = datetime.now(timezone.utc) + lifetime
    to_encode: dict[str, Any] = {"sub": subject, "exp": expire, "type": token_type, **claims}
    if token_version is not None:
        to_encode["tv"] = token_version
    return jwt.encode(to_encode, _load_signing_key(), algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str, expires_delta: timedelta | None = None, token_version: int | None = None
) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(subject, "access", lifetime, token_version)


def create_refresh_token(
    subject: str, expires_delta: timedelta | None = None, token_version: int | None = None
) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.refresh_token_expire_minutes)
    return _encode(subject, "refresh", lifetime, token_version, jti=str(uuid.uuid4()))


def create_password_reset_token(subject: str, token_version: int) -> str:
    lifetime = timedelta(minutes=settings.password_reset_expire_minutes)
    return _encode(subject, "password_reset", lifetime, token_version)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, _load_verification_key(), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if expected_type and payload.get("type") != expected_type:
        raise ValueError(f"Unexpected token type: {payload.get('type')}")
    return payload
