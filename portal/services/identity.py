"""Identity provider adapter: password and Google sign-in, sign-out and password reset."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.security import (
    constant_time_verify,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
)
from portal.core.settings import settings
from portal.models import ApplicantRecord, Identity
from portal.schemas.auth import TokenPair
from portal.services import records
from portal.services.audit import record_audit_event
from portal.services.errors import IdentityError, RecordWriteError

logger = logging.getLogger(__name__)


def fallback_display_name(email: str | None, display_name: str | None = None) -> str:
    if display_name and display_name.strip():
        return display_name.strip()
    if email and "@" in email:
        return email.split("@", 1)[0]
    return "User"


def issue_tokens(identity: Identity) -> TokenPair:
    access = create_access_token(str(identity.id), token_version=identity.token_version)
    refresh = create_refresh_token(str(identity.id), token_version=identity.token_version)
    return TokenPair(access_token=access, refresh_token=refresh)


async def get_identity(db: AsyncSession, identity_id: UUID | str) -> Identity | None:
    try:
        key = UUID(str(identity_id))
    except ValueError:
        return None
    return await db.get(Identity, key)


async def _find_by_email(db: AsyncSession, email: str) -> Identity | None:
    stmt = select(Identity).where(Identity.email == email.lower())
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _commit(db: AsyncSession, failure: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception(failure)
        raise RecordWriteError("Could not save your account, please try again") from exc


async def _touch(db: AsyncSession, identity: Identity) -> None:
    identity.last_active_at = datetime.now(timezone.utc)
    db.add(identity)
    await _commit(db, "Failed to record sign-in")


async def register(
    db: AsyncSession, email: str, password: str, display_name: str
) -> tuple[Identity, ApplicantRecord]:
    email = email.lower()
    if await _find_by_email(db, email) is not None:
        raise IdentityError("Email is already in use", code="email_in_use", status_code=409)
    try:
        hashed = get_password_hash(password)
    except ValueError as exc:
        raise IdentityError(str(exc), code="weak_password") from exc

    identity = Identity(
        email=email,
        display_name=fallback_display_name(email, display_name),
        hashed_password=hashed,
        provider="password",
        token_version=0,
        is_active=True,
        last_active_at=datetime.now(timezone.utc),
    )
    db.add(identity)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise IdentityError("Email is already in use", code="email_in_use", status_code=409) from exc
    record = await records.create_record(
        db, identity.id, {"email": identity.email, "display_name": identity.display_name}
    )
    record_audit_event(
        "identity.registered",
        actor_id=identity.id,
        resource_id=identity.id,
        new_value={"email": identity.email, "provider": "password"},
    )
    return identity, record


async def authenticate(db: AsyncSession, email: str, password: str) -> Identity:
    identity = await _find_by_email(db, email)
    if not constant_time_verify(identity.hashed_password if identity else None, password):
        raise IdentityError("Invalid email or password", code="invalid_credentials", status_code=401)
    if not identity.is_active:
        raise IdentityError("This account is disabled", code="inactive_identity", status_code=401)
    await _touch(db, identity)
    return identity


def _verify_google_token(id_token_value: str) -> dict[str, Any]:
    # Lazy import to avoid requiring dependency unless used
    from google.auth.transport import requests as google_requests
    from google.oauth2 import id_token

    return id_token.verify_oauth2_token(
        id_token_value, google_requests.Request(), settings.google_client_id
    )


async def authenticate_federated(db: AsyncSession, id_token_value: str) -> Identity:
    """Sign in with a Google ID token, creating the identity on first use."""
    if not settings.google_client_id:
        raise IdentityError("Google sign-in is not configured", code="federated_disabled", status_code=400)
    try:
        claims = _verify_google_token(id_token_value)
    except ValueError as exc:
        raise IdentityError("Google sign-in failed", code="invalid_id_token", status_code=401) from exc

    email = (claims.get("email") or "").lower()
    subject = claims.get("sub")
    if not email or not subject or claims.get("email_verified") is False:
        raise IdentityError("Google account has no verified email", code="invalid_id_token", status_code=401)

    identity = await _find_by_email(db, email)
    if identity is None:
        identity = Identity(
            email=email,
            display_name=fallback_display_name(email, claims.get("name")),
            provider="google",
            provider_subject=subject,
            token_version=0,
            is_active=True,
        )
        db.add(identity)
        await _commit(db, "Failed to create federated identity")
        record_audit_event(
            "identity.registered",
            actor_id=identity.id,
            resource_id=identity.id,
            new_value={"email": email, "provider": "google"},
        )
    elif not identity.is_active:
        raise IdentityError("This account is disabled", code="inactive_identity", status_code=401)
    await _touch(db, identity)
    return identity


async def refresh(db: AsyncSession, refresh_token: str) -> Identity:
    try:
        payload = decode_token(refresh_token, expected_type="refresh")
    except ValueError as exc:
        raise IdentityError("Invalid token", code="invalid_token", status_code=401) from exc
    identity_id = payload.get("sub")
    if not identity_id or payload.get("tv") is None:
        raise IdentityError("Invalid token", code="invalid_token", status_code=401)
    identity = await get_identity(db, identity_id)
    if identity is None or not identity.is_active:
        raise IdentityError("Identity not found", code="invalid_token", status_code=401)
    if identity.token_version != payload["tv"]:
        raise IdentityError("Token revoked", code="token_revoked", status_code=401)
    await _touch(db, identity)
    return identity


async def sign_out(db: AsyncSession, identity: Identity) -> None:
    """Revoke every token issued so far."""
    identity.token_version = (identity.token_version or 0) + 1
    db.add(identity)
    await _commit(db, "Failed to sign out")


def deliver_password_reset(email: str, token: str) -> None:
    # TODO: hand the link to an email provider once one is configured
    logger.info("Password reset link issued for %s", email)


async def send_password_reset(db: AsyncSession, email: str) -> str | None:
    """Issue a reset token; unknown and federated accounts are skipped silently."""
    identity = await _find_by_email(db, email)
    if identity is None or not identity.is_active or identity.provider != "password":
        return None
    token = create_password_reset_token(str(identity.id), identity.token_version)
    deliver_password_reset(identity.email, token)
    return token


async def confirm_password_reset(db: AsyncSession, token: str, new_password: str) -> Identity:
    try:
        payload = decode_token(token, expected_type="password_reset")
    except ValueError as exc:
        raise IdentityError("Reset link is invalid or has expired", code="invalid_reset_token") from exc
    identity = await get_identity(db, payload.get("sub", ""))
    if identity is None or identity.token_version != payload.get("tv"):
        raise IdentityError("Reset link is invalid or has expired", code="invalid_reset_token")
    try:
        identity.hashed_password = get_password_hash(new_password)
    except ValueError as exc:
        raise IdentityError(str(exc), code="weak_password") from exc
    # a reset also ends every existing session
    identity.token_version = (identity.token_version or 0) + 1
    db.add(identity)
    await _commit(db, "Failed to reset password")
    return identity
