from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api import deps
from portal.core.limiter import limiter
from portal.core.settings import settings
from portal.db.session import get_db
from portal.models import ApplicantRecord, Identity
from portal.schemas.auth import (
    AuthResult,
    FederatedLoginRequest,
    LoginRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
    SessionOut,
    TokenPair,
)
from portal.services import identity as identity_service
from portal.services import records

router = APIRouter(prefix="/auth", tags=["auth"])


def _login_limit() -> str:
    return f"{settings.login_rate_limit_per_minute}/minute"


def _session_out(identity: Identity, record: ApplicantRecord) -> SessionOut:
    return SessionOut(
        uid=identity.id,
        email=identity.email,
        display_name=record.display_name,
        role=record.role,
        application_status=record.application_status,
        last_active_at=identity.last_active_at,
    )


async def _signed_in(db: AsyncSession, identity: Identity) -> AuthResult:
    record = await records.ensure_record(db, identity)
    return AuthResult(tokens=identity_service.issue_tokens(identity), session=_session_out(identity, record))


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
@limiter.limit(_login_limit)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthResult:
    identity, record = await identity_service.register(
        db, payload.email, payload.password, payload.display_name
    )
    return AuthResult(tokens=identity_service.issue_tokens(identity), session=_session_out(identity, record))


@router.post("/login", response_model=AuthResult)
@limiter.limit(_login_limit)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthResult:
    identity = await identity_service.authenticate(db, credentials.email, credentials.password)
    return await _signed_in(db, identity)


@router.post("/federated", response_model=AuthResult)
@limiter.limit(_login_limit)
async def federated_login(
    payload: FederatedLoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthResult:
    identity = await identity_service.authenticate_federated(db, payload.id_token)
    return await _signed_in(db, identity)


@router.post("/refresh", response_model=TokenPair)
async def refresh_tokens(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenPair:
    identity = await identity_service.refresh(db, payload.refresh_token)
    return identity_service.issue_tokens(identity)


@router.post("/logout", status_code=204)
async def logout(
    identity: Identity = Depends(deps.get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> None:
    await identity_service.sign_out(db, identity)
    return None


@router.get("/session", response_model=SessionOut)
async def read_session(
    identity: Identity = Depends(deps.get_current_identity),
    record: ApplicantRecord = Depends(deps.get_current_record),
) -> SessionOut:
    return _session_out(identity, record)


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(_login_limit)
async def request_password_reset(
    payload: PasswordResetRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict:
    await identity_service.send_password_reset(db, payload.email)
    # same answer whether or not the account exists
    return {"message": "If an account exists for this email, a reset link has been sent"}


@router.post("/password-reset/confirm")
async def confirm_password_reset(
    payload: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
) -> dict:
    await identity_service.confirm_password_reset(db, payload.token, payload.new_password)
    return {"message": "Password updated, please sign in again"}
