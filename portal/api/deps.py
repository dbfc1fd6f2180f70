from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.context import set_user_id
from portal.core.security import decode_token
from portal.core.settings import settings
from portal.db.session import get_db
from portal.models import ApplicantRecord, Identity
from portal.services import identity as identity_service
from portal.services import records
from portal.services.storage.adapter import BlobStore
from portal.services.storage.service import get_blob_store
from portal.services.wizard_store import WizardSessionStore, get_wizard_session_store


@dataclass(slots=True)
class SessionContext:
    """Who is signed in for this request, resolved once and handed to handlers."""

    uid: UUID
    email: str
    display_name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_identity(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Identity:
    try:
        payload = decode_token(token, expected_type="access")
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    subject = payload.get("sub")
    token_version = payload.get("tv")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    identity = await identity_service.get_identity(db, subject)
    if not identity:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not identity.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    if token_version is not None and identity.token_version != token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token revoked")
    set_user_id(str(identity.id))
    return identity


async def get_current_record(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> ApplicantRecord:
    return await records.ensure_record(db, identity)


async def get_session_context(
    record: ApplicantRecord = Depends(get_current_record),
) -> SessionContext:
    return SessionContext(
        uid=record.uid,
        email=record.email,
        display_name=record.display_name,
        role=record.role,
    )


async def require_admin(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    if not ctx.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return ctx


def get_wizard_store() -> WizardSessionStore:
    return get_wizard_session_store()


def get_blob_store_dep() -> BlobStore:
    return get_blob_store()


def get_upload_staging_dir() -> Path:
    path = Path(settings.upload_staging_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path
