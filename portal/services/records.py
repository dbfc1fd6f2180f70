from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models import ApplicantRecord, Identity
from portal.schemas.application import ApplicationView
from portal.services.errors import (
    MalformedRecordError,
    RecordInvariantError,
    RecordReadError,
    RecordWriteError,
)

logger = logging.getLogger(__name__)

BLOCK_FIELDS = {"personal_info", "academic_info", "documents"}
PROFILE_FIELDS = {"display_name", "phone", "address", "city", "state", "zip_code"}
APPLICANT_WRITABLE = BLOCK_FIELDS | PROFILE_FIELDS | {"application_status", "submitted_at"}
ADMIN_WRITABLE = {"application_status"}

_view_adapter = TypeAdapter(ApplicationView)


def record_snapshot(record: ApplicantRecord) -> dict[str, Any]:
    return {column.name: getattr(record, column.name) for column in record.__table__.columns}


def parse_record(record: ApplicantRecord):
    """Validate a stored row into its tagged view; rows that do not fit are reported, never patched up."""
    try:
        return _view_adapter.validate_python(record_snapshot(record))
    except ValidationError as exc:
        logger.warning("Applicant record %s failed validation: %s", record.uid, exc.error_count())
        raise MalformedRecordError(
            "Stored application record is malformed",
            details={"uid": str(record.uid), "errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


async def get_record(db: AsyncSession, uid: UUID) -> ApplicantRecord | None:
    try:
        return await db.get(ApplicantRecord, uid)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load applicant record %s", uid)
        raise RecordReadError("Could not load your application, please try again") from exc


async def create_record(db: AsyncSession, uid: UUID, fields: dict[str, Any]) -> ApplicantRecord:
    if fields.get("role", "student") != "student":
        raise RecordInvariantError("New records are always created with the student role")
    record = ApplicantRecord(
        uid=uid,
        role="student",
        application_status="incomplete",
        **{key: value for key, value in fields.items() if key != "role"},
    )
    db.add(record)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to create applicant record %s", uid)
        raise RecordWriteError("Could not create your application record") from exc
    await db.refresh(record)
    return record


async def ensure_record(db: AsyncSession, identity: Identity) -> ApplicantRecord:
    """Return the identity's record, creating an empty student record on first sign-in."""
    record = await get_record(db, identity.id)
    if record is not None:
        return record
    try:
        return await create_record(
            db,
            identity.id,
            {"email": identity.email, "display_name": identity.display_name},
        )
    except RecordWriteError as exc:
        # another request may have created it first
        if isinstance(exc.__cause__, IntegrityError):
            record = await get_record(db, identity.id)
            if record is not None:
                return record
        raise


def _merge(current: Any, incoming: Any) -> Any:
    if isinstance(current, dict) and isinstance(incoming, dict):
        merged = dict(current)
        for key, value in incoming.items():
            merged[key] = _merge(current.get(key), value)
        return merged
    return incoming


def _check_invariants(record: ApplicantRecord, updates: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(updates) - allowed
    if unknown:
        raise RecordInvariantError(
            "Fields cannot be written from this context",
            details={"fields": sorted(unknown)},
        )
    current = record.submitted_at
    if "submitted_at" in updates and current is not None and updates["submitted_at"] != current:
        raise RecordInvariantError("Submission time is already recorded")
    status = updates.get("application_status", record.application_status)
    if status != "incomplete" and updates.get("submitted_at", current) is None:
        raise RecordInvariantError("Submitted applications need a submission time")


async def update_record(
    db: AsyncSession,
    record: ApplicantRecord,
    updates: dict[str, Any],
    *,
    admin: bool = False,
) -> ApplicantRecord:
    """Apply a partial update; JSON blocks are merged key by key rather than replaced."""
    _check_invariants(record, updates, ADMIN_WRITABLE if admin else APPLICANT_WRITABLE)
    if not admin and "application_status" in updates:
        if record.application_status != "incomplete" or updates["application_status"] != "submitted":
            raise RecordInvariantError("Only an incomplete application can be submitted")
    for key, value in updates.items():
        if key in BLOCK_FIELDS:
            # assign a fresh dict so the JSONB column is flagged dirty
            value = _merge(getattr(record, key) or {}, value) if value is not None else None
        setattr(record, key, value)
    db.add(record)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to update applicant record %s", record.uid)
        raise RecordWriteError("Could not save your application, please try again") from exc
    await db.refresh(record)
    return record


async def list_reviewable(db: AsyncSession) -> list[ApplicantRecord]:
    stmt = (
        select(ApplicantRecord)
        .where(ApplicantRecord.application_status != "incomplete")
        .order_by(ApplicantRecord.application_status, ApplicantRecord.submitted_at.desc())
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        logger.exception("Failed to list applications for review")
        raise RecordReadError("Could not load applications, please try again") from exc
    return list(result.scalars().all())


def is_submitted(record: ApplicantRecord) -> bool:
    return record.application_status != "incomplete"
