"""Admission form wizard: step machine, per-step validation and document slots.

The form lives in a ``WizardSession`` held by the session store; the applicant
record only receives validated blocks.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import UploadFile
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models import ApplicantRecord
from portal.schemas.admission import (
    AcademicDraft,
    FormValues,
    FormValuesPatch,
    PersonalDraft,
    SlotOut,
    SlotState,
    WizardSession,
    WizardStateOut,
    WizardStep,
)
from portal.schemas.application import (
    FALLBACK_MESSAGES,
    AcademicInfo,
    DocumentSlot,
    PersonalInfo,
)
from portal.services import records, uploads
from portal.services.errors import (
    ApplicationLockedError,
    MalformedRecordError,
    RecordWriteError,
    StepValidationError,
    WizardStateError,
)
from portal.services.storage.adapter import BlobStore
from portal.services.wizard_store import WizardSessionStore

logger = logging.getLogger(__name__)

STEP_ORDER: tuple[WizardStep, ...] = tuple(WizardStep)

STEP_SCHEMAS: dict[WizardStep, type[BaseModel]] = {
    WizardStep.PERSONAL: PersonalInfo,
    WizardStep.ACADEMIC: AcademicInfo,
}

STEP_BLOCKS = {
    WizardStep.PERSONAL: "personal_info",
    WizardStep.ACADEMIC: "academic_info",
}

SAVE_NOTICE = "Your progress could not be saved right now; it will be saved when you submit"


def next_step(step: WizardStep) -> WizardStep | None:
    index = STEP_ORDER.index(step)
    return STEP_ORDER[index + 1] if index + 1 < len(STEP_ORDER) else None


def previous_step(step: WizardStep) -> WizardStep | None:
    index = STEP_ORDER.index(step)
    return STEP_ORDER[index - 1] if index > 0 else None


def error_messages(exc: ValidationError) -> dict[str, str]:
    """Collapse pydantic errors into one user-facing message per field."""
    messages: dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else "form"
        if field in messages:
            continue
        msg = str(error.get("msg") or "Invalid value")
        # our own validators raise ValueError; anything else gets the field's stock message
        if error.get("type") == "value_error" and msg.startswith("Value error, "):
            messages[field] = msg.removeprefix("Value error, ")
        else:
            messages[field] = FALLBACK_MESSAGES.get(field, msg)
    return messages


def _step_values(session: WizardSession, step: WizardStep) -> dict[str, Any]:
    block = STEP_BLOCKS[step]
    return getattr(session.values, block).model_dump()


def validate_step(session: WizardSession, step: WizardStep) -> BaseModel | None:
    """Validate one step's values; steps without a schema always pass."""
    schema = STEP_SCHEMAS.get(step)
    if schema is None:
        return None
    try:
        return schema.model_validate(_step_values(session, step))
    except ValidationError as exc:
        raise StepValidationError(step.value, error_messages(exc)) from exc


def field_errors(session: WizardSession, step: WizardStep, fields: set[str]) -> dict[str, str]:
    schema = STEP_SCHEMAS.get(step)
    if schema is None or not fields:
        return {}
    try:
        schema.model_validate(_step_values(session, step))
    except ValidationError as exc:
        return {field: message for field, message in error_messages(exc).items() if field in fields}
    return {}


def submit_enabled(session: WizardSession, *, in_flight: bool = False) -> bool:
    return session.acknowledged and not in_flight and session.has_all_documents()


def new_session(record: ApplicantRecord, email: str) -> WizardSession:
    """Start a form pre-filled from whatever blocks the record already holds."""
    personal = dict(record.personal_info or {})
    personal["email"] = personal.get("email") or email
    academic = dict(record.academic_info or {})
    try:
        values = FormValues(
            personal_info=PersonalDraft.model_validate(
                {k: v for k, v in personal.items() if k in PersonalDraft.model_fields and v is not None}
            ),
            academic_info=AcademicDraft.model_validate(
                {k: v for k, v in academic.items() if k in AcademicDraft.model_fields and v is not None}
            ),
        )
    except ValidationError as exc:
        raise MalformedRecordError(
            "Saved application data could not be loaded", details={"uid": str(record.uid)}
        ) from exc
    session = WizardSession(uid=record.uid, values=values)
    documents = record.documents or {}
    for slot in DocumentSlot:
        session.slots[slot].url = documents.get(slot.url_field) or ""
    return session


def guard(record: ApplicantRecord) -> None:
    if records.is_submitted(record):
        raise ApplicationLockedError(record.application_status)


def apply_patch(session: WizardSession, patch: FormValuesPatch) -> dict[str, str]:
    """Merge edited values and report errors for the edited fields of the active step."""
    touched: dict[WizardStep, set[str]] = {}
    if patch.personal_info is not None:
        changes = patch.personal_info.model_dump(exclude_unset=True)
        # email always comes from the signed-in identity
        changes.pop("email", None)
        session.values.personal_info = session.values.personal_info.model_copy(update=changes)
        touched[WizardStep.PERSONAL] = set(changes)
    if patch.academic_info is not None:
        changes = patch.academic_info.model_dump(exclude_unset=True)
        session.values.academic_info = session.values.academic_info.model_copy(update=changes)
        touched[WizardStep.ACADEMIC] = set(changes)
    return field_errors(session, session.step, touched.get(session.step, set()))


async def _persist_step(
    db: AsyncSession,
    record: ApplicantRecord,
    session: WizardSession,
    step: WizardStep,
    validated: BaseModel | None,
) -> str | None:
    updates: dict[str, Any] = {}
    if validated is not None:
        updates[STEP_BLOCKS[step]] = validated.model_dump(mode="json")
    elif step == WizardStep.DOCUMENTS and session.has_all_documents():
        updates["documents"] = session.document_urls()
    if not updates:
        return None
    try:
        await records.update_record(db, record, updates)
    except RecordWriteError:
        logger.warning("Could not save %s step for %s; continuing", step.value, session.uid)
        return SAVE_NOTICE
    return None


async def advance(db: AsyncSession, record: ApplicantRecord, session: WizardSession) -> str | None:
    """Validate the active step and move forward; returns a notice when saving progress failed."""
    target = next_step(session.step)
    if target is None:
        raise WizardStateError("The review step is the last step; submit the application instead")
    validated = validate_step(session, session.step)
    notice = await _persist_step(db, record, session, session.step, validated)
    session.step = target
    return notice


def retreat(session: WizardSession) -> None:
    target = previous_step(session.step)
    if target is None:
        raise WizardStateError("Already at the first step")
    session.step = target


def _require_step(session: WizardSession, step: WizardStep, action: str) -> None:
    if session.step != step:
        raise WizardStateError(
            f"{action} is only available on the {step.value} step",
            details={"step": session.step.value},
        )


async def select_document(
    session: WizardSession,
    slot: DocumentSlot,
    file: UploadFile,
    staging_dir: Path,
    max_size_bytes: int,
) -> SlotState:
    _require_step(session, WizardStep.DOCUMENTS, "Selecting documents")
    staged = await uploads.stage_upload(file, staging_dir, session.uid, slot, max_size_bytes)
    uploads.discard_staged(staging_dir, session.slots[slot])
    session.slots[slot] = staged
    return staged


async def upload_document(
    session: WizardSession,
    slot: DocumentSlot,
    blob_store: BlobStore,
    staging_dir: Path,
) -> str:
    _require_step(session, WizardStep.DOCUMENTS, "Uploading documents")
    state = session.slots[slot]
    if not state.pending and not state.url:
        raise WizardStateError("Please select a file to upload", details={"slot": slot.value})
    return await uploads.upload_slot(session, slot, blob_store, staging_dir)


def acknowledge(session: WizardSession, acknowledged: bool) -> None:
    _require_step(session, WizardStep.REVIEW, "The declaration")
    session.acknowledged = acknowledged


def build_state(
    session: WizardSession,
    *,
    in_flight: bool = False,
    errors: dict[str, str] | None = None,
    notice: str | None = None,
) -> WizardStateOut:
    return WizardStateOut(
        step=session.step,
        values=session.values,
        documents={
            slot: SlotOut(
                label=slot.label,
                url=state.url,
                uploaded=bool(state.url),
                pending=state.pending,
                staged_filename=state.staged_filename,
                staged_size=state.staged_size,
            )
            for slot, state in session.slots.items()
        },
        acknowledged=session.acknowledged,
        submit_enabled=submit_enabled(session, in_flight=in_flight),
        errors=errors or {},
        notice=notice,
    )


async def enter(record: ApplicantRecord, store: WizardSessionStore) -> WizardSession:
    """Open the applicant's form, refusing once the application has been submitted."""
    guard(record)
    session = await store.load(record.uid)
    if session is None:
        session = new_session(record, record.email)
        await store.save(session)
    return session
